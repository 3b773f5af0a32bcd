"""
Intake serializers for the forwarding engine.
"""

from rest_framework import serializers

from ..models import IncomingBatch, ScannedItem, DuplicateScan
from .package_serializers import PackageDataSerializer


class IncomingBatchSerializer(serializers.ModelSerializer):
    """Serializer for IncomingBatch model."""

    item_count = serializers.SerializerMethodField()
    duplicate_count = serializers.SerializerMethodField()

    class Meta:
        model = IncomingBatch
        fields = [
            'id', 'batch_number', 'warehouse_id', 'courier_id', 'courier_name',
            'tracking_url_template', 'expected_piece_count', 'arrival_date', 'status',
            'item_count', 'duplicate_count', 'started_by', 'completed_by', 'completed_at',
            'notes', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_item_count(self, obj):
        return obj.live_item_count

    def get_duplicate_count(self, obj):
        return obj.duplicate_scans.count()


class BatchStartSerializer(serializers.Serializer):
    """Serializer for starting a scan session."""

    warehouse_id = serializers.UUIDField()
    courier_id = serializers.UUIDField()
    courier_name = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    tracking_url_template = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    expected_piece_count = serializers.IntegerField(min_value=0, required=False, default=0)
    arrival_date = serializers.DateField(required=False, allow_null=True, default=None)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_tracking_url_template(self, value):
        if value and '{tracking_number}' not in value:
            raise serializers.ValidationError("Template must contain a {tracking_number} placeholder")
        return value


class ScanSerializer(serializers.Serializer):
    """Serializer for scanning one or several tracking numbers."""

    tracking_number = serializers.CharField(max_length=100, required=False)
    tracking_numbers = serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=False,
        allow_empty=False,
    )

    def validate(self, data):
        if not data.get('tracking_number') and not data.get('tracking_numbers'):
            raise serializers.ValidationError("Provide tracking_number or tracking_numbers")
        return data


class ScannedItemSerializer(serializers.ModelSerializer):
    """Serializer for ScannedItem model."""

    batch_number = serializers.CharField(source='batch.batch_number', read_only=True)
    warehouse_id = serializers.UUIDField(source='batch.warehouse_id', read_only=True)
    has_package = serializers.SerializerMethodField()

    class Meta:
        model = ScannedItem
        fields = [
            'id', 'batch', 'batch_number', 'warehouse_id', 'tracking_number',
            'courier_tracking_url', 'scanned_at', 'scanned_by', 'assignment_status',
            'customer_id', 'assigned_at', 'assigned_by', 'has_package', 'notes'
        ]
        read_only_fields = fields

    def get_has_package(self, obj):
        return obj.has_package


class DuplicateScanSerializer(serializers.ModelSerializer):

    class Meta:
        model = DuplicateScan
        fields = ['id', 'batch', 'original_item', 'tracking_number', 'scanned_at', 'scanned_by']
        read_only_fields = fields


class AssignItemsSerializer(serializers.Serializer):
    """Serializer for assigning scanned items to a customer."""

    item_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    customer_id = serializers.CharField(max_length=64)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class UnassignItemSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class CreatePackageFromItemSerializer(PackageDataSerializer):
    """Measurements and declaration captured when an item becomes a package."""
