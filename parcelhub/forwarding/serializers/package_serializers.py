"""
Package serializers for the forwarding engine.
"""

from rest_framework import serializers

from ..models import Package, PackageStatus, PackageStatusHistory


class PackageSerializer(serializers.ModelSerializer):
    """Serializer for Package model."""

    flags = serializers.SerializerMethodField()
    shipment_id = serializers.SerializerMethodField()

    class Meta:
        model = Package
        fields = [
            'id', 'internal_id', 'inbound_tracking_number', 'outbound_tracking_number',
            'description', 'warehouse_id', 'customer_id', 'scanned_item', 'status',
            'weight_kg', 'length_cm', 'width_cm', 'height_cm',
            'volumetric_weight_kg', 'chargeable_weight_kg',
            'declared_value', 'declared_currency', 'flags', 'document_ids',
            'shipment_id', 'received_at', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_flags(self, obj):
        return obj.flags

    def get_shipment_id(self, obj):
        link = obj.active_link
        return str(link.shipment_id) if link else None


class PackageStatusHistorySerializer(serializers.ModelSerializer):

    class Meta:
        model = PackageStatusHistory
        fields = ['id', 'sequence', 'from_status', 'to_status', 'reason', 'actor', 'created_at']
        read_only_fields = fields


class MeasurementSerializer(serializers.Serializer):
    """Physical measurements of a parcel."""

    weight_kg = serializers.DecimalField(max_digits=8, decimal_places=3, min_value=0, required=False)
    length_cm = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False)
    width_cm = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False)
    height_cm = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False)


class PackageDataSerializer(MeasurementSerializer):
    """Measurements plus customs declaration and handling flags."""

    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    declared_value = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    declared_currency = serializers.CharField(max_length=3, required=False)
    is_fragile = serializers.BooleanField(required=False)
    is_high_value = serializers.BooleanField(required=False)
    is_restricted = serializers.BooleanField(required=False)
    requires_signature = serializers.BooleanField(required=False)
    document_ids = serializers.ListField(child=serializers.CharField(max_length=255), required=False)

    def validate_declared_currency(self, value):
        return value.upper()


class PackageTransitionSerializer(serializers.Serializer):
    """Serializer for a manual package status change."""

    status = serializers.ChoiceField(choices=PackageStatus.choices)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class BulkPackageTransitionSerializer(PackageTransitionSerializer):
    package_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class AttachDocumentSerializer(serializers.Serializer):
    document_id = serializers.CharField(max_length=255)
