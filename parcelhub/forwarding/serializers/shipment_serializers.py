"""
Shipment serializers for the forwarding engine.
"""

from rest_framework import serializers

from ..models import Shipment, ShipmentPackage, ShipmentStatus, ShipmentStatusHistory, ServiceType


class ShipmentPackageSerializer(serializers.ModelSerializer):
    """Serializer for ShipmentPackage model."""

    internal_id = serializers.CharField(source='package.internal_id', read_only=True)
    package_status = serializers.CharField(source='package.status', read_only=True)
    chargeable_weight_kg = serializers.DecimalField(
        source='package.chargeable_weight_kg', max_digits=10, decimal_places=4, read_only=True
    )

    class Meta:
        model = ShipmentPackage
        fields = [
            'id', 'package', 'internal_id', 'package_status', 'chargeable_weight_kg',
            'sequence_number', 'linked_at', 'released_at'
        ]
        read_only_fields = fields


class ShipmentListSerializer(serializers.ModelSerializer):
    """Serializer for shipment listing."""

    package_count = serializers.SerializerMethodField()

    class Meta:
        model = Shipment
        fields = [
            'id', 'shipment_number', 'customer_id', 'warehouse_id', 'service_type', 'status',
            'package_count', 'total_chargeable_weight_kg', 'total_cost', 'cost_currency',
            'quote_expires_at', 'tracking_number', 'created_at'
        ]
        read_only_fields = fields

    def get_package_count(self, obj):
        return obj.package_links.filter(released_at__isnull=True).count()


class ShipmentDetailSerializer(serializers.ModelSerializer):
    """Serializer for shipment details, including the rate trace."""

    package_links = ShipmentPackageSerializer(many=True, read_only=True)
    rate_trace = serializers.SerializerMethodField()
    is_quote_expired = serializers.SerializerMethodField()

    class Meta:
        model = Shipment
        fields = [
            'id', 'shipment_number', 'customer_id', 'warehouse_id', 'destination_zone_id',
            'shipping_address_id', 'service_type', 'status',
            'total_weight_kg', 'total_chargeable_weight_kg',
            'total_declared_value', 'declared_value_currency',
            'shipping_cost', 'insurance_cost', 'handling_fee', 'storage_fee',
            'total_cost', 'cost_currency', 'rate_trace',
            'quote_expires_at', 'is_quote_expired', 'payment_intent_reference',
            'tracking_number', 'status_reason', 'refund_reference',
            'quoted_at', 'paid_at', 'dispatched_at', 'delivered_at', 'cancelled_at', 'refunded_at',
            'package_links', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_rate_trace(self, obj):
        from ..services import ShipmentService
        rate_quote = ShipmentService.rate_quote_for(obj)
        return rate_quote.as_dict() if rate_quote else None

    def get_is_quote_expired(self, obj):
        return obj.is_quote_expired


class ShipmentStatusHistorySerializer(serializers.ModelSerializer):

    class Meta:
        model = ShipmentStatusHistory
        fields = ['id', 'sequence', 'from_status', 'to_status', 'reason', 'actor', 'created_at']
        read_only_fields = fields


class ShipmentCreateSerializer(serializers.Serializer):
    """Serializer for requesting a shipment."""

    package_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    destination_zone_id = serializers.UUIDField()
    service_type = serializers.ChoiceField(choices=ServiceType.choices, default=ServiceType.STANDARD)
    shipping_address_id = serializers.CharField(max_length=64, required=False, allow_blank=True, default='')
    customer_id = serializers.CharField(
        max_length=64, required=False,
        help_text="Staff only: customer the shipment is created for"
    )


class QuoteRequestSerializer(serializers.Serializer):
    service_type = serializers.ChoiceField(choices=ServiceType.choices, required=False)


class ShipmentCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ShipmentRefundSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    refund_reference = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class ShipmentStatusUpdateSerializer(serializers.Serializer):
    """Serializer for operational shipment status updates."""

    status = serializers.ChoiceField(choices=ShipmentStatus.choices)
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    tracking_number = serializers.CharField(max_length=100, required=False, allow_blank=True)


class RateCalculationSerializer(serializers.Serializer):
    """
    Input for a standalone rate calculation.

    Either ``chargeable_weight_kg`` or a weight and/or dimensions are needed.
    """

    warehouse_id = serializers.UUIDField()
    zone_id = serializers.UUIDField()
    service_type = serializers.ChoiceField(choices=ServiceType.choices, required=False)
    chargeable_weight_kg = serializers.DecimalField(max_digits=10, decimal_places=4, min_value=0, required=False)
    weight_kg = serializers.DecimalField(max_digits=8, decimal_places=3, min_value=0, required=False)
    length_cm = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False)
    width_cm = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False)
    height_cm = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False)

    def validate(self, data):
        measured = any(data.get(name) is not None for name in ('weight_kg', 'length_cm', 'width_cm', 'height_cm'))
        if data.get('chargeable_weight_kg') is None and not measured:
            raise serializers.ValidationError("Provide chargeable_weight_kg or measurements")
        return data

