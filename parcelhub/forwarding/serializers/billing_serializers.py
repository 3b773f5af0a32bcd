"""
Billing serializers for the forwarding engine.
"""

from rest_framework import serializers

from ..models import Invoice, InvoiceLine


class InvoiceLineSerializer(serializers.ModelSerializer):

    class Meta:
        model = InvoiceLine
        fields = [
            'id', 'line_number', 'description', 'quantity', 'unit_price',
            'line_total', 'reference_type', 'reference_id'
        ]
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    """Serializer for Invoice model with its lines."""

    shipment_number = serializers.CharField(source='shipment.shipment_number', read_only=True)
    lines = InvoiceLineSerializer(many=True, read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'invoice_type', 'customer_id', 'shipment', 'shipment_number',
            'subtotal', 'tax', 'discount', 'total', 'currency', 'payment_status',
            'payment_method', 'payment_reference', 'issued_at', 'paid_at', 'notes', 'lines'
        ]
        read_only_fields = fields


class CompletePaymentSerializer(serializers.Serializer):
    payment_reference = serializers.CharField(max_length=255)


class PaymentIntentSerializer(serializers.Serializer):
    """Output representation of a payment intent."""

    reference = serializers.CharField()
    amount_minor = serializers.IntegerField()
    currency = serializers.CharField()
    status = serializers.CharField()
    client_secret = serializers.CharField()
