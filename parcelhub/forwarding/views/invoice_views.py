"""
Invoice views for the forwarding engine.
"""

from rest_framework import viewsets

from ..models import Invoice
from ..serializers.billing_serializers import InvoiceSerializer
from ..permissions import IsOwnerOrWarehouseStaff, customer_scope


class InvoiceViewSet(viewsets.ReadOnlyModelViewSet):
    """Read-only invoices; customers see their own."""

    serializer_class = InvoiceSerializer
    permission_classes = [IsOwnerOrWarehouseStaff]
    filterset_fields = ['payment_status', 'invoice_type', 'shipment', 'customer_id']

    def get_queryset(self):
        queryset = Invoice.objects.select_related('shipment').prefetch_related('lines')
        customer_id = customer_scope(self.request)
        if customer_id is not None:
            queryset = queryset.filter(customer_id=customer_id)
        return queryset
