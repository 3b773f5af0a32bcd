"""
Forwarding Engine Views
"""

from .intake_views import IncomingBatchViewSet, ScannedItemViewSet
from .package_views import PackageViewSet
from .shipment_views import ShipmentViewSet
from .rate_views import RateViewSet
from .invoice_views import InvoiceViewSet
from .payment_views import PaymentWebhookView

__all__ = [
    'IncomingBatchViewSet',
    'ScannedItemViewSet',
    'PackageViewSet',
    'ShipmentViewSet',
    'RateViewSet',
    'InvoiceViewSet',
    'PaymentWebhookView',
]
