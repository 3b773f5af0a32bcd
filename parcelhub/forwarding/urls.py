"""
URL configuration for the forwarding engine.

Provides API endpoints for intake, packages, shipments, rates and billing.
"""

from django.urls import path
from rest_framework.routers import DefaultRouter

from .views import (
    IncomingBatchViewSet, ScannedItemViewSet, PackageViewSet,
    ShipmentViewSet, RateViewSet, InvoiceViewSet, PaymentWebhookView
)

# Create router and register viewsets
router = DefaultRouter()
router.register(r'batches', IncomingBatchViewSet, basename='batch')
router.register(r'scanned-items', ScannedItemViewSet, basename='scanned-item')
router.register(r'packages', PackageViewSet, basename='package')
router.register(r'shipments', ShipmentViewSet, basename='shipment')
router.register(r'rates', RateViewSet, basename='rate')
router.register(r'invoices', InvoiceViewSet, basename='invoice')

# URL patterns
urlpatterns = [
    path('payments/webhook/', PaymentWebhookView.as_view(), name='payment-webhook'),
] + router.urls
