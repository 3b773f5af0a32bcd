"""
Shipment models: customer-initiated consolidations of ready packages.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .package import StatusHistoryBase
from .rate import ServiceType


class ShipmentStatus(models.TextChoices):
    """Shipment lifecycle from quote request to delivery, with exits."""
    QUOTE_REQUESTED = 'quote_requested', 'Quote Requested'
    QUOTED = 'quoted', 'Quoted'
    PAID = 'paid', 'Paid'
    PROCESSING = 'processing', 'Processing'
    DISPATCHED = 'dispatched', 'Dispatched'
    IN_TRANSIT = 'in_transit', 'In Transit'
    OUT_FOR_DELIVERY = 'out_for_delivery', 'Out for Delivery'
    DELIVERED = 'delivered', 'Delivered'
    DELIVERY_FAILED = 'delivery_failed', 'Delivery Failed'
    RETURNED = 'returned', 'Returned'
    CANCELLED = 'cancelled', 'Cancelled'
    REFUNDED = 'refunded', 'Refunded'


class Shipment(models.Model):
    """
    One or more packages from a single warehouse going to one address.

    Weight and value totals are aggregated from member packages. Cost fields
    and the rate trace are written by the quote step; the total stored here is
    what the customer pays.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shipment_number = models.CharField(max_length=50, unique=True)

    customer_id = models.CharField(max_length=64)
    warehouse_id = models.UUIDField()
    destination_zone_id = models.UUIDField(help_text="Zone resolved from the shipping address")
    shipping_address_id = models.CharField(max_length=64, blank=True)

    service_type = models.CharField(
        max_length=20,
        choices=ServiceType.choices,
        default=ServiceType.STANDARD,
    )
    status = models.CharField(
        max_length=20,
        choices=ShipmentStatus.choices,
        default=ShipmentStatus.QUOTE_REQUESTED,
    )

    # Aggregates (never user-supplied)
    total_weight_kg = models.DecimalField(max_digits=10, decimal_places=3, default=Decimal('0'))
    total_chargeable_weight_kg = models.DecimalField(max_digits=10, decimal_places=4, default=Decimal('0'))
    total_declared_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    declared_value_currency = models.CharField(max_length=3, default='USD')

    # Costs, wide enough for three-digit minor units (BHD, KWD)
    shipping_cost = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    insurance_cost = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    handling_fee = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    storage_fee = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    total_cost = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    cost_currency = models.CharField(max_length=3, default='USD')

    # Rate calculation trace
    rate = models.ForeignKey(
        'Rate',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    rate_zone_id = models.UUIDField(null=True, blank=True)
    rate_base = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True)
    rate_per_kg = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True)
    rate_weight_charge = models.DecimalField(max_digits=14, decimal_places=6, null=True, blank=True)
    rate_min_charge = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True)
    rate_min_charge_applied = models.BooleanField(default=False)
    rate_chargeable_weight_kg = models.DecimalField(max_digits=10, decimal_places=4, null=True, blank=True)

    quote_expires_at = models.DateTimeField(null=True, blank=True)
    payment_intent_reference = models.CharField(max_length=255, blank=True)
    tracking_number = models.CharField(max_length=100, blank=True)
    status_reason = models.TextField(blank=True, help_text="Reason given for cancellation or refund")
    refund_reference = models.CharField(max_length=255, blank=True)

    # Lifecycle timestamps
    quoted_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    dispatched_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    created_by = models.CharField(max_length=150, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'shipments'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer_id', 'status']),
            models.Index(fields=['status', 'quote_expires_at']),
        ]

    def __str__(self):
        return f"Shipment {self.shipment_number} ({self.status})"

    def save(self, *args, **kwargs):
        if not self.shipment_number:
            timestamp = timezone.now().strftime('%Y%m%d')
            self.shipment_number = f"SHP-{timestamp}-{str(self.id)[:8].upper()}"
        super().save(*args, **kwargs)

    @property
    def package_count(self):
        return self.package_links.count()

    @property
    def is_quote_expired(self):
        return self.quote_expires_at is not None and timezone.now() > self.quote_expires_at

    def linked_packages(self):
        """Packages whose membership in this shipment is still active."""
        from .package import Package
        return Package.objects.filter(
            shipment_links__shipment=self,
            shipment_links__released_at__isnull=True,
        )


class ShipmentPackage(models.Model):
    """
    Membership of a package in a shipment.

    Released rows are kept as history; only one unreleased row per package.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shipment = models.ForeignKey(
        Shipment,
        on_delete=models.CASCADE,
        related_name='package_links',
    )
    package = models.ForeignKey(
        'Package',
        on_delete=models.PROTECT,
        related_name='shipment_links',
    )
    sequence_number = models.PositiveIntegerField()
    linked_at = models.DateTimeField(default=timezone.now)
    released_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'shipment_packages'
        ordering = ['shipment', 'sequence_number']
        constraints = [
            models.UniqueConstraint(fields=['shipment', 'package'], name='uniq_package_per_shipment'),
            models.UniqueConstraint(
                fields=['package'],
                condition=Q(released_at__isnull=True),
                name='uniq_active_link_per_package',
            ),
        ]

    def __str__(self):
        return f"Package {self.package_id} in Shipment {self.shipment_id}"

    @property
    def is_active(self):
        return self.released_at is None


class ShipmentStatusHistory(StatusHistoryBase):
    """One row per accepted shipment transition."""

    shipment = models.ForeignKey(
        Shipment,
        on_delete=models.PROTECT,
        related_name='status_history',
    )

    class Meta:
        db_table = 'shipment_status_history'
        ordering = ['shipment', 'sequence']
        constraints = [
            models.UniqueConstraint(fields=['shipment', 'sequence'], name='uniq_shipment_history_sequence'),
        ]

    def __str__(self):
        return f"{self.shipment_id}: {self.from_status or '-'} -> {self.to_status}"
