"""
Package models: physical parcels held at a warehouse and their status log.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.utils import timezone

from ..exceptions import ValidationException


class PackageStatus(models.TextChoices):
    """Package lifecycle, including the exception exits."""
    EXPECTED = 'expected', 'Expected'
    RECEIVED = 'received', 'Received'
    READY_TO_SHIP = 'ready_to_ship', 'Ready to Ship'
    SHIPPED = 'shipped', 'Shipped'
    DELIVERED = 'delivered', 'Delivered'
    HELD = 'held', 'Held'
    MISSING = 'missing', 'Missing'
    DAMAGED = 'damaged', 'Damaged'
    RETURNED = 'returned', 'Returned'
    DISPOSED = 'disposed', 'Disposed'


class Package(models.Model):
    """
    A physical parcel owned by one customer and stored in one warehouse.

    Warehouse and customer never change after creation. Chargeable weight is
    derived from the measurements and is never below the actual weight.
    """

    IMMUTABLE_FIELDS = ('warehouse_id', 'customer_id')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    internal_id = models.CharField(max_length=50, unique=True)

    inbound_tracking_number = models.CharField(max_length=100, blank=True)
    outbound_tracking_number = models.CharField(max_length=100, blank=True)
    description = models.CharField(max_length=255, blank=True)

    warehouse_id = models.UUIDField(help_text="Warehouse holding the parcel")
    customer_id = models.CharField(max_length=64, help_text="Owning customer")
    scanned_item = models.OneToOneField(
        'ScannedItem',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='package',
        help_text="Intake scan this package was created from"
    )

    # Measurements
    weight_kg = models.DecimalField(max_digits=8, decimal_places=3, null=True, blank=True)
    length_cm = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    width_cm = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    height_cm = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    volumetric_weight_kg = models.DecimalField(max_digits=10, decimal_places=4, default=Decimal('0'))
    chargeable_weight_kg = models.DecimalField(max_digits=10, decimal_places=4, default=Decimal('0'))

    # Customs
    declared_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    declared_currency = models.CharField(max_length=3, default='USD')

    status = models.CharField(
        max_length=20,
        choices=PackageStatus.choices,
        default=PackageStatus.EXPECTED,
    )

    # Handling flags
    is_fragile = models.BooleanField(default=False)
    is_high_value = models.BooleanField(default=False)
    is_restricted = models.BooleanField(default=False)
    requires_signature = models.BooleanField(default=False)

    document_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Blob-store identifiers of attached photos and documents"
    )

    received_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'packages'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer_id', 'status']),
            models.Index(fields=['warehouse_id', 'status']),
            models.Index(fields=['inbound_tracking_number']),
        ]

    def __str__(self):
        return f"Package {self.internal_id} ({self.status})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_owner = {
            field: getattr(instance, field)
            for field in cls.IMMUTABLE_FIELDS
            if field in field_names
        }
        return instance

    def save(self, *args, **kwargs):
        if not self.internal_id:
            timestamp = timezone.now().strftime('%Y%m%d')
            self.internal_id = f"PKG-{timestamp}-{str(self.id)[:8].upper()}"

        loaded = getattr(self, '_loaded_owner', {})
        changed = [field for field, value in loaded.items() if str(getattr(self, field)) != str(value)]
        if changed:
            raise ValidationException(
                f"Package {self.internal_id}: {', '.join(changed)} cannot change after creation",
                {field: 'immutable' for field in changed}
            )

        super().save(*args, **kwargs)
        self._loaded_owner = {field: getattr(self, field) for field in self.IMMUTABLE_FIELDS}

    @property
    def flags(self):
        return {
            'fragile': self.is_fragile,
            'high_value': self.is_high_value,
            'restricted': self.is_restricted,
            'requires_signature': self.requires_signature,
        }

    @property
    def active_link(self):
        """The package's shipment membership that has not been released, if any."""
        return self.shipment_links.filter(released_at__isnull=True).select_related('shipment').first()


class StatusHistoryBase(models.Model):
    """
    Append-only transition log row.

    Rows are written once and never updated or deleted: this is the audit trail.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sequence = models.PositiveIntegerField(help_text="Position of the transition in the entity's log")
    from_status = models.CharField(max_length=20, blank=True)
    to_status = models.CharField(max_length=20)
    reason = models.TextField(blank=True)
    actor = models.CharField(max_length=150, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationException(f"{self.__class__.__name__} rows are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationException(f"{self.__class__.__name__} rows cannot be deleted")


class PackageStatusHistory(StatusHistoryBase):
    """One row per accepted package transition."""

    package = models.ForeignKey(
        Package,
        on_delete=models.PROTECT,
        related_name='status_history',
    )

    class Meta:
        db_table = 'package_status_history'
        ordering = ['package', 'sequence']
        constraints = [
            models.UniqueConstraint(fields=['package', 'sequence'], name='uniq_package_history_sequence'),
        ]

    def __str__(self):
        return f"{self.package_id}: {self.from_status or '-'} -> {self.to_status}"
