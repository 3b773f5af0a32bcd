"""
Intake models: courier delivery batches and the tracking numbers scanned in them.
"""

import uuid
from django.db import models
from django.utils import timezone


class BatchStatus(models.TextChoices):
    """Scan session lifecycle."""
    PENDING = 'pending', 'Pending'
    SCANNING = 'scanning', 'Scanning'
    SCANNED = 'scanned', 'Scanned'


class AssignmentStatus(models.TextChoices):
    """Whether a scanned item has been linked to a customer."""
    UNASSIGNED = 'unassigned', 'Unassigned'
    ASSIGNED = 'assigned', 'Assigned'


class IncomingBatch(models.Model):
    """
    One courier delivery event at a warehouse.

    Created when staff start a scan session and closed (``scanned``) when
    scanning is marked complete.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    batch_number = models.CharField(max_length=50, unique=True)

    warehouse_id = models.UUIDField(help_text="Receiving warehouse (master data reference)")
    courier_id = models.UUIDField(help_text="Delivering courier (master data reference)")
    courier_name = models.CharField(max_length=100, blank=True)
    tracking_url_template = models.CharField(
        max_length=500,
        blank=True,
        help_text="Courier tracking URL with a {tracking_number} placeholder"
    )

    expected_piece_count = models.PositiveIntegerField(default=0)
    arrival_date = models.DateField(default=timezone.localdate)

    status = models.CharField(
        max_length=20,
        choices=BatchStatus.choices,
        default=BatchStatus.PENDING,
    )

    started_by = models.CharField(max_length=150, blank=True)
    completed_by = models.CharField(max_length=150, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'incoming_batches'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['warehouse_id', 'status']),
            models.Index(fields=['arrival_date']),
        ]

    def __str__(self):
        return f"Batch {self.batch_number} ({self.status})"

    def save(self, *args, **kwargs):
        if not self.batch_number:
            timestamp = timezone.now().strftime('%Y%m%d')
            self.batch_number = f"BAT-{timestamp}-{uuid.uuid4().hex[:8].upper()}"
        super().save(*args, **kwargs)

    @property
    def live_item_count(self):
        return self.items.count()

    @property
    def is_closed(self):
        return self.status == BatchStatus.SCANNED

    def tracking_url_for(self, tracking_number: str) -> str:
        if not self.tracking_url_template:
            return ''
        return self.tracking_url_template.replace('{tracking_number}', tracking_number)


class ScannedItem(models.Model):
    """
    A live tracking number scanned within a batch.

    At most one live item per tracking number and batch; repeat scans are
    recorded as ``DuplicateScan`` rows instead.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    batch = models.ForeignKey(
        IncomingBatch,
        on_delete=models.CASCADE,
        related_name='items',
    )
    tracking_number = models.CharField(max_length=100)
    courier_tracking_url = models.CharField(max_length=600, blank=True)

    scanned_at = models.DateTimeField(default=timezone.now)
    scanned_by = models.CharField(max_length=150, blank=True)

    assignment_status = models.CharField(
        max_length=20,
        choices=AssignmentStatus.choices,
        default=AssignmentStatus.UNASSIGNED,
    )
    customer_id = models.CharField(
        max_length=64,
        blank=True,
        help_text="Owning customer once assigned"
    )
    assigned_at = models.DateTimeField(null=True, blank=True)
    assigned_by = models.CharField(max_length=150, blank=True)

    notes = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'scanned_items'
        ordering = ['scanned_at']
        constraints = [
            models.UniqueConstraint(fields=['batch', 'tracking_number'], name='uniq_live_tracking_per_batch'),
        ]
        indexes = [
            models.Index(fields=['assignment_status', 'scanned_at']),
            models.Index(fields=['tracking_number']),
        ]

    def __str__(self):
        return f"{self.tracking_number} in {self.batch_id} ({self.assignment_status})"

    @property
    def is_assigned(self):
        return self.assignment_status == AssignmentStatus.ASSIGNED

    @property
    def has_package(self):
        return hasattr(self, 'package') and self.package is not None


class DuplicateScan(models.Model):
    """Marker for a repeated scan of a tracking number already live in the batch."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    batch = models.ForeignKey(
        IncomingBatch,
        on_delete=models.CASCADE,
        related_name='duplicate_scans',
    )
    original_item = models.ForeignKey(
        ScannedItem,
        on_delete=models.CASCADE,
        related_name='duplicate_scans',
    )
    tracking_number = models.CharField(max_length=100)
    scanned_at = models.DateTimeField(default=timezone.now)
    scanned_by = models.CharField(max_length=150, blank=True)

    class Meta:
        db_table = 'duplicate_scans'
        ordering = ['scanned_at']

    def __str__(self):
        return f"Duplicate scan of {self.tracking_number} in {self.batch_id}"
