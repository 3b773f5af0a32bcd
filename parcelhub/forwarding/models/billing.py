"""
Billing models: invoices issued when a shipment payment is reconciled.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.db.models import Q
from django.utils import timezone


class InvoiceType(models.TextChoices):
    SHIPPING = 'shipping', 'Shipping'


class InvoicePaymentStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PAID = 'paid', 'Paid'
    REFUNDED = 'refunded', 'Refunded'


class LineReferenceType(models.TextChoices):
    SHIPMENT = 'shipment', 'Shipment'
    STORAGE = 'storage', 'Storage'


class Invoice(models.Model):
    """
    Customer invoice for a paid shipment.

    At most one shipping invoice per shipment and one invoice per payment
    reference; both are enforced by the database.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    invoice_number = models.CharField(max_length=50, unique=True)
    invoice_type = models.CharField(
        max_length=20,
        choices=InvoiceType.choices,
        default=InvoiceType.SHIPPING,
    )

    customer_id = models.CharField(max_length=64)
    shipment = models.ForeignKey(
        'Shipment',
        on_delete=models.PROTECT,
        related_name='invoices',
    )

    subtotal = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    tax = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    discount = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    total = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    currency = models.CharField(max_length=3, default='USD')

    payment_status = models.CharField(
        max_length=20,
        choices=InvoicePaymentStatus.choices,
        default=InvoicePaymentStatus.PENDING,
    )
    payment_method = models.CharField(max_length=50, blank=True)
    payment_reference = models.CharField(max_length=255, unique=True, null=True, blank=True)

    issued_at = models.DateTimeField(default=timezone.now)
    paid_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        db_table = 'invoices'
        ordering = ['-issued_at']
        constraints = [
            models.UniqueConstraint(
                fields=['shipment'],
                condition=Q(invoice_type='shipping'),
                name='uniq_shipping_invoice_per_shipment',
            ),
        ]
        indexes = [
            models.Index(fields=['customer_id', '-issued_at']),
        ]

    def __str__(self):
        return f"Invoice {self.invoice_number} ({self.total} {self.currency})"

    def save(self, *args, **kwargs):
        if not self.invoice_number:
            timestamp = timezone.now().strftime('%Y%m%d')
            self.invoice_number = f"INV-{timestamp}-{str(self.id)[:8].upper()}"
        super().save(*args, **kwargs)

    @property
    def lines_total(self):
        return sum((line.line_total for line in self.lines.all()), Decimal('0.00'))


class InvoiceLine(models.Model):
    """A single charge on an invoice."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name='lines',
    )
    line_number = models.PositiveIntegerField()
    description = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=3)
    line_total = models.DecimalField(max_digits=12, decimal_places=3)
    reference_type = models.CharField(max_length=20, choices=LineReferenceType.choices)
    reference_id = models.CharField(max_length=64, blank=True)

    class Meta:
        db_table = 'invoice_lines'
        ordering = ['invoice', 'line_number']
        unique_together = [['invoice', 'line_number']]

    def __str__(self):
        return f"{self.description}: {self.line_total}"
