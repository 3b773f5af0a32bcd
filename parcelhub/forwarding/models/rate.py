"""
Shipping rate reference data.

Rates are maintained by the master-data side of the platform; the forwarding
engine only reads them.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.utils import timezone


class ServiceType(models.TextChoices):
    """Outbound shipping service levels."""
    ECONOMY = 'economy', 'Economy'
    STANDARD = 'standard', 'Standard'
    EXPRESS = 'express', 'Express'


class RateQuerySet(models.QuerySet):

    def active_on(self, day):
        """Rates flagged active whose effective window contains ``day``."""
        return self.filter(
            is_active=True,
            effective_from__lte=day,
        ).filter(
            models.Q(effective_until__isnull=True) | models.Q(effective_until__gte=day)
        )

    def for_route(self, warehouse_id, zone_id, service_type):
        return self.filter(warehouse_id=warehouse_id, zone_id=zone_id, service_type=service_type)


class Rate(models.Model):
    """
    Price table entry for (warehouse, destination zone, service type).

    Several rows may exist for the same combination; the calculator picks the
    active one whose effective window contains the pricing date.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    warehouse_id = models.UUIDField(help_text="Origin warehouse (master data reference)")
    zone_id = models.UUIDField(help_text="Destination zone (master data reference)")
    service_type = models.CharField(max_length=20, choices=ServiceType.choices)

    base_rate = models.DecimalField(max_digits=10, decimal_places=3)
    per_kg_rate = models.DecimalField(max_digits=10, decimal_places=3)
    min_charge = models.DecimalField(max_digits=10, decimal_places=3, default=Decimal('0.000'))
    max_weight_kg = models.DecimalField(
        max_digits=8,
        decimal_places=3,
        null=True,
        blank=True,
        help_text="Maximum chargeable weight accepted by this rate (empty = unlimited)"
    )
    currency = models.CharField(max_length=3, default='USD')

    is_active = models.BooleanField(default=True)
    effective_from = models.DateField(default=timezone.localdate)
    effective_until = models.DateField(null=True, blank=True, help_text="Inclusive end date")

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RateQuerySet.as_manager()

    class Meta:
        db_table = 'rates'
        ordering = ['warehouse_id', 'zone_id', 'service_type', '-effective_from']
        indexes = [
            models.Index(fields=['warehouse_id', 'zone_id', 'service_type', 'is_active']),
        ]

    def __str__(self):
        return f"{self.service_type} rate {self.base_rate}+{self.per_kg_rate}/kg ({self.currency})"
