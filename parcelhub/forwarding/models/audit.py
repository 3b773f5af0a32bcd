"""
Audit log model for events that are not status transitions.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.utils import timezone


def _json_safe(value):
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, (Decimal, uuid.UUID)):
        return str(value)
    return value


class AuditLog(models.Model):
    """
    Generic audit trail: assignments, duplicate scans, link releases,
    reconciliation incidents.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    entity_type = models.CharField(
        max_length=50,
        help_text="Type of entity (ScannedItem, Shipment, etc.)"
    )
    entity_id = models.CharField(max_length=64)
    action = models.CharField(
        max_length=50,
        help_text="Action performed (assigned, duplicate_scan, manual_reconciliation_required, etc.)"
    )
    actor = models.CharField(max_length=150, blank=True)

    old_values = models.JSONField(default=dict, blank=True)
    new_values = models.JSONField(default=dict, blank=True)
    notes = models.TextField(blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id', '-timestamp']),
            models.Index(fields=['action', '-timestamp']),
        ]

    def __str__(self):
        return f"{self.entity_type} {self.entity_id} - {self.action} by {self.actor or 'system'}"

    @classmethod
    def log_change(cls, entity, action: str, actor: str = "", old_values=None,
                   new_values=None, notes=""):
        """
        Create an audit log entry for an entity.

        Args:
            entity: The model instance being audited
            action: The action performed
            actor: Who performed the action
            old_values: Previous state
            new_values: New state
            notes: Additional notes
        """
        return cls.objects.create(
            entity_type=entity.__class__.__name__,
            entity_id=str(entity.pk),
            action=action,
            actor=actor or "",
            old_values=_json_safe(old_values or {}),
            new_values=_json_safe(new_values or {}),
            notes=notes,
        )
