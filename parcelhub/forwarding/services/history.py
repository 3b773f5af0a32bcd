"""
Status change recording shared by the package and shipment services.
"""

from ..models import Package, PackageStatusHistory, Shipment, ShipmentStatusHistory

HISTORY_MODELS = {
    Package: (PackageStatusHistory, 'package'),
    Shipment: (ShipmentStatusHistory, 'shipment'),
}


def append_history(entity, from_status: str, to_status: str, actor: str = "", reason: str = ""):
    """
    Append one row to the entity's status log.

    The caller must hold the entity's row lock so sequence numbers stay dense.
    """
    history_model, fk_name = HISTORY_MODELS[type(entity)]
    sequence = history_model.objects.filter(**{fk_name: entity}).count() + 1
    return history_model.objects.create(
        sequence=sequence,
        from_status=from_status or '',
        to_status=to_status,
        actor=actor or '',
        reason=reason or '',
        **{fk_name: entity}
    )


def apply_transition(entity, new_status: str, actor: str = "", reason: str = "", **changes) -> str:
    """
    Move an already validated, locked entity to ``new_status``.

    Extra keyword arguments are assigned to the entity before saving, so the
    status and its side fields land in a single write.

    Returns:
        The previous status
    """
    old_status = entity.status
    for field_name, value in changes.items():
        setattr(entity, field_name, value)
    entity.status = new_status
    entity.save()
    append_history(entity, old_status, new_status, actor, reason)
    return old_status
