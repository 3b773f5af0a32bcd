"""
Workflow rules for the forwarding engine.

Holds the allowed state transitions for packages and shipments. Anything not
listed is refused.
"""

from typing import Iterable

from ..exceptions import InvalidTransitionException
from ..models import PackageStatus, ShipmentStatus


class BaseWorkflow:
    ALLOWED_TRANSITIONS = {}
    ENTITY_TYPE = ''

    @classmethod
    def allowed_targets(cls, current_status: str):
        return list(cls.ALLOWED_TRANSITIONS.get(current_status, []))

    @classmethod
    def validate_transition(cls, entity, new_status: str) -> None:
        """
        Validate if a status transition is allowed.

        Self-transitions are not in the table and are therefore refused.

        Args:
            entity: Model instance with a ``status`` field
            new_status: New status to transition to

        Raises:
            InvalidTransitionException: If transition is not allowed
        """
        current_status = entity.status

        if new_status not in cls.allowed_targets(current_status):
            raise InvalidTransitionException(
                current_status=current_status,
                attempted_status=new_status,
                entity_type=cls.ENTITY_TYPE,
                entity_id=entity.pk,
            )

    @classmethod
    def validate_many(cls, entities: Iterable, new_status: str) -> None:
        """
        Validate one transition for a group of entities.

        Raises:
            InvalidTransitionException: Listing every entity that cannot move
        """
        failures = [
            {'id': str(entity.pk), 'current_status': entity.status}
            for entity in entities
            if not cls.can_transition_to(entity, new_status)
        ]
        if failures:
            raise InvalidTransitionException(
                current_status=failures[0]['current_status'],
                attempted_status=new_status,
                entity_type=cls.ENTITY_TYPE,
                failures=failures,
            )

    @classmethod
    def can_transition_to(cls, entity, new_status: str) -> bool:
        """
        Check if transition is allowed without raising exception.

        Args:
            entity: Model instance with a ``status`` field
            new_status: New status to transition to

        Returns:
            True if transition is allowed
        """
        try:
            cls.validate_transition(entity, new_status)
            return True
        except InvalidTransitionException:
            return False


class PackageWorkflow(BaseWorkflow):
    """Workflow rules for Package state transitions."""

    ENTITY_TYPE = 'package'

    ALLOWED_TRANSITIONS = {
        PackageStatus.EXPECTED: [PackageStatus.RECEIVED],
        PackageStatus.RECEIVED: [
            PackageStatus.READY_TO_SHIP, PackageStatus.HELD,
            PackageStatus.MISSING, PackageStatus.DAMAGED,
        ],
        PackageStatus.READY_TO_SHIP: [
            PackageStatus.SHIPPED, PackageStatus.HELD,
            PackageStatus.MISSING, PackageStatus.DAMAGED,
        ],
        PackageStatus.SHIPPED: [PackageStatus.DELIVERED],
        PackageStatus.HELD: [PackageStatus.RETURNED, PackageStatus.DISPOSED],
        PackageStatus.MISSING: [PackageStatus.RETURNED, PackageStatus.DISPOSED],
        PackageStatus.DAMAGED: [PackageStatus.RETURNED, PackageStatus.DISPOSED],
        PackageStatus.DELIVERED: [],  # Final state
        PackageStatus.RETURNED: [],   # Final state
        PackageStatus.DISPOSED: [],   # Final state
    }


class ShipmentWorkflow(BaseWorkflow):
    """Workflow rules for Shipment state transitions."""

    ENTITY_TYPE = 'shipment'

    ALLOWED_TRANSITIONS = {
        ShipmentStatus.QUOTE_REQUESTED: [ShipmentStatus.QUOTED, ShipmentStatus.CANCELLED],
        ShipmentStatus.QUOTED: [
            ShipmentStatus.PAID, ShipmentStatus.CANCELLED, ShipmentStatus.QUOTE_REQUESTED,
        ],
        ShipmentStatus.PAID: [ShipmentStatus.PROCESSING, ShipmentStatus.REFUNDED],
        ShipmentStatus.PROCESSING: [ShipmentStatus.DISPATCHED, ShipmentStatus.REFUNDED],
        ShipmentStatus.DISPATCHED: [
            ShipmentStatus.IN_TRANSIT, ShipmentStatus.DELIVERY_FAILED, ShipmentStatus.RETURNED,
        ],
        ShipmentStatus.IN_TRANSIT: [
            ShipmentStatus.OUT_FOR_DELIVERY, ShipmentStatus.DELIVERY_FAILED, ShipmentStatus.RETURNED,
        ],
        ShipmentStatus.OUT_FOR_DELIVERY: [ShipmentStatus.DELIVERED, ShipmentStatus.DELIVERY_FAILED],
        ShipmentStatus.DELIVERY_FAILED: [ShipmentStatus.OUT_FOR_DELIVERY, ShipmentStatus.RETURNED],
        ShipmentStatus.RETURNED: [ShipmentStatus.REFUNDED],
        ShipmentStatus.DELIVERED: [],  # Final state
        ShipmentStatus.CANCELLED: [],  # Final state
        ShipmentStatus.REFUNDED: [],   # Final state
    }

    # Statuses reached only through their dedicated operation
    RESERVED_TARGETS = [
        ShipmentStatus.QUOTED, ShipmentStatus.PAID,
        ShipmentStatus.CANCELLED, ShipmentStatus.REFUNDED,
        ShipmentStatus.QUOTE_REQUESTED,
    ]


def validate_package_workflow(package, new_status: str) -> None:
    PackageWorkflow.validate_transition(package, new_status)


def validate_shipment_workflow(shipment, new_status: str) -> None:
    ShipmentWorkflow.validate_transition(shipment, new_status)
