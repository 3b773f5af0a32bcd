"""
Custom exceptions for the forwarding engine.

Every business failure carries a machine-readable ``code`` and a ``details``
dict. Batch operations put every offending identifier into ``details`` so the
caller can correct the whole batch in one round-trip.
"""

from typing import Dict, Any, Iterable, List


class BusinessException(Exception):
    """Base exception for business logic errors."""

    def __init__(self, message: str, code: str = "BUSINESS_ERROR", details: Dict[str, Any] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundException(BusinessException):
    """Raised when an entity does not exist or is not visible to the caller."""

    def __init__(self, entity_type: str, identifiers: Iterable[Any]):
        ids = [str(identifier) for identifier in identifiers]
        message = f"{entity_type} not found: {', '.join(ids)}"
        super().__init__(message, "NOT_FOUND", {
            "entity_type": entity_type,
            "ids": ids,
        })


class InvalidTransitionException(BusinessException):
    """Raised when attempting a transition absent from the adjacency table."""

    def __init__(self, current_status: str, attempted_status: str, entity_type: str = "package",
                 entity_id: Any = None, failures: List[Dict[str, Any]] = None):
        message = f"Invalid transition for {entity_type}: cannot move from {current_status} to {attempted_status}"
        details = {
            "current_status": current_status,
            "attempted_status": attempted_status,
            "entity_type": entity_type,
        }
        if entity_id is not None:
            details["entity_id"] = str(entity_id)
        if failures:
            details["failures"] = failures
            message = (
                f"Invalid transition for {len(failures)} {entity_type}(s) "
                f"to {attempted_status}: {', '.join(f['id'] for f in failures)}"
            )
        super().__init__(message, "INVALID_TRANSITION", details)


class AlreadyAssignedException(BusinessException):
    """Raised when scanned items in an assignment request are not unassigned."""

    def __init__(self, item_ids: Iterable[Any]):
        ids = [str(item_id) for item_id in item_ids]
        message = f"Items already assigned: {', '.join(ids)}"
        super().__init__(message, "ALREADY_ASSIGNED", {"item_ids": ids})


class RateNotFoundException(BusinessException):
    """Raised when no active rate matches warehouse, zone and service type."""

    def __init__(self, warehouse_id: Any, zone_id: Any, service_type: str):
        message = f"No active {service_type} rate for warehouse {warehouse_id} and zone {zone_id}"
        super().__init__(message, "RATE_NOT_FOUND", {
            "warehouse_id": str(warehouse_id),
            "zone_id": str(zone_id),
            "service_type": service_type,
        })


class WeightExceedsLimitException(BusinessException):
    """Raised when the chargeable weight is above the rate's maximum weight."""

    def __init__(self, chargeable_weight, max_weight, service_type: str):
        message = (
            f"Chargeable weight {chargeable_weight}kg exceeds maximum limit of "
            f"{max_weight}kg for {service_type} service"
        )
        super().__init__(message, "WEIGHT_EXCEEDS_LIMIT", {
            "chargeable_weight_kg": str(chargeable_weight),
            "max_weight_kg": str(max_weight),
            "service_type": service_type,
        })


class QuoteExpiredException(BusinessException):
    """Raised when paying against a quote whose expiry has passed."""

    def __init__(self, shipment_number: str, expired_at):
        message = f"Quote for shipment {shipment_number} expired at {expired_at.isoformat()}"
        super().__init__(message, "QUOTE_EXPIRED", {
            "shipment_number": shipment_number,
            "quote_expires_at": expired_at.isoformat(),
        })


class PaymentNotSucceededException(BusinessException):
    """Raised when the payment collaborator does not report a completed payment."""

    def __init__(self, payment_reference: str, payment_status: str, reason: str = None):
        message = reason or f"Payment {payment_reference} was not successful (status: {payment_status})"
        super().__init__(message, "PAYMENT_NOT_SUCCEEDED", {
            "payment_reference": payment_reference,
            "payment_status": payment_status,
        })


class AmountMismatchException(BusinessException):
    """Raised when the captured amount differs from the shipment's stored total."""

    def __init__(self, expected_minor: int, received_minor: int, expected_currency: str, received_currency: str):
        message = (
            f"Payment amount {received_minor} {received_currency} does not match "
            f"shipment cost {expected_minor} {expected_currency}"
        )
        super().__init__(message, "AMOUNT_MISMATCH", {
            "expected_minor_units": expected_minor,
            "received_minor_units": received_minor,
            "expected_currency": expected_currency,
            "received_currency": received_currency,
        })


class InvalidStateException(BusinessException):
    """Raised when an entity is not in the state an operation requires."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message, "INVALID_STATE", details)


class ValidationException(BusinessException):
    """Raised when data validation fails."""

    def __init__(self, message: str, field_errors: Dict[str, Any] = None):
        super().__init__(message, "VALIDATION_ERROR", field_errors or {})


class ReconciliationPendingException(BusinessException):
    """
    Raised when a captured payment could not be reconciled locally.

    Not a failure from the payer's point of view: the payment stands and the
    incident is queued for an operator.
    """

    def __init__(self, shipment_id: Any, payment_reference: str):
        message = (
            f"Payment {payment_reference} received for shipment {shipment_id}; "
            f"processing will be completed by an operator"
        )
        super().__init__(message, "RECONCILIATION_PENDING", {
            "shipment_id": str(shipment_id),
            "payment_reference": payment_reference,
        })
