"""
Package Service for the forwarding engine.

Handles package creation, receipt, measurements and manual status changes.
Shipment-driven changes (ready_to_ship -> shipped -> delivered) are made by
the shipment and billing services.
"""

import logging
from decimal import Decimal
from typing import Dict, Any, List, Optional
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from ..models import Package, PackageStatus, AuditLog
from ..exceptions import NotFoundException, InvalidStateException, ValidationException
from .history import append_history, apply_transition
from .weights import compute_package_weights
from .workflow import PackageWorkflow, validate_package_workflow

logger = logging.getLogger(__name__)

MEASUREMENT_FIELDS = ('weight_kg', 'length_cm', 'width_cm', 'height_cm')
FLAG_FIELDS = ('is_fragile', 'is_high_value', 'is_restricted', 'requires_signature')

# Statuses in which the parcel is physically handled and can be re-measured
MEASURABLE_STATUSES = [
    PackageStatus.EXPECTED, PackageStatus.RECEIVED,
    PackageStatus.READY_TO_SHIP, PackageStatus.HELD, PackageStatus.DAMAGED,
]


class PackageService:
    """Service class for package operations."""

    @staticmethod
    def get_package(package_id: str, customer_id: str = None, lock: bool = False) -> Package:
        """
        Fetch a package, optionally scoped to a customer.

        A package belonging to another customer is reported as not found.
        """
        queryset = Package.objects.select_for_update() if lock else Package.objects.all()
        if customer_id is not None:
            queryset = queryset.filter(customer_id=customer_id)
        try:
            return queryset.get(id=package_id)
        except (Package.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundException('Package', [package_id])

    @staticmethod
    def _apply_measurements(package: Package, measurements: Dict[str, Any]) -> None:
        for field_name in MEASUREMENT_FIELDS:
            if field_name in measurements and measurements[field_name] is not None:
                value = Decimal(str(measurements[field_name]))
                if value < 0:
                    raise ValidationException(
                        f"{field_name} cannot be negative",
                        {field_name: 'negative'}
                    )
                setattr(package, field_name, value)

        volumetric, chargeable = compute_package_weights(
            package.weight_kg, package.length_cm, package.width_cm, package.height_cm,
            warehouse_id=package.warehouse_id,
        )
        package.volumetric_weight_kg = volumetric
        package.chargeable_weight_kg = chargeable

    @staticmethod
    def create_package(customer_id: str, warehouse_id: str, created_by: str = "",
                       package_data: Optional[Dict[str, Any]] = None,
                       scanned_item=None, initial_status: str = PackageStatus.EXPECTED) -> Package:
        """
        Create a package and open its status log.

        Args:
            customer_id: Owning customer
            warehouse_id: Warehouse holding the parcel
            created_by: Actor creating the package
            package_data: Optional tracking number, description, measurements,
                declared value, flags and document ids
            scanned_item: Intake scan the package comes from, if any
            initial_status: ``expected`` for pre-alerts, ``received`` for parcels on hand

        Returns:
            Created Package instance

        Raises:
            ValidationException: If required data is missing or invalid
        """
        package_data = package_data or {}
        if not customer_id:
            raise ValidationException("customer_id is required", {'customer_id': 'required'})
        if not warehouse_id:
            raise ValidationException("warehouse_id is required", {'warehouse_id': 'required'})
        if initial_status not in [PackageStatus.EXPECTED, PackageStatus.RECEIVED]:
            raise ValidationException(
                f"Packages cannot be created in status {initial_status}",
                {'status': initial_status}
            )

        with transaction.atomic():
            package = Package(
                customer_id=str(customer_id),
                warehouse_id=warehouse_id,
                scanned_item=scanned_item,
                inbound_tracking_number=package_data.get('inbound_tracking_number', ''),
                description=package_data.get('description', ''),
                declared_value=Decimal(str(package_data.get('declared_value') or '0.00')),
                declared_currency=package_data.get('declared_currency') or 'USD',
                document_ids=list(package_data.get('document_ids') or []),
                status=initial_status,
            )
            for flag in FLAG_FIELDS:
                setattr(package, flag, bool(package_data.get(flag, False)))

            PackageService._apply_measurements(package, package_data)
            if initial_status == PackageStatus.RECEIVED:
                package.received_at = timezone.now()
            package.save()

            append_history(package, '', initial_status, created_by, package_data.get('reason', 'Package created'))

            logger.info(f"Package {package.internal_id} created for customer {customer_id} ({initial_status})")
            return package

    @staticmethod
    def receive(package_id: str, measurements: Dict[str, Any], received_by: str = "") -> Package:
        """
        Record the physical arrival of an expected package.

        Args:
            package_id: Package UUID
            measurements: weight_kg, length_cm, width_cm, height_cm
            received_by: Actor receiving the package

        Returns:
            Updated Package instance

        Raises:
            NotFoundException: If the package does not exist
            InvalidTransitionException: If the package is not expected
        """
        with transaction.atomic():
            package = PackageService.get_package(package_id, lock=True)
            validate_package_workflow(package, PackageStatus.RECEIVED)

            PackageService._apply_measurements(package, measurements or {})
            apply_transition(
                package, PackageStatus.RECEIVED, received_by, 'Package received',
                received_at=timezone.now(),
            )

            logger.info(f"Package {package.internal_id} received by {received_by or 'system'}")
            return package

    @staticmethod
    def record_measurements(package_id: str, measurements: Dict[str, Any], updated_by: str = "") -> Package:
        """
        Update measurements and recompute volumetric and chargeable weight.

        Raises:
            InvalidStateException: If the package has left the warehouse or is
                in an active shipment
        """
        with transaction.atomic():
            package = PackageService.get_package(package_id, lock=True)

            if package.status not in MEASURABLE_STATUSES:
                raise InvalidStateException(
                    f"Package {package.internal_id} cannot be measured in status {package.status}",
                    {'package_id': str(package.id), 'status': package.status}
                )
            link = package.active_link
            if link is not None:
                raise InvalidStateException(
                    f"Package {package.internal_id} is part of shipment {link.shipment.shipment_number}",
                    {'package_id': str(package.id), 'shipment_id': str(link.shipment_id)}
                )

            old_values = {field: getattr(package, field) for field in MEASUREMENT_FIELDS}
            PackageService._apply_measurements(package, measurements or {})
            package.save()

            AuditLog.log_change(
                entity=package,
                action='measured',
                actor=updated_by,
                old_values=old_values,
                new_values={field: getattr(package, field) for field in MEASUREMENT_FIELDS + ('chargeable_weight_kg',)},
            )

            logger.info(f"Package {package.internal_id} measured: chargeable {package.chargeable_weight_kg}kg")
            return package

    @staticmethod
    def attach_document(package_id: str, document_id: str, attached_by: str = "") -> Package:
        """Add a stored document reference to a package."""
        if not document_id:
            raise ValidationException("document_id is required", {'document_id': 'required'})

        with transaction.atomic():
            package = PackageService.get_package(package_id, lock=True)
            if document_id not in package.document_ids:
                package.document_ids = package.document_ids + [document_id]
                package.save()
                AuditLog.log_change(
                    entity=package,
                    action='document_attached',
                    actor=attached_by,
                    new_values={'document_id': document_id},
                )
            return package

    @staticmethod
    def _ensure_not_linked(packages: List[Package]) -> None:
        linked = []
        for package in packages:
            link = package.active_link
            if link is not None:
                linked.append({'id': str(package.id), 'shipment_id': str(link.shipment_id)})
        if linked:
            raise InvalidStateException(
                f"Packages are part of an active shipment: {', '.join(item['id'] for item in linked)}",
                {'packages': linked}
            )

    @staticmethod
    def transition(package_id: str, new_status: str, actor: str = "", reason: str = "") -> Package:
        """
        Manually move a package to a new status.

        Args:
            package_id: Package UUID
            new_status: Target status
            actor: Who makes the change
            reason: Free-text reason recorded in the status log

        Returns:
            Updated Package instance

        Raises:
            NotFoundException: If the package does not exist
            InvalidStateException: If the package is in an active shipment
            InvalidTransitionException: If the transition is not allowed
        """
        with transaction.atomic():
            package = PackageService.get_package(package_id, lock=True)
            PackageService._ensure_not_linked([package])
            validate_package_workflow(package, new_status)

            changes = {}
            if new_status == PackageStatus.RECEIVED:
                changes['received_at'] = timezone.now()
            old_status = apply_transition(package, new_status, actor, reason, **changes)

            logger.info(f"Package {package.internal_id}: {old_status} -> {new_status} by {actor or 'system'}")
            return package

    @staticmethod
    def bulk_transition(package_ids: List[str], new_status: str, actor: str = "", reason: str = "") -> List[Package]:
        """
        Move several packages to the same status, all or nothing.

        Raises:
            ValidationException: If no ids were given
            NotFoundException: Listing every unknown id
            InvalidStateException: Listing every package in an active shipment
            InvalidTransitionException: Listing every package that cannot move
        """
        unique_ids = list(dict.fromkeys(str(package_id) for package_id in package_ids or []))
        if not unique_ids:
            raise ValidationException("At least one package id is required", {'package_ids': 'required'})

        with transaction.atomic():
            try:
                packages = list(Package.objects.select_for_update().filter(id__in=unique_ids).order_by('id'))
            except (ValueError, DjangoValidationError):
                raise ValidationException("Invalid package id", {'package_ids': 'invalid'})

            found = {str(package.id) for package in packages}
            missing = [package_id for package_id in unique_ids if package_id not in found]
            if missing:
                raise NotFoundException('Package', missing)

            PackageService._ensure_not_linked(packages)
            PackageWorkflow.validate_many(packages, new_status)

            for package in packages:
                changes = {}
                if new_status == PackageStatus.RECEIVED:
                    changes['received_at'] = timezone.now()
                apply_transition(package, new_status, actor, reason, **changes)

            logger.info(f"{len(packages)} packages moved to {new_status} by {actor or 'system'}")
            return packages
