"""
Shipment Service for the forwarding engine.

Handles shipment creation from ready packages, quoting, cancellation,
refunds and the operational delivery workflow.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Any, List, Optional
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from ..conf import forwarding_setting
from ..models import (
    Package, PackageStatus, Shipment, ShipmentStatus, ShipmentPackage,
    ServiceType, AuditLog
)
from ..exceptions import (
    NotFoundException, InvalidStateException, InvalidTransitionException, ValidationException
)
from .history import append_history, apply_transition
from .rate_calculator import RateCalculator, RateQuote
from .storage_fees import calculate_storage_fees
from .weights import compute_package_weights, quantize_money
from .workflow import PackageWorkflow, ShipmentWorkflow, validate_shipment_workflow

logger = logging.getLogger(__name__)


class ShipmentService:
    """Service class for shipment operations."""

    @staticmethod
    def get_shipment(shipment_id: str, customer_id: str = None, lock: bool = False) -> Shipment:
        """
        Fetch a shipment, optionally scoped to a customer.

        A shipment belonging to another customer is reported as not found.
        """
        queryset = Shipment.objects.select_for_update() if lock else Shipment.objects.all()
        if customer_id is not None:
            queryset = queryset.filter(customer_id=customer_id)
        try:
            return queryset.get(id=shipment_id)
        except (Shipment.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundException('Shipment', [shipment_id])

    @staticmethod
    def rate_quote_for(shipment: Shipment) -> Optional[RateQuote]:
        """The stored rate trace of a quoted shipment as a RateQuote."""
        if shipment.rate_base is None:
            return None
        return RateQuote(
            rate_id=str(shipment.rate_id) if shipment.rate_id else '',
            service_type=shipment.service_type,
            zone_id=str(shipment.rate_zone_id),
            base_rate=shipment.rate_base,
            per_kg_rate=shipment.rate_per_kg,
            weight_charge=shipment.rate_weight_charge,
            min_charge=shipment.rate_min_charge,
            min_charge_applied=shipment.rate_min_charge_applied,
            final_amount=quantize_money(shipment.shipping_cost, shipment.cost_currency),
            currency=shipment.cost_currency,
            chargeable_weight_kg=shipment.rate_chargeable_weight_kg,
        )

    @staticmethod
    def chargeable_weight_for(shipment: Shipment, service_type: str, packages=None) -> Decimal:
        """
        Total chargeable weight of the linked packages under the volumetric
        divisor of the shipment's warehouse and the given service.
        """
        if packages is None:
            packages = shipment.linked_packages()
        total = Decimal('0')
        for package in packages:
            _, chargeable = compute_package_weights(
                package.weight_kg, package.length_cm, package.width_cm, package.height_cm,
                warehouse_id=shipment.warehouse_id, service_type=service_type,
            )
            total += chargeable
        return total

    @staticmethod
    def create_shipment(customer_id: str, package_ids: List[str], destination_zone_id: str,
                        created_by: str = "", shipment_data: Optional[Dict[str, Any]] = None) -> Shipment:
        """
        Consolidate ready packages into a new shipment awaiting a quote.

        Args:
            customer_id: Customer requesting the shipment
            package_ids: Packages to ship together
            destination_zone_id: Zone of the shipping address
            created_by: Actor creating the shipment
            shipment_data: Optional service_type and shipping_address_id

        Returns:
            Created Shipment in ``quote_requested`` status

        Raises:
            ValidationException: If input is missing or packages span warehouses
            NotFoundException: Listing packages that do not exist or belong to
                another customer
            InvalidStateException: Listing packages that are not ready to ship
                or already in a shipment
        """
        shipment_data = shipment_data or {}
        unique_ids = list(dict.fromkeys(str(package_id) for package_id in package_ids or []))
        if not unique_ids:
            raise ValidationException("At least one package is required", {'package_ids': 'required'})
        if not destination_zone_id:
            raise ValidationException("destination_zone_id is required", {'destination_zone_id': 'required'})

        service_type = shipment_data.get('service_type') or ServiceType.STANDARD
        if service_type not in ServiceType.values:
            raise ValidationException(f"Unknown service type: {service_type}", {'service_type': service_type})

        with transaction.atomic():
            try:
                packages = list(
                    Package.objects.select_for_update()
                    .filter(id__in=unique_ids, customer_id=str(customer_id))
                    .order_by('id')
                )
            except (ValueError, DjangoValidationError):
                raise ValidationException("Invalid package id", {'package_ids': 'invalid'})

            found = {str(package.id) for package in packages}
            missing = [package_id for package_id in unique_ids if package_id not in found]
            if missing:
                raise NotFoundException('Package', missing)

            warehouses = {str(package.warehouse_id) for package in packages}
            if len(warehouses) > 1:
                raise ValidationException(
                    "Packages in one shipment must be held in the same warehouse",
                    {'warehouse_ids': sorted(warehouses)}
                )

            not_ready = [
                {'id': str(package.id), 'status': package.status}
                for package in packages if package.status != PackageStatus.READY_TO_SHIP
            ]
            if not_ready:
                raise InvalidStateException(
                    f"Packages not ready to ship: {', '.join(item['id'] for item in not_ready)}",
                    {'packages': not_ready}
                )

            linked = list(
                ShipmentPackage.objects.filter(package__in=packages, released_at__isnull=True)
                .values_list('package_id', 'shipment_id')
            )
            if linked:
                offenders = [{'id': str(package_id), 'shipment_id': str(shipment_id)}
                             for package_id, shipment_id in linked]
                raise InvalidStateException(
                    f"Packages already in a shipment: {', '.join(item['id'] for item in offenders)}",
                    {'packages': offenders}
                )

            zero = Decimal('0')
            shipment = Shipment(
                customer_id=str(customer_id),
                warehouse_id=packages[0].warehouse_id,
                destination_zone_id=destination_zone_id,
                shipping_address_id=str(shipment_data.get('shipping_address_id') or ''),
                service_type=service_type,
                total_weight_kg=sum((package.weight_kg or zero for package in packages), zero),
                total_declared_value=sum((package.declared_value or zero for package in packages), zero),
                declared_value_currency=packages[0].declared_currency,
                cost_currency=forwarding_setting('DEFAULT_CURRENCY'),
                created_by=created_by or '',
            )
            shipment.total_chargeable_weight_kg = ShipmentService.chargeable_weight_for(
                shipment, service_type, packages
            )
            shipment.save()
            append_history(shipment, '', ShipmentStatus.QUOTE_REQUESTED, created_by, 'Shipment requested')

            for sequence_number, package in enumerate(packages, 1):
                ShipmentPackage.objects.create(
                    shipment=shipment,
                    package=package,
                    sequence_number=sequence_number,
                )

            logger.info(
                f"Shipment {shipment.shipment_number} created for customer {customer_id} "
                f"with {len(packages)} packages"
            )
            return shipment

    @staticmethod
    def quote(shipment_id: str, quoted_by: str = "", service_type: str = None,
              customer_id: str = None) -> Shipment:
        """
        Price a shipment and move it to ``quoted``.

        A shipment that is already quoted is re-requested first, so an expired
        quote can be refreshed.

        Args:
            shipment_id: Shipment UUID
            quoted_by: Actor requesting the quote
            service_type: Optional new service level
            customer_id: Restrict to this customer's shipments

        Returns:
            Updated Shipment instance

        Raises:
            NotFoundException: If the shipment does not exist
            InvalidTransitionException: If the shipment is past quoting
            RateNotFoundException: If no rate applies
            WeightExceedsLimitException: If the weight is above the rate maximum
        """
        if service_type and service_type not in ServiceType.values:
            raise ValidationException(f"Unknown service type: {service_type}", {'service_type': service_type})

        with transaction.atomic():
            shipment = ShipmentService.get_shipment(shipment_id, customer_id, lock=True)

            if shipment.status == ShipmentStatus.QUOTED:
                reason = 'Quote expired' if shipment.is_quote_expired else 'Re-quote requested'
                apply_transition(shipment, ShipmentStatus.QUOTE_REQUESTED, quoted_by, reason)
            validate_shipment_workflow(shipment, ShipmentStatus.QUOTED)

            if service_type:
                shipment.service_type = service_type

            packages = list(shipment.linked_packages())
            chargeable_weight = ShipmentService.chargeable_weight_for(shipment, shipment.service_type, packages)
            rate_quote = RateCalculator.quote(
                shipment.warehouse_id,
                shipment.destination_zone_id,
                shipment.service_type,
                chargeable_weight,
            )
            currency = rate_quote.currency

            storage_fee = calculate_storage_fees(packages, currency).total
            handling_fee = quantize_money(
                forwarding_setting('HANDLING_FEE_PER_PACKAGE') * len(packages), currency
            )
            insurance_cost = quantize_money(
                forwarding_setting('INSURANCE_RATE') * shipment.total_declared_value, currency
            )
            shipping_cost = rate_quote.final_amount
            now = timezone.now()

            apply_transition(
                shipment, ShipmentStatus.QUOTED, quoted_by,
                f"{shipment.service_type} quote {shipping_cost} {currency}",
                shipping_cost=shipping_cost,
                insurance_cost=insurance_cost,
                handling_fee=handling_fee,
                storage_fee=storage_fee,
                total_cost=shipping_cost + insurance_cost + handling_fee + storage_fee,
                total_chargeable_weight_kg=chargeable_weight,
                cost_currency=currency,
                rate_id=rate_quote.rate_id,
                rate_zone_id=rate_quote.zone_id,
                rate_base=rate_quote.base_rate,
                rate_per_kg=rate_quote.per_kg_rate,
                rate_weight_charge=rate_quote.weight_charge,
                rate_min_charge=rate_quote.min_charge,
                rate_min_charge_applied=rate_quote.min_charge_applied,
                rate_chargeable_weight_kg=rate_quote.chargeable_weight_kg,
                quoted_at=now,
                quote_expires_at=now + timedelta(hours=int(forwarding_setting('QUOTE_VALIDITY_HOURS'))),
            )

            logger.info(
                f"Shipment {shipment.shipment_number} quoted at {shipment.total_cost} {currency} "
                f"({shipment.service_type}, {shipment.total_chargeable_weight_kg}kg)"
            )
            return shipment

    @staticmethod
    def available_services(shipment_id: str, customer_id: str = None) -> List[RateQuote]:
        """Rate quotes for every service that can carry the shipment, cheapest first."""
        shipment = ShipmentService.get_shipment(shipment_id, customer_id)
        packages = list(shipment.linked_packages())
        return RateCalculator.available_services(
            shipment.warehouse_id,
            shipment.destination_zone_id,
            shipment.total_chargeable_weight_kg,
            service_weights={
                service_type: ShipmentService.chargeable_weight_for(shipment, service_type, packages)
                for service_type in ServiceType.values
            },
        )

    @staticmethod
    def cancel(shipment_id: str, cancelled_by: str = "", reason: str = "",
               customer_id: str = None) -> Shipment:
        """
        Cancel a shipment that has not been paid and release its packages.

        Released packages stay ``ready_to_ship`` and can join a new shipment.

        Raises:
            NotFoundException: If the shipment does not exist
            InvalidTransitionException: If the shipment is already paid or closed
        """
        with transaction.atomic():
            shipment = ShipmentService.get_shipment(shipment_id, customer_id, lock=True)
            validate_shipment_workflow(shipment, ShipmentStatus.CANCELLED)

            now = timezone.now()
            released = list(
                shipment.package_links.filter(released_at__isnull=True).values_list('package_id', flat=True)
            )
            shipment.package_links.filter(released_at__isnull=True).update(released_at=now)

            apply_transition(
                shipment, ShipmentStatus.CANCELLED, cancelled_by, reason,
                cancelled_at=now,
                status_reason=reason or '',
            )
            AuditLog.log_change(
                entity=shipment,
                action='packages_released',
                actor=cancelled_by,
                new_values={'package_ids': [str(package_id) for package_id in released]},
                notes=reason,
            )

            logger.info(
                f"Shipment {shipment.shipment_number} cancelled by {cancelled_by or 'system'}; "
                f"{len(released)} packages released"
            )
            return shipment

    @staticmethod
    def refund(shipment_id: str, refunded_by: str = "", reason: str = "",
               refund_reference: str = "") -> Shipment:
        """
        Record a refund for a paid shipment.

        The invoice and package statuses are left as they are; package links
        are released.

        Raises:
            NotFoundException: If the shipment does not exist
            InvalidTransitionException: If the shipment cannot be refunded
        """
        with transaction.atomic():
            shipment = ShipmentService.get_shipment(shipment_id, lock=True)
            validate_shipment_workflow(shipment, ShipmentStatus.REFUNDED)

            now = timezone.now()
            shipment.package_links.filter(released_at__isnull=True).update(released_at=now)
            apply_transition(
                shipment, ShipmentStatus.REFUNDED, refunded_by, reason,
                refunded_at=now,
                status_reason=reason or '',
                refund_reference=refund_reference or '',
            )

            logger.info(f"Shipment {shipment.shipment_number} refunded by {refunded_by or 'system'}")
            return shipment

    @staticmethod
    def update_status(shipment_id: str, new_status: str, updated_by: str = "", reason: str = "",
                      tracking_number: str = None) -> Shipment:
        """
        Move a paid shipment through processing and delivery.

        Quoting, payment, cancellation and refunds have their own operations
        and are refused here.

        Args:
            shipment_id: Shipment UUID
            new_status: Operational target status
            updated_by: Actor making the change
            reason: Free-text reason recorded in the status log
            tracking_number: Carrier tracking number, stored on dispatch

        Returns:
            Updated Shipment instance

        Raises:
            ValidationException: If the status is unknown
            NotFoundException: If the shipment does not exist
            InvalidTransitionException: If the transition is not allowed here
        """
        if new_status not in ShipmentStatus.values:
            raise ValidationException(f"Unknown shipment status: {new_status}", {'status': new_status})

        with transaction.atomic():
            shipment = ShipmentService.get_shipment(shipment_id, lock=True)

            if new_status in ShipmentWorkflow.RESERVED_TARGETS:
                raise InvalidTransitionException(
                    current_status=shipment.status,
                    attempted_status=new_status,
                    entity_type='shipment',
                    entity_id=shipment.id,
                )
            validate_shipment_workflow(shipment, new_status)

            changes = {}
            now = timezone.now()
            if new_status == ShipmentStatus.DISPATCHED:
                changes['dispatched_at'] = now
                if tracking_number:
                    changes['tracking_number'] = tracking_number
            elif new_status == ShipmentStatus.DELIVERED:
                changes['delivered_at'] = now
            elif tracking_number:
                changes['tracking_number'] = tracking_number

            old_status = apply_transition(shipment, new_status, updated_by, reason, **changes)

            if new_status == ShipmentStatus.DELIVERED:
                ShipmentService.move_linked_packages(
                    shipment, PackageStatus.DELIVERED, updated_by,
                    f"Shipment {shipment.shipment_number} delivered"
                )

            logger.info(
                f"Shipment {shipment.shipment_number}: {old_status} -> {new_status} by {updated_by or 'system'}"
            )
            return shipment

    @staticmethod
    def move_linked_packages(shipment: Shipment, new_status: str, actor: str, reason: str) -> List[Package]:
        """Move every actively linked package of a locked shipment."""
        packages = list(
            Package.objects.select_for_update()
            .filter(shipment_links__shipment=shipment, shipment_links__released_at__isnull=True)
            .order_by('id')
        )
        PackageWorkflow.validate_many(packages, new_status)
        for package in packages:
            apply_transition(package, new_status, actor, reason)
        return packages
