"""
Intake Service for the forwarding engine.

Handles courier batches at the warehouse door: scanning tracking numbers,
assigning scanned items to customers and turning them into packages.
"""

import logging
from typing import Dict, Any, List, Optional
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from ..models import (
    IncomingBatch, BatchStatus, ScannedItem, AssignmentStatus,
    DuplicateScan, PackageStatus, AuditLog
)
from ..exceptions import (
    NotFoundException, AlreadyAssignedException, InvalidStateException, ValidationException
)
from .package_service import PackageService

logger = logging.getLogger(__name__)


class IntakeService:
    """Service class for intake operations."""

    @staticmethod
    def get_batch(batch_id: str, lock: bool = False) -> IncomingBatch:
        queryset = IncomingBatch.objects.select_for_update() if lock else IncomingBatch.objects.all()
        try:
            return queryset.get(id=batch_id)
        except (IncomingBatch.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundException('IncomingBatch', [batch_id])

    @staticmethod
    def get_item(item_id: str, lock: bool = False) -> ScannedItem:
        queryset = ScannedItem.objects.select_for_update() if lock else ScannedItem.objects.all()
        try:
            return queryset.select_related('batch').get(id=item_id)
        except (ScannedItem.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundException('ScannedItem', [item_id])

    @staticmethod
    def start_batch(warehouse_id: str, courier_id: str, started_by: str = "",
                    batch_data: Optional[Dict[str, Any]] = None) -> IncomingBatch:
        """
        Open a scan session for a courier delivery.

        Args:
            warehouse_id: Receiving warehouse
            courier_id: Delivering courier
            started_by: Staff member starting the session
            batch_data: Optional courier_name, tracking_url_template,
                expected_piece_count, arrival_date, notes

        Returns:
            Created IncomingBatch in ``pending`` status
        """
        batch_data = batch_data or {}
        missing = {name: 'required' for name, value in
                   [('warehouse_id', warehouse_id), ('courier_id', courier_id)] if not value}
        if missing:
            raise ValidationException(f"Missing required fields: {', '.join(missing)}", missing)

        expected = batch_data.get('expected_piece_count') or 0
        if int(expected) < 0:
            raise ValidationException("expected_piece_count cannot be negative", {'expected_piece_count': 'negative'})

        batch = IncomingBatch.objects.create(
            warehouse_id=warehouse_id,
            courier_id=courier_id,
            courier_name=batch_data.get('courier_name', ''),
            tracking_url_template=batch_data.get('tracking_url_template', ''),
            expected_piece_count=int(expected),
            arrival_date=batch_data.get('arrival_date') or timezone.localdate(),
            notes=batch_data.get('notes', ''),
            started_by=started_by or '',
        )

        logger.info(f"Batch {batch.batch_number} started at warehouse {warehouse_id} by {started_by or 'system'}")
        return batch

    @staticmethod
    def _scan_locked(batch: IncomingBatch, tracking_number: str, scanned_by: str) -> Dict[str, Any]:
        tracking_number = (tracking_number or '').strip()
        if not tracking_number:
            raise ValidationException("Tracking number is required", {'tracking_number': 'required'})

        existing = batch.items.filter(tracking_number=tracking_number).first()
        if existing is not None:
            duplicate = DuplicateScan.objects.create(
                batch=batch,
                original_item=existing,
                tracking_number=tracking_number,
                scanned_by=scanned_by or '',
            )
            logger.warning(
                f"Duplicate scan of {tracking_number} in batch {batch.batch_number} by {scanned_by or 'system'}"
            )
            return {'item': existing, 'duplicate': True, 'duplicate_scan': duplicate}

        item = ScannedItem.objects.create(
            batch=batch,
            tracking_number=tracking_number,
            courier_tracking_url=batch.tracking_url_for(tracking_number),
            scanned_by=scanned_by or '',
        )
        logger.info(f"Scanned {tracking_number} in batch {batch.batch_number}")
        return {'item': item, 'duplicate': False, 'duplicate_scan': None}

    @staticmethod
    def _open_for_scanning(batch: IncomingBatch) -> None:
        if batch.is_closed:
            raise InvalidStateException(
                f"Batch {batch.batch_number} is closed for scanning",
                {'batch_id': str(batch.id), 'status': batch.status}
            )
        if batch.status == BatchStatus.PENDING:
            batch.status = BatchStatus.SCANNING
            batch.save(update_fields=['status', 'updated_at'])

    @staticmethod
    def scan(batch_id: str, tracking_number: str, scanned_by: str = "") -> Dict[str, Any]:
        """
        Record one scanned tracking number in a batch.

        A tracking number already live in the batch is recorded as a duplicate
        scan; the original item is left untouched and the call still succeeds.

        Args:
            batch_id: IncomingBatch UUID
            tracking_number: Scanned value (surrounding whitespace is ignored)
            scanned_by: Staff member scanning

        Returns:
            Dict with ``item``, ``duplicate`` and ``duplicate_scan``

        Raises:
            NotFoundException: If the batch does not exist
            InvalidStateException: If the batch is already closed
            ValidationException: If the tracking number is empty
        """
        with transaction.atomic():
            batch = IntakeService.get_batch(batch_id, lock=True)
            IntakeService._open_for_scanning(batch)
            return IntakeService._scan_locked(batch, tracking_number, scanned_by)

    @staticmethod
    def scan_many(batch_id: str, tracking_numbers: List[str], scanned_by: str = "") -> Dict[str, Any]:
        """
        Scan a list of tracking numbers in one go.

        Repeats inside the list are handled like repeat scans.

        Returns:
            Dict with ``items`` (newly created) and ``duplicates`` (DuplicateScan rows)
        """
        if not tracking_numbers:
            raise ValidationException("At least one tracking number is required", {'tracking_numbers': 'required'})

        with transaction.atomic():
            batch = IntakeService.get_batch(batch_id, lock=True)
            IntakeService._open_for_scanning(batch)

            items, duplicates = [], []
            for tracking_number in tracking_numbers:
                result = IntakeService._scan_locked(batch, tracking_number, scanned_by)
                if result['duplicate']:
                    duplicates.append(result['duplicate_scan'])
                else:
                    items.append(result['item'])

            logger.info(
                f"Bulk scan in batch {batch.batch_number}: {len(items)} new, {len(duplicates)} duplicates"
            )
            return {'items': items, 'duplicates': duplicates}

    @staticmethod
    def assign(item_ids: List[str], customer_id: str, assigned_by: str = "", notes: str = "") -> List[ScannedItem]:
        """
        Assign scanned items to a customer, all or nothing.

        Args:
            item_ids: ScannedItem UUIDs
            customer_id: Customer receiving the items
            assigned_by: Staff member assigning
            notes: Optional note stored on every item

        Returns:
            List of updated ScannedItem instances

        Raises:
            ValidationException: If no ids or no customer were given
            NotFoundException: Listing every unknown id
            AlreadyAssignedException: Listing every item that is not unassigned
        """
        unique_ids = list(dict.fromkeys(str(item_id) for item_id in item_ids or []))
        if not unique_ids:
            raise ValidationException("At least one item id is required", {'item_ids': 'required'})
        if not customer_id:
            raise ValidationException("customer_id is required", {'customer_id': 'required'})

        with transaction.atomic():
            try:
                items = list(ScannedItem.objects.select_for_update().filter(id__in=unique_ids).order_by('id'))
            except (ValueError, DjangoValidationError):
                raise ValidationException("Invalid item id", {'item_ids': 'invalid'})

            found = {str(item.id) for item in items}
            missing = [item_id for item_id in unique_ids if item_id not in found]
            if missing:
                raise NotFoundException('ScannedItem', missing)

            taken = [item.id for item in items if item.assignment_status != AssignmentStatus.UNASSIGNED]
            if taken:
                raise AlreadyAssignedException(taken)

            now = timezone.now()
            for item in items:
                item.assignment_status = AssignmentStatus.ASSIGNED
                item.customer_id = str(customer_id)
                item.assigned_at = now
                item.assigned_by = assigned_by or ''
                if notes:
                    item.notes = notes
                item.save()

                AuditLog.log_change(
                    entity=item,
                    action='assigned',
                    actor=assigned_by,
                    old_values={'assignment_status': AssignmentStatus.UNASSIGNED},
                    new_values={'assignment_status': AssignmentStatus.ASSIGNED, 'customer_id': customer_id},
                    notes=notes,
                )

            logger.info(f"{len(items)} items assigned to customer {customer_id} by {assigned_by or 'system'}")
            return items

    @staticmethod
    def unassign(item_id: str, unassigned_by: str = "", reason: str = "") -> ScannedItem:
        """
        Return an assigned item to the unassigned pool.

        Raises:
            NotFoundException: If the item does not exist
            InvalidStateException: If the item is not assigned or already
                became a package
        """
        with transaction.atomic():
            item = IntakeService.get_item(item_id, lock=True)

            if not item.is_assigned:
                raise InvalidStateException(
                    f"Item {item.tracking_number} is not assigned",
                    {'item_id': str(item.id), 'assignment_status': item.assignment_status}
                )
            if item.has_package:
                raise InvalidStateException(
                    f"Item {item.tracking_number} already became package {item.package.internal_id}",
                    {'item_id': str(item.id), 'package_id': str(item.package.id)}
                )

            previous_customer = item.customer_id
            item.assignment_status = AssignmentStatus.UNASSIGNED
            item.customer_id = ''
            item.assigned_at = None
            item.assigned_by = ''
            item.save()

            AuditLog.log_change(
                entity=item,
                action='unassigned',
                actor=unassigned_by,
                old_values={'assignment_status': AssignmentStatus.ASSIGNED, 'customer_id': previous_customer},
                new_values={'assignment_status': AssignmentStatus.UNASSIGNED},
                notes=reason,
            )

            logger.info(f"Item {item.tracking_number} unassigned from customer {previous_customer}")
            return item

    @staticmethod
    def complete_batch(batch_id: str, completed_by: str = "") -> IncomingBatch:
        """
        Close a batch for scanning.

        Raises:
            NotFoundException: If the batch does not exist
            InvalidStateException: If the batch is already closed or has no items
        """
        with transaction.atomic():
            batch = IntakeService.get_batch(batch_id, lock=True)

            if batch.is_closed:
                raise InvalidStateException(
                    f"Batch {batch.batch_number} is already complete",
                    {'batch_id': str(batch.id), 'status': batch.status}
                )

            item_count = batch.live_item_count
            if item_count == 0:
                raise InvalidStateException(
                    f"Batch {batch.batch_number} has no scanned items",
                    {'batch_id': str(batch.id), 'item_count': 0}
                )

            batch.status = BatchStatus.SCANNED
            batch.completed_at = timezone.now()
            batch.completed_by = completed_by or ''
            batch.save()

            if batch.expected_piece_count and batch.expected_piece_count != item_count:
                logger.warning(
                    f"Batch {batch.batch_number} completed with {item_count} items, "
                    f"{batch.expected_piece_count} expected"
                )
            logger.info(f"Batch {batch.batch_number} completed by {completed_by or 'system'}")
            return batch

    @staticmethod
    def create_package_from_item(item_id: str, package_data: Optional[Dict[str, Any]] = None,
                                 created_by: str = ""):
        """
        Turn an assigned scanned item into a received package.

        Args:
            item_id: ScannedItem UUID
            package_data: Measurements, declared value, flags, description
            created_by: Staff member creating the package

        Returns:
            Created Package instance

        Raises:
            NotFoundException: If the item does not exist
            InvalidStateException: If the item is unassigned or already converted
        """
        with transaction.atomic():
            item = IntakeService.get_item(item_id, lock=True)

            if not item.is_assigned:
                raise InvalidStateException(
                    f"Item {item.tracking_number} must be assigned before it becomes a package",
                    {'item_id': str(item.id), 'assignment_status': item.assignment_status}
                )
            if item.has_package:
                raise InvalidStateException(
                    f"Item {item.tracking_number} already became package {item.package.internal_id}",
                    {'item_id': str(item.id), 'package_id': str(item.package.id)}
                )

            data = dict(package_data or {})
            data.setdefault('inbound_tracking_number', item.tracking_number)
            data.setdefault('reason', f"Received in batch {item.batch.batch_number}")

            package = PackageService.create_package(
                customer_id=item.customer_id,
                warehouse_id=item.batch.warehouse_id,
                created_by=created_by,
                package_data=data,
                scanned_item=item,
                initial_status=PackageStatus.RECEIVED,
            )

            logger.info(f"Item {item.tracking_number} converted to package {package.internal_id}")
            return package
