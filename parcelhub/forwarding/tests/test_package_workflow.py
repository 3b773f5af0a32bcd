"""
Tests for the package state machine and its status log.
"""

from decimal import Decimal
from django.test import TestCase

from ..exceptions import (
    InvalidStateException, InvalidTransitionException, NotFoundException, ValidationException
)
from ..models import AuditLog, PackageStatus, PackageStatusHistory
from ..services import PackageService, PackageWorkflow, ShipmentService
from .helpers import make_ready_package, OTHER_WAREHOUSE_ID, STANDARD_MEASUREMENTS, WAREHOUSE_ID, ZONE_ID


class PackageWorkflowTest(TestCase):
    """Test package transitions."""

    def setUp(self):
        self.customer_id = '1001'
        self.package = PackageService.create_package(
            self.customer_id, WAREHOUSE_ID, 'staff',
            {'inbound_tracking_number': 'PRE-ALERT-1', 'description': 'Shoes'}
        )

    def test_expected_package_opens_history(self):
        self.assertEqual(self.package.status, PackageStatus.EXPECTED)
        self.assertTrue(self.package.internal_id.startswith('PKG-'))

        history = list(self.package.status_history.all())
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].sequence, 1)
        self.assertEqual(history[0].from_status, '')
        self.assertEqual(history[0].to_status, PackageStatus.EXPECTED)

    def test_receive_records_measurements(self):
        package = PackageService.receive(str(self.package.id), STANDARD_MEASUREMENTS, 'staff')

        self.assertEqual(package.status, PackageStatus.RECEIVED)
        self.assertIsNotNone(package.received_at)
        self.assertEqual(package.volumetric_weight_kg, Decimal('1.2'))
        self.assertEqual(package.chargeable_weight_kg, Decimal('2.0'))

    def test_happy_path_is_logged_in_order(self):
        PackageService.receive(str(self.package.id), STANDARD_MEASUREMENTS, 'staff')
        PackageService.transition(str(self.package.id), PackageStatus.READY_TO_SHIP, 'staff', 'Consolidated')

        history = list(self.package.status_history.order_by('sequence'))
        self.assertEqual([row.sequence for row in history], [1, 2, 3])
        self.assertEqual(
            [(row.from_status, row.to_status) for row in history],
            [
                ('', PackageStatus.EXPECTED),
                (PackageStatus.EXPECTED, PackageStatus.RECEIVED),
                (PackageStatus.RECEIVED, PackageStatus.READY_TO_SHIP),
            ]
        )
        self.assertEqual(history[2].reason, 'Consolidated')
        self.assertEqual(history[2].actor, 'staff')

    def test_cannot_skip_states(self):
        for target in [PackageStatus.SHIPPED, PackageStatus.READY_TO_SHIP, PackageStatus.DELIVERED]:
            with self.assertRaises(InvalidTransitionException) as ctx:
                PackageService.transition(str(self.package.id), target, 'staff')
            self.assertEqual(ctx.exception.details['current_status'], PackageStatus.EXPECTED)
            self.assertEqual(ctx.exception.details['attempted_status'], target)

        self.package.refresh_from_db()
        self.assertEqual(self.package.status, PackageStatus.EXPECTED)
        self.assertEqual(self.package.status_history.count(), 1)

    def test_self_transition_refused(self):
        with self.assertRaises(InvalidTransitionException):
            PackageService.transition(str(self.package.id), PackageStatus.EXPECTED, 'staff')

    def test_exception_exits(self):
        PackageService.receive(str(self.package.id), STANDARD_MEASUREMENTS, 'staff')
        PackageService.transition(str(self.package.id), PackageStatus.DAMAGED, 'staff', 'Crushed box')
        package = PackageService.transition(str(self.package.id), PackageStatus.RETURNED, 'staff')

        self.assertEqual(package.status, PackageStatus.RETURNED)
        self.assertEqual(PackageWorkflow.allowed_targets(PackageStatus.RETURNED), [])
        with self.assertRaises(InvalidTransitionException):
            PackageService.transition(str(self.package.id), PackageStatus.RECEIVED, 'staff')

    def test_only_shipping_path_reaches_delivered(self):
        for status in PackageStatus.values:
            allowed = PackageWorkflow.allowed_targets(status)
            if PackageStatus.DELIVERED in allowed:
                self.assertEqual(status, PackageStatus.SHIPPED)
            if PackageStatus.SHIPPED in allowed:
                self.assertEqual(status, PackageStatus.READY_TO_SHIP)

    def test_history_rows_are_immutable(self):
        row = self.package.status_history.get()

        row.reason = 'rewritten'
        with self.assertRaises(ValidationException):
            row.save()
        with self.assertRaises(ValidationException):
            row.delete()
        self.assertEqual(PackageStatusHistory.objects.filter(package=self.package).count(), 1)

    def test_owner_fields_are_immutable(self):
        package = PackageService.get_package(str(self.package.id))
        package.warehouse_id = OTHER_WAREHOUSE_ID

        with self.assertRaises(ValidationException) as ctx:
            package.save()
        self.assertIn('warehouse_id', ctx.exception.details)

    def test_get_package_scoped_to_customer(self):
        with self.assertRaises(NotFoundException):
            PackageService.get_package(str(self.package.id), customer_id='someone-else')
        with self.assertRaises(NotFoundException):
            PackageService.get_package('not-a-uuid')

    def test_record_measurements_audited(self):
        PackageService.receive(str(self.package.id), STANDARD_MEASUREMENTS, 'staff')

        package = PackageService.record_measurements(
            str(self.package.id),
            {'length_cm': Decimal('50'), 'width_cm': Decimal('40'), 'height_cm': Decimal('30')},
            'staff'
        )

        self.assertEqual(package.chargeable_weight_kg, Decimal('12'))
        log = AuditLog.objects.get(entity_id=str(self.package.id), action='measured')
        self.assertEqual(log.new_values['chargeable_weight_kg'], '12.0000')

    def test_negative_measurement_rejected(self):
        with self.assertRaises(ValidationException):
            PackageService.receive(str(self.package.id), {'weight_kg': Decimal('-1')}, 'staff')

    def test_attach_document_once(self):
        PackageService.attach_document(str(self.package.id), 'doc-1', 'staff')
        package = PackageService.attach_document(str(self.package.id), 'doc-1', 'staff')

        self.assertEqual(package.document_ids, ['doc-1'])
        self.assertEqual(AuditLog.objects.filter(action='document_attached').count(), 1)


class BulkTransitionTest(TestCase):
    """Test all-or-nothing bulk package transitions."""

    def setUp(self):
        self.customer_id = '1001'

    def _received(self):
        return PackageService.create_package(
            self.customer_id, WAREHOUSE_ID, 'staff', dict(STANDARD_MEASUREMENTS),
            initial_status=PackageStatus.RECEIVED
        )

    def test_bulk_transition(self):
        packages = [self._received() for _ in range(3)]

        moved = PackageService.bulk_transition(
            [str(package.id) for package in packages], PackageStatus.READY_TO_SHIP, 'staff'
        )

        self.assertEqual(len(moved), 3)
        for package in packages:
            package.refresh_from_db()
            self.assertEqual(package.status, PackageStatus.READY_TO_SHIP)

    def test_bulk_transition_all_or_nothing(self):
        first = self._received()
        second = self._received()
        expected = PackageService.create_package(self.customer_id, WAREHOUSE_ID, 'staff')

        with self.assertRaises(InvalidTransitionException) as ctx:
            PackageService.bulk_transition(
                [str(first.id), str(second.id), str(expected.id)], PackageStatus.READY_TO_SHIP, 'staff'
            )

        failures = ctx.exception.details['failures']
        self.assertEqual([failure['id'] for failure in failures], [str(expected.id)])
        for package in [first, second]:
            package.refresh_from_db()
            self.assertEqual(package.status, PackageStatus.RECEIVED)
            self.assertEqual(package.status_history.count(), 1)

    def test_bulk_transition_lists_unknown_ids(self):
        package = self._received()
        missing = '00000000-0000-0000-0000-000000000002'

        with self.assertRaises(NotFoundException) as ctx:
            PackageService.bulk_transition([str(package.id), missing], PackageStatus.HELD, 'staff')
        self.assertEqual(ctx.exception.details['ids'], [missing])

    def test_linked_package_refuses_manual_changes(self):
        package = make_ready_package(self.customer_id)
        ShipmentService.create_shipment(self.customer_id, [str(package.id)], str(ZONE_ID), self.customer_id)

        with self.assertRaises(InvalidStateException):
            PackageService.transition(str(package.id), PackageStatus.HELD, 'staff')
        with self.assertRaises(InvalidStateException):
            PackageService.bulk_transition([str(package.id)], PackageStatus.HELD, 'staff')
        with self.assertRaises(InvalidStateException):
            PackageService.record_measurements(str(package.id), {'weight_kg': Decimal('5')}, 'staff')

        package.refresh_from_db()
        self.assertEqual(package.status, PackageStatus.READY_TO_SHIP)
