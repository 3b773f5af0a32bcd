"""
Tests for the intake pipeline: batches, scans, assignment and package creation.
"""

from decimal import Decimal
from django.test import TestCase
from django.contrib.auth import get_user_model

from ..exceptions import (
    AlreadyAssignedException, InvalidStateException, NotFoundException, ValidationException
)
from ..models import (
    AssignmentStatus, AuditLog, BatchStatus, DuplicateScan, PackageStatus, ScannedItem
)
from ..services import IntakeService
from .helpers import COURIER_ID, WAREHOUSE_ID


class IntakeFlowTest(TestCase):
    """Test the intake pipeline from scan to package."""

    def setUp(self):
        self.user = get_user_model().objects.create_user(
            username='dockworker',
            password='testpass123',
            is_staff=True,
        )
        self.customer_id = '1001'
        self.batch = IntakeService.start_batch(
            WAREHOUSE_ID, COURIER_ID, self.user.username,
            {
                'courier_name': 'Fast Courier',
                'tracking_url_template': 'https://track.example.com/{tracking_number}',
                'expected_piece_count': 2,
            }
        )

    def test_start_batch(self):
        self.assertEqual(self.batch.status, BatchStatus.PENDING)
        self.assertTrue(self.batch.batch_number.startswith('BAT-'))

    def test_start_batch_requires_courier(self):
        with self.assertRaises(ValidationException) as ctx:
            IntakeService.start_batch(WAREHOUSE_ID, None, self.user.username)
        self.assertIn('courier_id', ctx.exception.details)

    def test_first_scan_opens_batch(self):
        result = IntakeService.scan(str(self.batch.id), '  1Z999AA10123456784 ', self.user.username)

        self.assertFalse(result['duplicate'])
        item = result['item']
        self.assertEqual(item.tracking_number, '1Z999AA10123456784')
        self.assertEqual(item.courier_tracking_url, 'https://track.example.com/1Z999AA10123456784')
        self.assertEqual(item.assignment_status, AssignmentStatus.UNASSIGNED)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.status, BatchStatus.SCANNING)

    def test_duplicate_scan_keeps_one_live_item(self):
        first = IntakeService.scan(str(self.batch.id), 'TRK-1', self.user.username)
        second = IntakeService.scan(str(self.batch.id), 'TRK-1', self.user.username)

        self.assertTrue(second['duplicate'])
        self.assertEqual(second['item'].id, first['item'].id)
        self.assertEqual(ScannedItem.objects.filter(batch=self.batch, tracking_number='TRK-1').count(), 1)
        self.assertEqual(DuplicateScan.objects.filter(batch=self.batch, tracking_number='TRK-1').count(), 1)

    def test_same_tracking_number_in_another_batch_is_not_duplicate(self):
        other = IntakeService.start_batch(WAREHOUSE_ID, COURIER_ID, self.user.username)
        IntakeService.scan(str(self.batch.id), 'TRK-1', self.user.username)

        result = IntakeService.scan(str(other.id), 'TRK-1', self.user.username)
        self.assertFalse(result['duplicate'])

    def test_scan_many_reports_duplicates(self):
        result = IntakeService.scan_many(str(self.batch.id), ['A', 'B', 'A', 'C'], self.user.username)

        self.assertEqual([item.tracking_number for item in result['items']], ['A', 'B', 'C'])
        self.assertEqual(len(result['duplicates']), 1)
        self.assertEqual(self.batch.items.count(), 3)

    def test_empty_tracking_number_rejected(self):
        with self.assertRaises(ValidationException):
            IntakeService.scan(str(self.batch.id), '   ', self.user.username)

    def test_scan_unknown_batch(self):
        with self.assertRaises(NotFoundException):
            IntakeService.scan('00000000-0000-0000-0000-000000000000', 'TRK-1')

    def test_complete_batch(self):
        IntakeService.scan_many(str(self.batch.id), ['A', 'B', 'C'], self.user.username)

        batch = IntakeService.complete_batch(str(self.batch.id), self.user.username)

        self.assertEqual(batch.status, BatchStatus.SCANNED)
        self.assertIsNotNone(batch.completed_at)
        self.assertEqual(batch.completed_by, self.user.username)

    def test_complete_empty_batch_rejected(self):
        with self.assertRaises(InvalidStateException):
            IntakeService.complete_batch(str(self.batch.id), self.user.username)

    def test_closed_batch_rejects_scans_and_completion(self):
        IntakeService.scan(str(self.batch.id), 'A', self.user.username)
        IntakeService.complete_batch(str(self.batch.id), self.user.username)

        with self.assertRaises(InvalidStateException):
            IntakeService.scan(str(self.batch.id), 'B', self.user.username)
        with self.assertRaises(InvalidStateException):
            IntakeService.complete_batch(str(self.batch.id), self.user.username)

    def test_assign_items(self):
        result = IntakeService.scan_many(str(self.batch.id), ['A', 'B'], self.user.username)
        item_ids = [str(item.id) for item in result['items']]

        items = IntakeService.assign(item_ids, self.customer_id, self.user.username, 'Matched by label')

        for item in items:
            self.assertEqual(item.assignment_status, AssignmentStatus.ASSIGNED)
            self.assertEqual(item.customer_id, self.customer_id)
            self.assertIsNotNone(item.assigned_at)
        self.assertEqual(AuditLog.objects.filter(entity_type='ScannedItem', action='assigned').count(), 2)

    def test_assign_is_all_or_nothing(self):
        result = IntakeService.scan_many(str(self.batch.id), ['A', 'B'], self.user.username)
        item_a, item_b = result['items']
        IntakeService.assign([str(item_b.id)], 'other-customer', self.user.username)

        with self.assertRaises(AlreadyAssignedException) as ctx:
            IntakeService.assign([str(item_a.id), str(item_b.id)], self.customer_id, self.user.username)

        self.assertEqual(ctx.exception.details['item_ids'], [str(item_b.id)])
        item_a.refresh_from_db()
        self.assertEqual(item_a.assignment_status, AssignmentStatus.UNASSIGNED)
        self.assertEqual(item_a.customer_id, '')

    def test_assign_unknown_item_lists_ids(self):
        item = IntakeService.scan(str(self.batch.id), 'A', self.user.username)['item']
        missing = '00000000-0000-0000-0000-000000000001'

        with self.assertRaises(NotFoundException) as ctx:
            IntakeService.assign([str(item.id), missing], self.customer_id, self.user.username)

        self.assertEqual(ctx.exception.details['ids'], [missing])
        item.refresh_from_db()
        self.assertEqual(item.assignment_status, AssignmentStatus.UNASSIGNED)

    def test_unassign(self):
        item = IntakeService.scan(str(self.batch.id), 'A', self.user.username)['item']
        IntakeService.assign([str(item.id)], self.customer_id, self.user.username)

        item = IntakeService.unassign(str(item.id), self.user.username, 'Wrong customer')

        self.assertEqual(item.assignment_status, AssignmentStatus.UNASSIGNED)
        self.assertEqual(item.customer_id, '')

        with self.assertRaises(InvalidStateException):
            IntakeService.unassign(str(item.id), self.user.username)

    def test_create_package_from_item(self):
        item = IntakeService.scan(str(self.batch.id), 'TRK-9', self.user.username)['item']
        IntakeService.assign([str(item.id)], self.customer_id, self.user.username)

        package = IntakeService.create_package_from_item(
            str(item.id),
            {
                'weight_kg': Decimal('2.0'),
                'length_cm': Decimal('30'),
                'width_cm': Decimal('20'),
                'height_cm': Decimal('10'),
                'declared_value': Decimal('49.99'),
                'is_fragile': True,
            },
            self.user.username,
        )

        self.assertEqual(package.status, PackageStatus.RECEIVED)
        self.assertEqual(package.customer_id, self.customer_id)
        self.assertEqual(package.warehouse_id, WAREHOUSE_ID)
        self.assertEqual(package.inbound_tracking_number, 'TRK-9')
        self.assertEqual(package.chargeable_weight_kg, Decimal('2.0'))
        self.assertTrue(package.is_fragile)
        self.assertIsNotNone(package.received_at)

        history = list(package.status_history.all())
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].from_status, '')
        self.assertEqual(history[0].to_status, PackageStatus.RECEIVED)

        # An item converts to at most one package and can no longer be unassigned
        with self.assertRaises(InvalidStateException):
            IntakeService.create_package_from_item(str(item.id), {}, self.user.username)
        with self.assertRaises(InvalidStateException):
            IntakeService.unassign(str(item.id), self.user.username)

    def test_unassigned_item_cannot_become_package(self):
        item = IntakeService.scan(str(self.batch.id), 'TRK-9', self.user.username)['item']

        with self.assertRaises(InvalidStateException):
            IntakeService.create_package_from_item(str(item.id), {}, self.user.username)
