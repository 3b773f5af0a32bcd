"""
Tests for the forwarding HTTP API.
"""

import json
from django.test import TestCase
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from ..adapters.payment_adapter import switch_to_mock_adapter
from ..models import PackageStatus, ShipmentStatus
from .helpers import make_rate, make_ready_package, COURIER_ID, WAREHOUSE_ID, ZONE_ID

API = '/api/forwarding'


class ForwardingApiTest(TestCase):
    """Test the API envelopes, scoping and status codes."""

    def setUp(self):
        User = get_user_model()
        self.staff = User.objects.create_user(username='staff', password='testpass123', is_staff=True)
        self.customer = User.objects.create_user(username='customer', password='testpass123')
        self.other_customer = User.objects.create_user(username='other', password='testpass123')
        self.customer_id = str(self.customer.pk)

        self.adapter = switch_to_mock_adapter()
        make_rate(base_rate='10.00', per_kg_rate='2.50', min_charge='12.00')

        self.staff_client = APIClient()
        self.staff_client.force_authenticate(user=self.staff)
        self.customer_client = APIClient()
        self.customer_client.force_authenticate(user=self.customer)

    def _create_shipment(self):
        package = make_ready_package(self.customer_id)
        response = self.customer_client.post(f'{API}/shipments/', {
            'package_ids': [str(package.id)],
            'destination_zone_id': str(ZONE_ID),
        }, format='json')
        self.assertEqual(response.status_code, 201)
        return response.data['data']['id'], package

    def test_requires_authentication(self):
        response = APIClient().get(f'{API}/packages/')
        self.assertIn(response.status_code, [401, 403])

    def test_intake_endpoints_are_staff_only(self):
        response = self.customer_client.post(f'{API}/batches/', {
            'warehouse_id': str(WAREHOUSE_ID),
            'courier_id': str(COURIER_ID),
        }, format='json')
        self.assertEqual(response.status_code, 403)

    def test_scan_and_duplicate(self):
        response = self.staff_client.post(f'{API}/batches/', {
            'warehouse_id': str(WAREHOUSE_ID),
            'courier_id': str(COURIER_ID),
        }, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data['success'])
        batch_id = response.data['data']['id']

        first = self.staff_client.post(f'{API}/batches/{batch_id}/scan/', {'tracking_number': 'TRK-1'}, format='json')
        second = self.staff_client.post(f'{API}/batches/{batch_id}/scan/', {'tracking_number': 'TRK-1'}, format='json')

        self.assertEqual(first.status_code, 201)
        self.assertFalse(first.data['data']['duplicate'])
        self.assertEqual(second.status_code, 200)
        self.assertTrue(second.data['data']['duplicate'])
        self.assertEqual(second.data['data']['item']['id'], first.data['data']['item']['id'])

    def test_assign_conflict_envelope(self):
        batch = self.staff_client.post(f'{API}/batches/', {
            'warehouse_id': str(WAREHOUSE_ID),
            'courier_id': str(COURIER_ID),
        }, format='json').data['data']
        items = self.staff_client.post(
            f"{API}/batches/{batch['id']}/scan/", {'tracking_numbers': ['A', 'B']}, format='json'
        ).data['data']['items']
        item_ids = [item['id'] for item in items]

        self.staff_client.post(f'{API}/scanned-items/assign/', {
            'item_ids': [item_ids[1]], 'customer_id': 'first',
        }, format='json')
        response = self.staff_client.post(f'{API}/scanned-items/assign/', {
            'item_ids': item_ids, 'customer_id': 'second',
        }, format='json')

        self.assertEqual(response.status_code, 409)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error']['code'], 'ALREADY_ASSIGNED')
        self.assertEqual(response.data['error']['details']['item_ids'], [item_ids[1]])

    def test_invalid_transition_is_conflict(self):
        package = make_ready_package(self.customer_id)

        response = self.staff_client.post(
            f'{API}/packages/{package.id}/transition/', {'status': PackageStatus.DELIVERED}, format='json'
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error']['code'], 'INVALID_TRANSITION')

    def test_customer_sees_only_own_packages(self):
        mine = make_ready_package(self.customer_id)
        make_ready_package(str(self.other_customer.pk))

        response = self.customer_client.get(f'{API}/packages/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual([package['id'] for package in response.data], [str(mine.id)])

        staff_response = self.staff_client.get(f'{API}/packages/')
        self.assertEqual(len(staff_response.data), 2)

    def test_customer_cannot_reach_foreign_shipment(self):
        shipment_id, _ = self._create_shipment()
        other_client = APIClient()
        other_client.force_authenticate(user=self.other_customer)

        response = other_client.post(f'{API}/shipments/{shipment_id}/quote/', {}, format='json')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error']['code'], 'NOT_FOUND')

    def test_shipment_quote_and_payment(self):
        shipment_id, package = self._create_shipment()

        response = self.customer_client.post(f'{API}/shipments/{shipment_id}/quote/', {}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['status'], ShipmentStatus.QUOTED)
        self.assertEqual(response.data['data']['rate_trace']['final_amount'], '15.00')

        response = self.customer_client.post(f'{API}/shipments/{shipment_id}/payment_intent/', {}, format='json')
        self.assertEqual(response.status_code, 201)
        reference = response.data['data']['reference']
        self.assertEqual(response.data['data']['amount_minor'], 1500)

        response = self.customer_client.post(
            f'{API}/shipments/{shipment_id}/complete_payment/', {'payment_reference': reference}, format='json'
        )
        self.assertEqual(response.status_code, 402)
        self.assertEqual(response.data['error']['code'], 'PAYMENT_NOT_SUCCEEDED')

        self.adapter.confirm(reference)
        response = self.customer_client.post(
            f'{API}/shipments/{shipment_id}/complete_payment/', {'payment_reference': reference}, format='json'
        )
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data['data']['already_processed'])
        self.assertEqual(response.data['data']['shipment']['status'], ShipmentStatus.PAID)
        invoice_id = response.data['data']['invoice']['id']

        replay = self.customer_client.post(
            f'{API}/shipments/{shipment_id}/complete_payment/', {'payment_reference': reference}, format='json'
        )
        self.assertEqual(replay.status_code, 200)
        self.assertTrue(replay.data['data']['already_processed'])
        self.assertEqual(replay.data['data']['invoice']['id'], invoice_id)

        package.refresh_from_db()
        self.assertEqual(package.status, PackageStatus.SHIPPED)

    def test_status_updates_are_staff_only(self):
        shipment_id, _ = self._create_shipment()

        response = self.customer_client.post(
            f'{API}/shipments/{shipment_id}/update_status/', {'status': ShipmentStatus.PROCESSING}, format='json'
        )
        self.assertEqual(response.status_code, 403)

    def test_staff_create_requires_customer(self):
        package = make_ready_package(self.customer_id)

        response = self.staff_client.post(f'{API}/shipments/', {
            'package_ids': [str(package.id)],
            'destination_zone_id': str(ZONE_ID),
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')

    def test_rate_calculation(self):
        response = self.customer_client.post(f'{API}/rates/calculate/', {
            'warehouse_id': str(WAREHOUSE_ID),
            'zone_id': str(ZONE_ID),
            'weight_kg': '2.0',
            'length_cm': '30',
            'width_cm': '20',
            'height_cm': '10',
        }, format='json')

        self.assertEqual(response.status_code, 200)
        data = response.data['data']
        self.assertEqual(data['volumetric_weight_kg'], '1.2000')
        self.assertEqual([quote['service_type'] for quote in data['quotes']], ['standard'])
        self.assertEqual(data['quotes'][0]['final_amount'], '15.00')

    def test_rate_not_found_is_bad_request(self):
        response = self.customer_client.post(f'{API}/rates/calculate/', {
            'warehouse_id': str(WAREHOUSE_ID),
            'zone_id': str(ZONE_ID),
            'service_type': 'express',
            'chargeable_weight_kg': '1.5',
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error']['code'], 'RATE_NOT_FOUND')

    def test_webhook(self):
        shipment_id, _ = self._create_shipment()
        self.customer_client.post(f'{API}/shipments/{shipment_id}/quote/', {}, format='json')
        reference = self.customer_client.post(
            f'{API}/shipments/{shipment_id}/payment_intent/', {}, format='json'
        ).data['data']['reference']
        self.adapter.confirm(reference)
        payload = json.dumps({
            'type': 'payment.succeeded',
            'data': {'object': {'id': reference, 'metadata': {'shipment_id': shipment_id}}},
        })

        forged = APIClient().post(
            f'{API}/payments/webhook/', payload, content_type='application/json',
            HTTP_X_PAYMENT_SIGNATURE='forged'
        )
        self.assertEqual(forged.status_code, 400)

        response = APIClient().post(
            f'{API}/payments/webhook/', payload, content_type='application/json',
            HTTP_X_PAYMENT_SIGNATURE='test-signature'
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['data']['handled'])
        self.assertFalse(response.data['data']['already_processed'])
