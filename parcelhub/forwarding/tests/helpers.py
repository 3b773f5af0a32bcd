"""
Shared fixtures for forwarding tests.
"""

import uuid
from decimal import Decimal

from ..models import Rate, PackageStatus, ServiceType
from ..services import PackageService, ShipmentService

WAREHOUSE_ID = uuid.UUID('11111111-1111-1111-1111-111111111111')
OTHER_WAREHOUSE_ID = uuid.UUID('22222222-2222-2222-2222-222222222222')
ZONE_ID = uuid.UUID('33333333-3333-3333-3333-333333333333')
COURIER_ID = uuid.UUID('44444444-4444-4444-4444-444444444444')

STANDARD_MEASUREMENTS = {
    'weight_kg': Decimal('2.0'),
    'length_cm': Decimal('30'),
    'width_cm': Decimal('20'),
    'height_cm': Decimal('10'),
}


def make_rate(service_type=ServiceType.STANDARD, base_rate='10.00', per_kg_rate='2.50',
              min_charge='12.00', max_weight_kg=None, currency='USD', **extra):
    return Rate.objects.create(
        warehouse_id=extra.pop('warehouse_id', WAREHOUSE_ID),
        zone_id=extra.pop('zone_id', ZONE_ID),
        service_type=service_type,
        base_rate=Decimal(base_rate),
        per_kg_rate=Decimal(per_kg_rate),
        min_charge=Decimal(min_charge),
        max_weight_kg=Decimal(max_weight_kg) if max_weight_kg is not None else None,
        currency=currency,
        **extra
    )


def make_ready_package(customer_id, warehouse_id=WAREHOUSE_ID, measurements=None, **package_data):
    """A received, measured package moved to ready_to_ship."""
    data = dict(measurements or STANDARD_MEASUREMENTS)
    data.update(package_data)
    package = PackageService.create_package(
        customer_id, warehouse_id, 'staff', data, initial_status=PackageStatus.RECEIVED
    )
    return PackageService.transition(str(package.id), PackageStatus.READY_TO_SHIP, 'staff', 'Consolidation')


def make_quoted_shipment(customer_id, package_count=1):
    packages = [make_ready_package(customer_id) for _ in range(package_count)]
    shipment = ShipmentService.create_shipment(
        customer_id, [str(package.id) for package in packages], str(ZONE_ID), customer_id
    )
    return ShipmentService.quote(str(shipment.id), customer_id), packages
