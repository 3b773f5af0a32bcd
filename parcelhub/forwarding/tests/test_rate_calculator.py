"""
Tests for weight computation and rate calculation.
"""

from datetime import timedelta
from decimal import Decimal
from django.test import TestCase, override_settings
from django.utils import timezone

from ..exceptions import RateNotFoundException, WeightExceedsLimitException, ValidationException
from ..models import ServiceType
from ..services import RateCalculator
from ..services.weights import (
    compute_package_weights, get_volumetric_divisor, quantize_money, to_minor_units, volumetric_weight
)
from .helpers import make_rate, WAREHOUSE_ID, ZONE_ID


class WeightComputationTest(TestCase):
    """Test volumetric and chargeable weight."""

    def test_actual_weight_wins_over_small_volume(self):
        volumetric, chargeable = compute_package_weights(
            Decimal('2.0'), Decimal('30'), Decimal('20'), Decimal('10')
        )
        self.assertEqual(volumetric, Decimal('1.2'))
        self.assertEqual(chargeable, Decimal('2.0'))

    def test_volumetric_weight_wins_for_bulky_parcel(self):
        volumetric, chargeable = compute_package_weights(
            Decimal('1.0'), Decimal('50'), Decimal('40'), Decimal('30')
        )
        self.assertEqual(volumetric, Decimal('12'))
        self.assertEqual(chargeable, Decimal('12'))

    def test_chargeable_never_below_actual(self):
        for weight, dims in [
            (Decimal('0.5'), (Decimal('10'), Decimal('10'), Decimal('10'))),
            (Decimal('7.25'), (Decimal('33.3'), Decimal('21.7'), Decimal('9.1'))),
            (Decimal('3'), (None, None, None)),
        ]:
            volumetric, chargeable = compute_package_weights(weight, *dims)
            self.assertGreaterEqual(chargeable, weight)
            self.assertGreaterEqual(chargeable, volumetric)

    def test_missing_dimension_gives_zero_volumetric(self):
        self.assertEqual(volumetric_weight(Decimal('30'), None, Decimal('10')), Decimal('0'))
        self.assertEqual(volumetric_weight(Decimal('30'), Decimal('0'), Decimal('10')), Decimal('0'))

    def test_volumetric_is_rounded_up(self):
        volumetric, _ = compute_package_weights(None, Decimal('7'), Decimal('7'), Decimal('7.01'))
        self.assertEqual(volumetric, Decimal('0.0687'))

    def test_negative_dimension_rejected(self):
        with self.assertRaises(ValidationException):
            volumetric_weight(Decimal('-1'), Decimal('10'), Decimal('10'))

    @override_settings(FORWARDING={
        'VOLUMETRIC_DIVISOR': 5000,
        'VOLUMETRIC_DIVISOR_OVERRIDES': {
            str(WAREHOUSE_ID): 6000,
            f"{WAREHOUSE_ID}:express": 4000,
        },
    })
    def test_divisor_overrides(self):
        self.assertEqual(get_volumetric_divisor(), Decimal('5000'))
        self.assertEqual(get_volumetric_divisor(WAREHOUSE_ID), Decimal('6000'))
        self.assertEqual(get_volumetric_divisor(WAREHOUSE_ID, ServiceType.EXPRESS), Decimal('4000'))
        self.assertEqual(get_volumetric_divisor(WAREHOUSE_ID, ServiceType.ECONOMY), Decimal('6000'))

    def test_money_rounding(self):
        self.assertEqual(quantize_money(Decimal('10.005'), 'USD'), Decimal('10.01'))
        self.assertEqual(quantize_money(Decimal('1500.5'), 'JPY'), Decimal('1501'))
        self.assertEqual(to_minor_units(Decimal('15.00'), 'USD'), 1500)
        self.assertEqual(to_minor_units(Decimal('1501'), 'JPY'), 1501)


class RateCalculatorTest(TestCase):
    """Test rate lookup and pricing."""

    def test_quote_above_minimum(self):
        make_rate(base_rate='10.00', per_kg_rate='2.50', min_charge='12.00')

        quote = RateCalculator.quote(WAREHOUSE_ID, ZONE_ID, ServiceType.STANDARD, Decimal('2.0'))

        self.assertEqual(quote.weight_charge, Decimal('5.000'))
        self.assertEqual(quote.final_amount, Decimal('15.00'))
        self.assertFalse(quote.min_charge_applied)
        self.assertEqual(quote.currency, 'USD')
        self.assertEqual(quote.chargeable_weight_kg, Decimal('2.0'))

    def test_minimum_charge_applied(self):
        make_rate(base_rate='10.00', per_kg_rate='0.50', min_charge='12.00')

        quote = RateCalculator.quote(WAREHOUSE_ID, ZONE_ID, ServiceType.STANDARD, Decimal('2.0'))

        self.assertEqual(quote.final_amount, Decimal('12.00'))
        self.assertTrue(quote.min_charge_applied)

    def test_no_rate_for_route(self):
        make_rate(service_type=ServiceType.ECONOMY)

        with self.assertRaises(RateNotFoundException) as ctx:
            RateCalculator.quote(WAREHOUSE_ID, ZONE_ID, ServiceType.EXPRESS, Decimal('1'))
        self.assertEqual(ctx.exception.code, 'RATE_NOT_FOUND')

    def test_inactive_and_out_of_window_rates_ignored(self):
        today = timezone.localdate()
        make_rate(is_active=False)
        make_rate(effective_from=today - timedelta(days=30), effective_until=today - timedelta(days=1))
        make_rate(effective_from=today + timedelta(days=1))

        with self.assertRaises(RateNotFoundException):
            RateCalculator.quote(WAREHOUSE_ID, ZONE_ID, ServiceType.STANDARD, Decimal('1'))

    def test_most_recent_effective_rate_wins(self):
        today = timezone.localdate()
        make_rate(base_rate='10.00', effective_from=today - timedelta(days=60))
        make_rate(base_rate='20.00', effective_from=today - timedelta(days=5))

        quote = RateCalculator.quote(WAREHOUSE_ID, ZONE_ID, ServiceType.STANDARD, Decimal('2.0'))
        self.assertEqual(quote.base_rate, Decimal('20.00'))
        self.assertEqual(quote.final_amount, Decimal('25.00'))

    def test_pricing_date_selects_rate(self):
        today = timezone.localdate()
        make_rate(base_rate='10.00', effective_from=today - timedelta(days=60),
                  effective_until=today - timedelta(days=10))
        make_rate(base_rate='20.00', effective_from=today - timedelta(days=9))

        quote = RateCalculator.quote(
            WAREHOUSE_ID, ZONE_ID, ServiceType.STANDARD, Decimal('2.0'), on=today - timedelta(days=20)
        )
        self.assertEqual(quote.base_rate, Decimal('10.00'))

    def test_weight_above_maximum(self):
        make_rate(max_weight_kg='30')

        with self.assertRaises(WeightExceedsLimitException) as ctx:
            RateCalculator.quote(WAREHOUSE_ID, ZONE_ID, ServiceType.STANDARD, Decimal('30.5'))
        self.assertEqual(Decimal(ctx.exception.details['max_weight_kg']), Decimal('30'))

    def test_zero_weight_rejected(self):
        make_rate()

        with self.assertRaises(ValidationException):
            RateCalculator.quote(WAREHOUSE_ID, ZONE_ID, ServiceType.STANDARD, Decimal('0'))

    def test_unknown_service_type_rejected(self):
        with self.assertRaises(ValidationException):
            RateCalculator.quote(WAREHOUSE_ID, ZONE_ID, 'overnight', Decimal('1'))

    def test_available_services_sorted_by_price(self):
        make_rate(service_type=ServiceType.EXPRESS, base_rate='30.00', per_kg_rate='5.00', min_charge='0')
        make_rate(service_type=ServiceType.ECONOMY, base_rate='5.00', per_kg_rate='1.00', min_charge='0')
        make_rate(service_type=ServiceType.STANDARD, base_rate='10.00', per_kg_rate='2.50',
                  min_charge='0', max_weight_kg='1')

        quotes = RateCalculator.available_services(WAREHOUSE_ID, ZONE_ID, Decimal('2.0'))

        self.assertEqual([quote.service_type for quote in quotes], [ServiceType.ECONOMY, ServiceType.EXPRESS])
        self.assertEqual([quote.final_amount for quote in quotes], [Decimal('7.00'), Decimal('40.00')])

    def test_quote_as_dict_serialises_decimals(self):
        make_rate()

        data = RateCalculator.quote(WAREHOUSE_ID, ZONE_ID, ServiceType.STANDARD, Decimal('2.0')).as_dict()
        self.assertEqual(data['final_amount'], '15.00')
        self.assertIs(data['min_charge_applied'], False)
