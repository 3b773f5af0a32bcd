"""
Rate calculator.

Pure read-side pricing: finds the applicable rate for a route and service and
turns a chargeable weight into a shipping charge. Nothing is written here.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from django.utils import timezone

from ..exceptions import RateNotFoundException, WeightExceedsLimitException, ValidationException
from ..models import Rate, ServiceType
from .weights import quantize_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateQuote:
    """
    Outcome of a rate calculation, with every term that went into it.

    ``weight_charge`` is kept unrounded; only ``final_amount`` is rounded.
    """
    rate_id: str
    service_type: str
    zone_id: str
    base_rate: Decimal
    per_kg_rate: Decimal
    weight_charge: Decimal
    min_charge: Decimal
    min_charge_applied: bool
    final_amount: Decimal
    currency: str
    chargeable_weight_kg: Decimal

    def as_dict(self):
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Decimal):
                data[key] = str(value)
        return data


class RateCalculator:
    """Shipping charge computation from the rate table."""

    @staticmethod
    def find_rate(warehouse_id, zone_id, service_type: str, on: Optional[date] = None) -> Rate:
        """
        Applicable rate for a route on a given day.

        When several active rates cover the day, the most recently effective
        one wins.

        Raises:
            RateNotFoundException: If no active rate covers the day
        """
        day = on or timezone.localdate()
        rate = (
            Rate.objects
            .for_route(warehouse_id, zone_id, service_type)
            .active_on(day)
            .order_by('-effective_from', '-created_at')
            .first()
        )
        if rate is None:
            raise RateNotFoundException(warehouse_id, zone_id, service_type)
        return rate

    @staticmethod
    def price(rate: Rate, chargeable_weight_kg) -> RateQuote:
        """
        Apply a rate to a chargeable weight.

        Args:
            rate: Rate row to apply
            chargeable_weight_kg: Weight in kg, must be positive

        Returns:
            RateQuote

        Raises:
            ValidationException: If the weight is not positive
            WeightExceedsLimitException: If the weight is above the rate maximum
        """
        weight = Decimal(str(chargeable_weight_kg))
        if weight <= 0:
            raise ValidationException(
                "Chargeable weight must be greater than zero",
                {'chargeable_weight_kg': str(weight)}
            )

        if rate.max_weight_kg is not None and weight > rate.max_weight_kg:
            raise WeightExceedsLimitException(weight, rate.max_weight_kg, rate.service_type)

        weight_charge = rate.per_kg_rate * weight
        computed = rate.base_rate + weight_charge
        min_charge_applied = computed < rate.min_charge
        final_amount = quantize_money(max(computed, rate.min_charge), rate.currency)

        return RateQuote(
            rate_id=str(rate.id),
            service_type=rate.service_type,
            zone_id=str(rate.zone_id),
            base_rate=rate.base_rate,
            per_kg_rate=rate.per_kg_rate,
            weight_charge=weight_charge,
            min_charge=rate.min_charge,
            min_charge_applied=min_charge_applied,
            final_amount=final_amount,
            currency=rate.currency,
            chargeable_weight_kg=weight,
        )

    @staticmethod
    def quote(warehouse_id, zone_id, service_type: str, chargeable_weight_kg,
              on: Optional[date] = None) -> RateQuote:
        """
        Price a chargeable weight for a route and service.

        Args:
            warehouse_id: Origin warehouse
            zone_id: Destination zone
            service_type: economy, standard or express
            chargeable_weight_kg: Weight in kg
            on: Pricing date (defaults to today)

        Returns:
            RateQuote

        Raises:
            RateNotFoundException: If no active rate applies
            WeightExceedsLimitException: If the weight is above the rate maximum
            ValidationException: If the weight is not positive
        """
        if service_type not in ServiceType.values:
            raise ValidationException(
                f"Unknown service type: {service_type}",
                {'service_type': service_type}
            )

        rate = RateCalculator.find_rate(warehouse_id, zone_id, service_type, on)
        result = RateCalculator.price(rate, chargeable_weight_kg)

        logger.debug(
            f"Priced {result.chargeable_weight_kg}kg {service_type} from {warehouse_id} to zone {zone_id}: "
            f"{result.final_amount} {result.currency} (min charge applied: {result.min_charge_applied})"
        )
        return result

    @staticmethod
    def available_services(warehouse_id, zone_id, chargeable_weight_kg,
                           on: Optional[date] = None,
                           service_weights: Optional[Dict[str, Decimal]] = None) -> List[RateQuote]:
        """
        Quotes for every service that can carry the weight, cheapest first.

        ``service_weights`` replaces ``chargeable_weight_kg`` for the services
        it names. Services without an active rate, or whose maximum weight is
        exceeded, are left out.
        """
        service_weights = service_weights or {}
        quotes = []
        for service_type in ServiceType.values:
            weight = service_weights.get(service_type, chargeable_weight_kg)
            try:
                quotes.append(
                    RateCalculator.quote(warehouse_id, zone_id, service_type, weight, on)
                )
            except (RateNotFoundException, WeightExceedsLimitException) as e:
                logger.debug(f"Service {service_type} unavailable: {e.message}")

        return sorted(quotes, key=lambda q: q.final_amount)
