"""
Weight and money arithmetic shared by the rate, package and billing services.

All arithmetic is done in ``Decimal``. Rounding happens only where a value is
stored or charged.
"""

from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP
from typing import Optional

from ..conf import forwarding_setting, currency_decimal_places
from ..exceptions import ValidationException

ZERO = Decimal('0')
WEIGHT_PLACES = Decimal('0.0001')


def _as_decimal(value, field: str) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    try:
        result = Decimal(str(value))
    except ArithmeticError:
        raise ValidationException(f"{field} must be a number", {field: 'invalid'})
    if not result.is_finite():
        raise ValidationException(f"{field} must be a number", {field: 'invalid'})
    if result < 0:
        raise ValidationException(f"{field} cannot be negative", {field: 'negative'})
    return result


def get_volumetric_divisor(warehouse_id=None, service_type: str = None) -> Decimal:
    """
    Divisor (cm³ per kg) for a warehouse and service.

    A ``"<warehouse>:<service>"`` override wins over a ``"<warehouse>"``
    override, which wins over the global default.
    """
    overrides = forwarding_setting('VOLUMETRIC_DIVISOR_OVERRIDES') or {}
    divisor = forwarding_setting('VOLUMETRIC_DIVISOR')

    if warehouse_id is not None:
        warehouse_key = str(warehouse_id)
        if service_type and f"{warehouse_key}:{service_type}" in overrides:
            divisor = overrides[f"{warehouse_key}:{service_type}"]
        elif warehouse_key in overrides:
            divisor = overrides[warehouse_key]

    divisor = Decimal(str(divisor))
    if divisor <= 0:
        raise ValidationException("Volumetric divisor must be positive", {'volumetric_divisor': str(divisor)})
    return divisor


def volumetric_weight(length_cm, width_cm, height_cm, divisor=None) -> Decimal:
    """
    ``L * W * H / divisor`` in kg.

    Missing or zero dimensions give a volumetric weight of zero.
    """
    dimensions = [
        _as_decimal(length_cm, 'length_cm'),
        _as_decimal(width_cm, 'width_cm'),
        _as_decimal(height_cm, 'height_cm'),
    ]
    if any(value is None or value == 0 for value in dimensions):
        return ZERO

    if divisor is None:
        divisor = get_volumetric_divisor()
    length, width, height = dimensions
    return (length * width * height) / Decimal(str(divisor))


def chargeable_weight(actual_weight_kg, volumetric_weight_kg) -> Decimal:
    """The greater of actual and volumetric weight."""
    actual = _as_decimal(actual_weight_kg, 'weight_kg') or ZERO
    volumetric = _as_decimal(volumetric_weight_kg, 'volumetric_weight_kg') or ZERO
    return max(actual, volumetric)


def compute_package_weights(weight_kg, length_cm, width_cm, height_cm,
                            warehouse_id=None, service_type: str = None):
    """
    Return ``(volumetric, chargeable)`` as stored on a package.

    Both are rounded up to 4 places so the stored chargeable weight is
    never below the actual weight.
    """
    divisor = get_volumetric_divisor(warehouse_id, service_type)
    volumetric = volumetric_weight(length_cm, width_cm, height_cm, divisor)
    volumetric = volumetric.quantize(WEIGHT_PLACES, rounding=ROUND_CEILING)
    return volumetric, chargeable_weight(weight_kg, volumetric)


def quantize_money(amount, currency: str) -> Decimal:
    """Round half-up to the currency's minor unit."""
    places = currency_decimal_places(currency)
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(amount)).quantize(exponent, rounding=ROUND_HALF_UP)


def to_minor_units(amount, currency: str) -> int:
    """Integer amount in the currency's minor unit (cents for USD)."""
    places = currency_decimal_places(currency)
    return int(quantize_money(amount, currency).scaleb(places))
