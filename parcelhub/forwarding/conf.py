"""
Configuration access for the forwarding engine.

Values live in the ``FORWARDING`` dict of the Django settings module and are
read at call time, so ``override_settings`` applies immediately.
"""

from decimal import Decimal
from typing import Any

from django.conf import settings

DEFAULTS = {
    'VOLUMETRIC_DIVISOR': 5000,
    'VOLUMETRIC_DIVISOR_OVERRIDES': {},
    'DEFAULT_CURRENCY': 'USD',
    'CURRENCY_DECIMAL_PLACES': {
        'JPY': 0,
        'KRW': 0,
        'BHD': 3,
        'KWD': 3,
    },
    'QUOTE_VALIDITY_HOURS': 168,
    'STORAGE_FREE_DAYS': 7,
    'STORAGE_DAILY_RATE': '2.00',
    'HANDLING_FEE_PER_PACKAGE': '0.00',
    'INSURANCE_RATE': '0.00',
    'PAYMENT_WEBHOOK_SECRET': '',
}

DECIMAL_SETTINGS = {'STORAGE_DAILY_RATE', 'HANDLING_FEE_PER_PACKAGE', 'INSURANCE_RATE'}


def forwarding_setting(name: str) -> Any:
    """Return a forwarding setting, falling back to the built-in default."""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown forwarding setting: {name}")

    configured = getattr(settings, 'FORWARDING', {}) or {}
    value = configured.get(name, DEFAULTS[name])

    if name in DECIMAL_SETTINGS:
        return Decimal(str(value))
    return value


def currency_decimal_places(currency: str) -> int:
    """Number of minor-unit digits for a currency code (2 unless configured)."""
    places = forwarding_setting('CURRENCY_DECIMAL_PLACES')
    return int(places.get((currency or '').upper(), 2))
