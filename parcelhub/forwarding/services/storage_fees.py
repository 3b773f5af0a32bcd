"""
Storage fee calculation for packages held at a warehouse.

Each package gets a number of free days from its receipt; every further full
day is charged at the configured daily rate.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from django.utils import timezone

from ..conf import forwarding_setting
from .weights import quantize_money

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class PackageStorageCharge:
    package_id: str
    days_stored: int
    free_days_used: int
    chargeable_days: int
    daily_rate: Decimal
    fee: Decimal


@dataclass
class StorageFeeResult:
    total: Decimal
    currency: str
    breakdown: List[PackageStorageCharge] = field(default_factory=list)


def days_stored(received_at: Optional[datetime], as_of: datetime) -> int:
    """Whole days between receipt and ``as_of``; never negative."""
    if received_at is None:
        return 0
    elapsed = (as_of - received_at).total_seconds()
    return max(0, int(elapsed // SECONDS_PER_DAY))


def calculate_storage_fees(packages: Iterable, currency: str, as_of: Optional[datetime] = None) -> StorageFeeResult:
    """
    Storage charges for a set of packages.

    Args:
        packages: Objects with ``id`` and ``received_at``
        currency: Currency of the charge (the shipment's quote currency)
        as_of: Calculation time (defaults to now)

    Returns:
        StorageFeeResult with the rounded total and a per-package breakdown
    """
    as_of = as_of or timezone.now()
    free_days = int(forwarding_setting('STORAGE_FREE_DAYS'))
    daily_rate = forwarding_setting('STORAGE_DAILY_RATE')

    breakdown = []
    total = Decimal('0')
    for package in packages:
        stored = days_stored(package.received_at, as_of)
        chargeable_days = max(0, stored - free_days)
        fee = daily_rate * chargeable_days
        breakdown.append(PackageStorageCharge(
            package_id=str(package.id),
            days_stored=stored,
            free_days_used=min(stored, free_days),
            chargeable_days=chargeable_days,
            daily_rate=daily_rate,
            fee=fee,
        ))
        total += fee

    return StorageFeeResult(total=quantize_money(total, currency), currency=currency, breakdown=breakdown)
