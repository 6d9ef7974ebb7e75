"""Reservation pricing."""
from __future__ import annotations

import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from .models import TimeUnit

# A "month" is a flat 30 days, not a calendar month.
UNIT_LENGTHS = {
    TimeUnit.HOUR: timedelta(hours=1),
    TimeUnit.DAY: timedelta(days=1),
    TimeUnit.MONTH: timedelta(days=30),
}


def billable_units(start: datetime, end: datetime, unit: TimeUnit) -> int:
    """Number of started units between ``start`` and ``end`` (ceiling)."""

    return math.ceil((end - start) / UNIT_LENGTHS[TimeUnit(unit)])


def compute_total(
    start: datetime, end: datetime, unit: TimeUnit, price_per_unit: Optional[Decimal]
) -> Optional[Decimal]:
    """Total price, or ``None`` when the space has no configured price."""

    if price_per_unit is None:
        return None
    return Decimal(billable_units(start, end, unit)) * Decimal(price_per_unit)
