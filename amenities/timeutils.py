"""Wall-clock helpers.

Booking instants are stored as naive datetimes holding the literal digits the
caller sent. An offset such as ``-05:00`` is dropped rather than applied, so
``09:00-05:00`` is kept as ``09:00``. Every comparison in the engine (conflicts,
pricing, the past-start check) works on these naive values.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple


def strip_offset(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.replace(tzinfo=None)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, comparable with stored instants."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Return the first and last representable instants of ``day``."""

    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def week_bounds(day: date) -> Tuple[datetime, datetime]:
    """Monday 00:00 through Sunday 23:59:59.999999 of the week containing ``day``."""

    monday = day - timedelta(days=day.weekday())
    sunday = monday + timedelta(days=6)
    return datetime.combine(monday, time.min), datetime.combine(sunday, time.max)
