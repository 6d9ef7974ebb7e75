"""Overlap detection for half-open booking intervals ``[start, end)``."""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Query, Session

from .models import ACTIVE_STATES, Booking, BookingState


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open overlap test; touching intervals do not overlap."""

    return start_a < end_b and start_b < end_a


def overlapping_query(
    db: Session,
    space_id: str,
    start: datetime,
    end: datetime,
    exclude_id: Optional[str] = None,
    states: Iterable[BookingState] = ACTIVE_STATES,
) -> Query:
    query = db.query(Booking).filter(
        Booking.space_id == space_id,
        Booking.state.in_(list(states)),
        Booking.start_at < end,
        Booking.end_at > start,
    )
    if exclude_id is not None:
        query = query.filter(Booking.id != exclude_id)
    return query


def has_conflict(
    db: Session,
    space_id: str,
    start: datetime,
    end: datetime,
    exclude_id: Optional[str] = None,
) -> bool:
    """True when an active (PENDING or CONFIRMED) booking of the space overlaps ``[start, end)``.

    Pending bookings count: a slot is held from the moment it is requested, so
    two requests for it can never both be approved later.
    """

    query = overlapping_query(db, space_id, start, end, exclude_id)
    return db.query(query.exists()).scalar()
