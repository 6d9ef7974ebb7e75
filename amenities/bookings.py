"""Booking lifecycle: creation, updates, approval workflow and reads.

Every mutating command runs as one unit of work on the tenant session:
the space row is locked, all validation and the overlap check happen, and
only then is anything written and committed. Any failure rolls the whole
unit back, so callers never observe partial writes.
"""
from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .config import Settings, get_settings
from .conflicts import has_conflict
from .database import begin_write
from .errors import BadRequestError, ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from .identity import IdentityLookup, SqlIdentityLookup
from .models import ACTIVE_STATES, Booking, BookingState, CommonSpace
from .pricing import compute_total
from .schemas import BookingCreate, BookingFilters, BookingUpdate
from .spaces import SpaceRegistry
from .timeutils import day_bounds, strip_offset, utcnow, week_bounds
from .viewer import ViewerContext, ensure_admin, ensure_can_modify, ensure_can_view, owner_scope

logger = logging.getLogger(__name__)

SLOT_TAKEN = "The space is already booked in that window. Please choose another time."
OVERLAP_CONSTRAINT = "booking_no_overlap"

ALLOWED_TRANSITIONS: Dict[BookingState, frozenset] = {
    BookingState.PENDING: frozenset({BookingState.CONFIRMED, BookingState.CANCELLED}),
    BookingState.CONFIRMED: frozenset({BookingState.CANCELLED}),
    BookingState.CANCELLED: frozenset(),
    BookingState.COMPLETED: frozenset(),
}


@dataclass
class Page:
    items: List[Booking]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def initial_state(space: CommonSpace) -> BookingState:
    return BookingState.PENDING if space.requires_approval else BookingState.CONFIRMED


def check_transition(viewer: ViewerContext, current: BookingState, target: BookingState) -> None:
    """Raise unless ``viewer`` may move a booking from ``current`` to ``target``.

    Re-applying the current state is accepted as a no-op.
    """

    if target == current:
        return
    if not viewer.is_admin and target != BookingState.CANCELLED:
        raise ForbiddenError("You can only cancel your bookings")
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateError(f"Cannot move a booking from {current.value} to {target.value}")


def _validate_interval(start: datetime, end: datetime) -> None:
    if start >= end:
        raise BadRequestError("The end time must be after the start time")


def _validate_headcount(headcount: Optional[int], space: CommonSpace) -> None:
    if headcount is None:
        return
    if headcount < 1:
        raise BadRequestError("Headcount must be at least 1")
    if headcount > space.capacity:
        raise BadRequestError(f"Headcount exceeds the space capacity of {space.capacity}")


class BookingManager:
    def __init__(
        self,
        db: Session,
        identities: Optional[IdentityLookup] = None,
        clock: Callable[[], datetime] = utcnow,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.spaces = SpaceRegistry(db)
        self.identities = identities or SqlIdentityLookup(db)
        self.clock = clock
        self.settings = settings or get_settings()

    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        try:
            begin_write(self.db)
            yield
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if OVERLAP_CONSTRAINT in str(exc.orig):
                raise ConflictError(SLOT_TAKEN) from exc
            raise
        except Exception:
            self.db.rollback()
            raise

    def _load(self, booking_id: str) -> Booking:
        booking = (
            self.db.query(Booking)
            .options(joinedload(Booking.space), joinedload(Booking.user), joinedload(Booking.unit))
            .filter(Booking.id == booking_id)
            .first()
        )
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    # -- commands -----------------------------------------------------------

    def create(self, booking_in: BookingCreate, requester_id: str, created_by: Optional[str] = None) -> Booking:
        start = strip_offset(booking_in.start_at)
        end = strip_offset(booking_in.end_at)

        with self._unit_of_work():
            space = self.spaces.get_for_update(booking_in.space_id)
            if not space.is_active:
                raise BadRequestError("The common space is not active")
            if not self.identities.user_exists(requester_id):
                raise NotFoundError(f"User {requester_id} not found")
            if booking_in.unit_id and not self.identities.unit_exists(booking_in.unit_id):
                raise NotFoundError(f"Unit {booking_in.unit_id} not found")

            _validate_interval(start, end)
            if start < self.clock():
                raise BadRequestError("Bookings cannot start in the past")
            _validate_headcount(booking_in.headcount, space)

            if has_conflict(self.db, space.id, start, end):
                logger.info("Rejected booking on space %s: %s - %s overlaps", space.id, start, end)
                raise ConflictError(SLOT_TAKEN)

            booking = Booking(
                space_id=space.id,
                user_id=requester_id,
                unit_id=booking_in.unit_id,
                start_at=start,
                end_at=end,
                headcount=booking_in.headcount,
                state=initial_state(space),
                reason=booking_in.reason,
                total_price=compute_total(start, end, space.time_unit, space.price_per_unit),
                created_by=created_by,
            )
            self.db.add(booking)
            self.db.flush()
            booking_id = booking.id
            state = booking.state

        logger.info("Booking %s created on space %s as %s", booking_id, booking_in.space_id, state.value)
        return self._load(booking_id)

    def request(self, viewer: ViewerContext, booking_in: BookingCreate) -> Booking:
        """Create a booking on behalf of the caller.

        Administrators may name another resident in ``user_id``; the caller is
        always recorded as ``created_by``.
        """

        requester_id = booking_in.user_id or viewer.id
        if requester_id != viewer.id and not viewer.is_admin:
            raise ForbiddenError("Only administrators can book on behalf of another resident")
        return self.create(booking_in, requester_id, created_by=viewer.id)

    def update(self, viewer: ViewerContext, booking_id: str, patch: BookingUpdate) -> Booking:
        data = patch.model_dump(exclude_unset=True)

        with self._unit_of_work():
            booking = self._load(booking_id)
            ensure_can_modify(viewer, booking)

            if "state" in data:
                if data["state"] is None:
                    raise BadRequestError("The booking state cannot be cleared")
                check_transition(viewer, booking.state, data["state"])
            if "notes" in data and not viewer.is_admin:
                raise ForbiddenError("Only administrators can write booking notes")
            for required in ("space_id", "start_at", "end_at"):
                if required in data and data[required] is None:
                    raise BadRequestError(f"{required} cannot be cleared")

            space_id = data.get("space_id", booking.space_id)
            space_changed = space_id != booking.space_id
            interval_changed = "start_at" in data or "end_at" in data
            start = strip_offset(data.get("start_at", booking.start_at))
            end = strip_offset(data.get("end_at", booking.end_at))

            space: Optional[CommonSpace] = None
            if space_changed or interval_changed:
                space = self.spaces.get_for_update(space_id)
                _validate_interval(start, end)
                if has_conflict(self.db, space_id, start, end, exclude_id=booking.id):
                    raise ConflictError(SLOT_TAKEN)
                booking.space_id = space_id
                booking.start_at = start
                booking.end_at = end
                booking.total_price = compute_total(start, end, space.time_unit, space.price_per_unit)

            if "unit_id" in data and data["unit_id"] is not None:
                if not self.identities.unit_exists(data["unit_id"]):
                    raise NotFoundError(f"Unit {data['unit_id']} not found")
            if "headcount" in data or space_changed:
                _validate_headcount(data.get("headcount", booking.headcount), space or self.spaces.get(space_id))

            for key in ("unit_id", "headcount", "reason", "notes", "state"):
                if key in data:
                    setattr(booking, key, data[key])

        logger.info("Booking %s updated by %s (%s)", booking_id, viewer.id, ", ".join(sorted(data)) or "no changes")
        return self._load(booking_id)

    def cancel(self, viewer: ViewerContext, booking_id: str) -> Booking:
        return self.update(viewer, booking_id, BookingUpdate(state=BookingState.CANCELLED))

    def approve(self, viewer: ViewerContext, booking_id: str) -> Booking:
        ensure_admin(viewer, "approve bookings")
        return self.update(viewer, booking_id, BookingUpdate(state=BookingState.CONFIRMED))

    def reject(self, viewer: ViewerContext, booking_id: str) -> Booking:
        ensure_admin(viewer, "reject bookings")
        return self.update(viewer, booking_id, BookingUpdate(state=BookingState.CANCELLED))

    def delete(self, viewer: ViewerContext, booking_id: str) -> None:
        ensure_admin(viewer, "delete bookings")
        with self._unit_of_work():
            booking = self._load(booking_id)
            self.db.delete(booking)
        logger.info("Booking %s deleted by %s", booking_id, viewer.id)

    # -- reads --------------------------------------------------------------

    def get(self, viewer: ViewerContext, booking_id: str) -> Booking:
        booking = self._load(booking_id)
        ensure_can_view(viewer, booking)
        return booking

    def list(self, viewer: ViewerContext, filters: BookingFilters) -> Page:
        limit = min(filters.limit or self.settings.default_page_size, self.settings.max_page_size)
        query = self.db.query(Booking).join(CommonSpace, Booking.space_id == CommonSpace.id)

        owner = owner_scope(viewer, filters.only_mine)
        if owner is not None:
            query = query.filter(Booking.user_id == owner)
        if filters.state is not None:
            query = query.filter(Booking.state == filters.state)
        if filters.space_id:
            query = query.filter(Booking.space_id == filters.space_id)
        if filters.category is not None:
            query = query.filter(CommonSpace.category == filters.category)
        if filters.date_from:
            query = query.filter(Booking.start_at >= day_bounds(filters.date_from)[0])
        if filters.date_to:
            query = query.filter(Booking.start_at <= day_bounds(filters.date_to)[1])

        total = query.with_entities(func.count(Booking.id)).scalar() or 0
        items = (
            query.options(joinedload(Booking.space), joinedload(Booking.user), joinedload(Booking.unit))
            .order_by(Booking.start_at.desc(), Booking.id.asc())
            .offset((filters.page - 1) * limit)
            .limit(limit)
            .all()
        )
        return Page(items=items, total=total, page=filters.page, limit=limit)

    def list_week(self, viewer: ViewerContext, reference_day: Optional[date] = None) -> List[Booking]:
        """The caller's own bookings starting in the Monday-Sunday week of ``reference_day``."""

        week_start, week_end = week_bounds(reference_day or self.clock().date())
        return (
            self.db.query(Booking)
            .options(joinedload(Booking.space))
            .filter(
                Booking.user_id == viewer.id,
                Booking.start_at >= week_start,
                Booking.start_at <= week_end,
            )
            .order_by(Booking.start_at.asc())
            .all()
        )

    def occupied_slots(self, space_id: str, day: date) -> List[Booking]:
        self.spaces.get(space_id)
        day_start, day_end = day_bounds(day)
        return (
            self.db.query(Booking)
            .filter(
                Booking.space_id == space_id,
                Booking.state.in_(ACTIVE_STATES),
                Booking.start_at >= day_start,
                Booking.start_at <= day_end,
            )
            .order_by(Booking.start_at.asc())
            .all()
        )
