"""SQLAlchemy models for one tenant's booking database."""
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    DDL,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base
from .timeutils import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class SpaceCategory(str, Enum):
    SOCIAL_HALL = "SOCIAL_HALL"
    BBQ_ZONE = "BBQ_ZONE"
    SAUNA = "SAUNA"
    EVENT_HOUSE = "EVENT_HOUSE"
    GYM = "GYM"
    POOL = "POOL"
    SPORTS_COURT = "SPORTS_COURT"
    PARKING = "PARKING"
    OTHER = "OTHER"


class TimeUnit(str, Enum):
    HOUR = "HOUR"
    DAY = "DAY"
    MONTH = "MONTH"


class BookingState(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


ACTIVE_STATES = (BookingState.PENDING, BookingState.CONFIRMED)


class Resident(Base):
    """Mirror of the externally owned ``user`` table (read only here)."""

    __tablename__ = "user"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(150))
    email: Mapped[Optional[str]] = mapped_column(String(255), default=None)


class Unit(Base):
    """Mirror of the externally owned ``unit`` table (read only here)."""

    __tablename__ = "unit"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    identifier: Mapped[str] = mapped_column(String(50))


class CommonSpace(Base):
    __tablename__ = "common_space"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_common_space_capacity"),
        CheckConstraint("price_per_unit IS NULL OR price_per_unit >= 0", name="ck_common_space_price"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(120), index=True)
    category: Mapped[SpaceCategory] = mapped_column(SqlEnum(SpaceCategory, native_enum=False, length=20), index=True)
    capacity: Mapped[int] = mapped_column(Integer)
    description: Mapped[Optional[str]] = mapped_column(Text, default=None)
    time_unit: Mapped[TimeUnit] = mapped_column(SqlEnum(TimeUnit, native_enum=False, length=10))
    price_per_unit: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), default=None)
    availability: Mapped[Optional[dict]] = mapped_column(JSON, default=None)
    requires_approval: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    bookings: Mapped[List["Booking"]] = relationship(
        back_populates="space", cascade="all, delete-orphan"
    )


class Booking(Base):
    __tablename__ = "booking"
    __table_args__ = (
        CheckConstraint("start_at < end_at", name="ck_booking_interval"),
        Index("ix_booking_space_start", "space_id", "start_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    space_id: Mapped[str] = mapped_column(ForeignKey("common_space.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("user.id"), index=True)
    unit_id: Mapped[Optional[str]] = mapped_column(ForeignKey("unit.id"), default=None)
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    headcount: Mapped[Optional[int]] = mapped_column(Integer, default=None)
    state: Mapped[BookingState] = mapped_column(
        SqlEnum(BookingState, native_enum=False, length=20), default=BookingState.PENDING, index=True
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, default=None)
    notes: Mapped[Optional[str]] = mapped_column(Text, default=None)
    total_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), default=None)
    created_by: Mapped[Optional[str]] = mapped_column(String(36), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    space: Mapped[CommonSpace] = relationship(back_populates="bookings")
    user: Mapped[Resident] = relationship()
    unit: Mapped[Optional[Unit]] = relationship()


# PostgreSQL backstop: two active bookings of one space may never overlap,
# whatever path wrote them.
BTREE_GIST_SQL = "CREATE EXTENSION IF NOT EXISTS btree_gist"
BOOKING_OVERLAP_GUARD_SQL = (
    "ALTER TABLE booking ADD CONSTRAINT booking_no_overlap "
    "EXCLUDE USING gist (space_id WITH =, tsrange(start_at, end_at, '[)') WITH &&) "
    "WHERE (state IN ('PENDING', 'CONFIRMED'))"
)

event.listen(Booking.__table__, "before_create", DDL(BTREE_GIST_SQL).execute_if(dialect="postgresql"))
event.listen(Booking.__table__, "after_create", DDL(BOOKING_OVERLAP_GUARD_SQL).execute_if(dialect="postgresql"))
