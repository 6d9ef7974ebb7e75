"""Pydantic schemas for spaces and bookings."""
from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .models import BookingState, SpaceCategory, TimeUnit

AVAILABILITY_SCHEMA_VERSION = 1


class AvailabilityRule(BaseModel):
    weekday: int = Field(..., ge=0, le=6, description="0 = Monday ... 6 = Sunday")
    opens: time
    closes: time

    @model_validator(mode="after")
    def _opens_before_closes(self) -> "AvailabilityRule":
        if self.opens >= self.closes:
            raise ValueError("opens must be earlier than closes")
        return self


class AvailabilitySchedule(BaseModel):
    """Opening hours of a space, stored as-is for whoever renders availability."""

    version: int = AVAILABILITY_SCHEMA_VERSION
    rules: List[AvailabilityRule] = Field(default_factory=list)


class SpaceBase(BaseModel):
    name: str = Field(..., max_length=120)
    category: SpaceCategory
    capacity: int
    description: Optional[str] = None
    time_unit: TimeUnit
    price_per_unit: Optional[Decimal] = None
    is_active: bool = True
    image_url: Optional[str] = Field(None, max_length=500)
    availability: Optional[AvailabilitySchedule] = None
    requires_approval: bool = True


class SpaceCreate(SpaceBase):
    pass


class SpaceUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=120)
    category: Optional[SpaceCategory] = None
    capacity: Optional[int] = None
    description: Optional[str] = None
    time_unit: Optional[TimeUnit] = None
    price_per_unit: Optional[Decimal] = None
    is_active: Optional[bool] = None
    image_url: Optional[str] = Field(None, max_length=500)
    availability: Optional[AvailabilitySchedule] = None
    requires_approval: Optional[bool] = None


class SpaceRead(SpaceBase):
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SpaceSummary(BaseModel):
    id: str
    name: str
    category: SpaceCategory
    capacity: int
    time_unit: TimeUnit
    price_per_unit: Optional[Decimal] = None
    requires_approval: bool
    image_url: Optional[str] = None

    model_config = {"from_attributes": True}


class ResidentSummary(BaseModel):
    id: str
    name: str
    email: Optional[str] = None

    model_config = {"from_attributes": True}


class UnitSummary(BaseModel):
    id: str
    identifier: str

    model_config = {"from_attributes": True}


class BookingCreate(BaseModel):
    space_id: str
    start_at: datetime
    end_at: datetime
    unit_id: Optional[str] = None
    headcount: Optional[int] = None
    reason: Optional[str] = Field(None, max_length=1000)
    user_id: Optional[str] = Field(None, description="Requester when an administrator books for a resident")


class BookingUpdate(BaseModel):
    space_id: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    unit_id: Optional[str] = None
    headcount: Optional[int] = None
    reason: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=2000)
    state: Optional[BookingState] = None


class BookingRead(BaseModel):
    id: str
    space_id: str
    user_id: str
    unit_id: Optional[str] = None
    start_at: datetime
    end_at: datetime
    headcount: Optional[int] = None
    state: BookingState
    reason: Optional[str] = None
    notes: Optional[str] = None
    total_price: Optional[Decimal] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    space: Optional[SpaceSummary] = None
    user: Optional[ResidentSummary] = None
    unit: Optional[UnitSummary] = None

    model_config = {"from_attributes": True}


class BookingFilters(BaseModel):
    state: Optional[BookingState] = None
    space_id: Optional[str] = None
    category: Optional[SpaceCategory] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    only_mine: bool = False
    page: int = Field(1, ge=1)
    limit: Optional[int] = Field(None, ge=1)


class BookingPage(BaseModel):
    items: List[BookingRead]
    total: int
    page: int
    limit: int
    total_pages: int


class OccupiedSlot(BaseModel):
    start_at: datetime
    end_at: datetime
    state: BookingState

    model_config = {"from_attributes": True}


class OccupiedSlots(BaseModel):
    space_id: str
    day: date
    slots: List[OccupiedSlot]
