"""Catalog of bookable common spaces."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .database import begin_write
from .errors import BadRequestError, ConflictError, NotFoundError
from .models import ACTIVE_STATES, Booking, CommonSpace, SpaceCategory
from .schemas import SpaceCreate, SpaceUpdate

logger = logging.getLogger(__name__)


def _validate_attributes(data: Dict[str, Any]) -> None:
    if "name" in data and (data["name"] is None or not data["name"].strip()):
        raise BadRequestError("Space name must not be empty")
    if "capacity" in data and (data["capacity"] is None or data["capacity"] < 1):
        raise BadRequestError("Capacity must be at least 1")
    price = data.get("price_per_unit")
    if price is not None and Decimal(price) < 0:
        raise BadRequestError("Price per unit must not be negative")
    for required in ("category", "time_unit", "is_active", "requires_approval"):
        if required in data and data[required] is None:
            raise BadRequestError(f"{required} cannot be cleared")


class SpaceRegistry:
    def __init__(self, db: Session) -> None:
        self.db = db

    def create(self, space_in: SpaceCreate) -> CommonSpace:
        data = space_in.model_dump(mode="python")
        _validate_attributes(data)
        begin_write(self.db)
        if space_in.availability is not None:
            data["availability"] = space_in.availability.model_dump(mode="json")
        data["name"] = data["name"].strip()
        space = CommonSpace(**data)
        self.db.add(space)
        self.db.commit()
        self.db.refresh(space)
        logger.info("Created space %s (%s)", space.id, space.name)
        return space

    def get(self, space_id: str) -> CommonSpace:
        space = self.db.query(CommonSpace).filter(CommonSpace.id == space_id).first()
        if not space:
            raise NotFoundError(f"Common space {space_id} not found")
        return space

    def get_for_update(self, space_id: str) -> CommonSpace:
        """Fetch the space and lock its row until the current transaction ends.

        Bookings of one space are written one at a time behind this lock;
        other spaces are unaffected.
        """

        space = self.db.query(CommonSpace).filter(CommonSpace.id == space_id).with_for_update().first()
        if not space:
            raise NotFoundError(f"Common space {space_id} not found")
        return space

    def list(self, active: Optional[bool] = None, category: Optional[SpaceCategory] = None) -> List[CommonSpace]:
        query = self.db.query(CommonSpace)
        if active is not None:
            query = query.filter(CommonSpace.is_active.is_(active))
        if category is not None:
            query = query.filter(CommonSpace.category == category)
        return query.order_by(CommonSpace.name.asc(), CommonSpace.id.asc()).all()

    def update(self, space_id: str, space_update: SpaceUpdate) -> CommonSpace:
        data = space_update.model_dump(exclude_unset=True)
        _validate_attributes(data)
        begin_write(self.db)
        space = self.get(space_id)
        if "availability" in data and space_update.availability is not None:
            data["availability"] = space_update.availability.model_dump(mode="json")
        if "name" in data:
            data["name"] = data["name"].strip()
        for key, value in data.items():
            setattr(space, key, value)
        self.db.commit()
        self.db.refresh(space)
        return space

    def count_active_bookings(self, space_id: str) -> int:
        return (
            self.db.query(func.count(Booking.id))
            .filter(Booking.space_id == space_id, Booking.state.in_(ACTIVE_STATES))
            .scalar()
            or 0
        )

    def delete(self, space_id: str) -> None:
        """Remove the space, refusing while it still has active bookings.

        The space row stays locked from the count to the commit, so a booking
        created concurrently is either counted or waits for the delete.
        """

        begin_write(self.db)
        try:
            space = self.get_for_update(space_id)
            active = self.count_active_bookings(space_id)
            if active > 0:
                raise ConflictError(f"Cannot delete the space because it has {active} active booking(s)")
            self.db.delete(space)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Deleted space %s", space_id)
