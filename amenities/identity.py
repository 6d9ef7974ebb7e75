"""Existence checks for the externally owned user and unit records."""
from __future__ import annotations

from typing import Protocol

from sqlalchemy.orm import Session

from .models import Resident, Unit


class IdentityLookup(Protocol):
    def user_exists(self, user_id: str) -> bool: ...

    def unit_exists(self, unit_id: str) -> bool: ...


class SqlIdentityLookup:
    """Looks identities up in the tenant's own ``user`` and ``unit`` tables."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def user_exists(self, user_id: str) -> bool:
        return self.db.query(Resident.id).filter(Resident.id == user_id).first() is not None

    def unit_exists(self, unit_id: str) -> bool:
        return self.db.query(Unit.id).filter(Unit.id == unit_id).first() is not None
