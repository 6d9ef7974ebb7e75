"""Who is calling, and what they may see or touch.

A :class:`ViewerContext` is built once per request by the service layer and
passed explicitly into every core call. Decisions are taken per call from
that value alone; nothing is cached between calls.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import ForbiddenError
from .models import Booking


@dataclass(frozen=True)
class ViewerContext:
    id: str
    is_admin: bool = False

    @classmethod
    def from_claims(cls, user_id: str, role: Optional[str], admin_roles: Iterable[str]) -> "ViewerContext":
        admin = role is not None and role.upper() in {r.upper() for r in admin_roles}
        return cls(id=str(user_id), is_admin=admin)


def owns(viewer: ViewerContext, booking: Booking) -> bool:
    return booking.user_id == viewer.id


def ensure_can_view(viewer: ViewerContext, booking: Booking) -> None:
    if not viewer.is_admin and not owns(viewer, booking):
        raise ForbiddenError("You are not allowed to view this booking")


def ensure_can_modify(viewer: ViewerContext, booking: Booking) -> None:
    if not viewer.is_admin and not owns(viewer, booking):
        raise ForbiddenError("You are not allowed to modify this booking")


def ensure_admin(viewer: ViewerContext, action: str) -> None:
    if not viewer.is_admin:
        raise ForbiddenError(f"Only administrators can {action}")


def owner_scope(viewer: ViewerContext, only_mine: bool = False) -> Optional[str]:
    """Owner id every booking read must be narrowed to, or None for no narrowing."""

    if not viewer.is_admin or only_mine:
        return viewer.id
    return None
