"""Reusable FastAPI dependencies for the caller, the tenant session and the core services."""
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .auth import viewer_from_token
from .bookings import BookingManager
from .database import get_tenant_db
from .errors import ForbiddenError
from .spaces import SpaceRegistry
from .viewer import ViewerContext

oauth_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_viewer(token: str = Depends(oauth_scheme)) -> ViewerContext:
    return viewer_from_token(token)


def require_admin(viewer: ViewerContext = Depends(get_viewer)) -> ViewerContext:
    if not viewer.is_admin:
        raise ForbiddenError("Administrator privilege required")
    return viewer


def get_space_registry(db: Session = Depends(get_tenant_db)) -> SpaceRegistry:
    return SpaceRegistry(db)


def get_booking_manager(db: Session = Depends(get_tenant_db)) -> BookingManager:
    return BookingManager(db)
