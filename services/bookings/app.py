from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CollectorRegistry
from prometheus_fastapi_instrumentator import Instrumentator

from amenities.bookings import BookingManager
from amenities.config import get_settings
from amenities.database import TenantEngines
from amenities.dependencies import get_booking_manager, get_viewer
from amenities.exception_handlers import setup_exception_handlers
from amenities.logging_middleware import add_audit_middleware
from amenities.models import BookingState, SpaceCategory
from amenities.rate_limit import apply_rate_limiter, limiter
from amenities.schemas import BookingCreate, BookingFilters, BookingPage, BookingRead, BookingUpdate
from amenities.viewer import ViewerContext

settings = get_settings()


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    yield
    fastapi_app.state.engines.dispose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Bookings Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.state.engines = TenantEngines(settings)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "bookings")
    setup_exception_handlers(fastapi_app)
    Instrumentator(registry=CollectorRegistry()).instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "bookings"}


@app.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_booking(
    request: Request,
    booking_in: BookingCreate,
    viewer: ViewerContext = Depends(get_viewer),
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.request(viewer, booking_in)


@app.get("/bookings", response_model=BookingPage)
@limiter.limit("60/minute")
def list_bookings(
    request: Request,
    state: Optional[BookingState] = None,
    space_id: Optional[str] = None,
    category: Optional[SpaceCategory] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    only_mine: bool = False,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    viewer: ViewerContext = Depends(get_viewer),
    manager: BookingManager = Depends(get_booking_manager),
) -> BookingPage:
    filters = BookingFilters(
        state=state,
        space_id=space_id,
        category=category,
        date_from=date_from,
        date_to=date_to,
        only_mine=only_mine,
        page=page,
        limit=limit,
    )
    return BookingPage.model_validate(manager.list(viewer, filters), from_attributes=True)


@app.get("/bookings/week", response_model=List[BookingRead])
@limiter.limit("60/minute")
def my_week(
    request: Request,
    day: Optional[date] = None,
    viewer: ViewerContext = Depends(get_viewer),
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.list_week(viewer, day)


@app.get("/bookings/{booking_id}", response_model=BookingRead)
@limiter.limit("60/minute")
def get_booking(
    request: Request,
    booking_id: str,
    viewer: ViewerContext = Depends(get_viewer),
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.get(viewer, booking_id)


@app.patch("/bookings/{booking_id}", response_model=BookingRead)
@limiter.limit("20/minute")
def update_booking(
    request: Request,
    booking_id: str,
    booking_update: BookingUpdate,
    viewer: ViewerContext = Depends(get_viewer),
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.update(viewer, booking_id, booking_update)


@app.post("/bookings/{booking_id}/cancel", response_model=BookingRead)
@limiter.limit("20/minute")
def cancel_booking(
    request: Request,
    booking_id: str,
    viewer: ViewerContext = Depends(get_viewer),
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.cancel(viewer, booking_id)


@app.post("/bookings/{booking_id}/approve", response_model=BookingRead)
@limiter.limit("20/minute")
def approve_booking(
    request: Request,
    booking_id: str,
    viewer: ViewerContext = Depends(get_viewer),
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.approve(viewer, booking_id)


@app.post("/bookings/{booking_id}/reject", response_model=BookingRead)
@limiter.limit("20/minute")
def reject_booking(
    request: Request,
    booking_id: str,
    viewer: ViewerContext = Depends(get_viewer),
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.reject(viewer, booking_id)


@app.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("20/minute")
def delete_booking(
    request: Request,
    booking_id: str,
    viewer: ViewerContext = Depends(get_viewer),
    manager: BookingManager = Depends(get_booking_manager),
) -> Response:
    manager.delete(viewer, booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.bookings_service_port)
