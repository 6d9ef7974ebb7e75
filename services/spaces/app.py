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
from amenities.dependencies import get_booking_manager, get_space_registry, get_viewer, require_admin
from amenities.exception_handlers import setup_exception_handlers
from amenities.logging_middleware import add_audit_middleware
from amenities.models import CommonSpace, SpaceCategory
from amenities.rate_limit import apply_rate_limiter, limiter
from amenities.schemas import OccupiedSlots, SpaceCreate, SpaceRead, SpaceUpdate
from amenities.spaces import SpaceRegistry
from amenities.viewer import ViewerContext

settings = get_settings()


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    yield
    fastapi_app.state.engines.dispose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Spaces Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.state.engines = TenantEngines(settings)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "spaces")
    setup_exception_handlers(fastapi_app)
    Instrumentator(registry=CollectorRegistry()).instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "spaces"}


@app.post("/spaces", response_model=SpaceRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def add_space(
    request: Request,
    space_in: SpaceCreate,
    _: ViewerContext = Depends(require_admin),
    registry: SpaceRegistry = Depends(get_space_registry),
) -> CommonSpace:
    return registry.create(space_in)


@app.get("/spaces", response_model=List[SpaceRead])
@limiter.limit("60/minute")
def list_spaces(
    request: Request,
    active: Optional[bool] = None,
    category: Optional[SpaceCategory] = None,
    _: ViewerContext = Depends(get_viewer),
    registry: SpaceRegistry = Depends(get_space_registry),
) -> List[CommonSpace]:
    return registry.list(active=active, category=category)


@app.get("/spaces/{space_id}", response_model=SpaceRead)
@limiter.limit("60/minute")
def get_space(
    request: Request,
    space_id: str,
    _: ViewerContext = Depends(get_viewer),
    registry: SpaceRegistry = Depends(get_space_registry),
) -> CommonSpace:
    return registry.get(space_id)


@app.patch("/spaces/{space_id}", response_model=SpaceRead)
@limiter.limit("15/minute")
def update_space(
    request: Request,
    space_id: str,
    space_update: SpaceUpdate,
    _: ViewerContext = Depends(require_admin),
    registry: SpaceRegistry = Depends(get_space_registry),
) -> CommonSpace:
    return registry.update(space_id, space_update)


@app.delete("/spaces/{space_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("15/minute")
def delete_space(
    request: Request,
    space_id: str,
    _: ViewerContext = Depends(require_admin),
    registry: SpaceRegistry = Depends(get_space_registry),
) -> Response:
    registry.delete(space_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/spaces/{space_id}/occupied", response_model=OccupiedSlots)
@limiter.limit("60/minute")
def occupied_slots(
    request: Request,
    space_id: str,
    day: date = Query(...),
    _: ViewerContext = Depends(get_viewer),
    manager: BookingManager = Depends(get_booking_manager),
) -> OccupiedSlots:
    slots = manager.occupied_slots(space_id, day)
    return OccupiedSlots.model_validate({"space_id": space_id, "day": day, "slots": slots}, from_attributes=True)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.spaces_service_port)
