import os
from datetime import datetime
from typing import Callable, Dict, Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_amenities.db")
os.environ.setdefault("TENANT_DATABASE_URL_TEMPLATE", "sqlite:///./test_tenant_{tenant}.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("LOG_DIR", "./test-logs")

from amenities.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from amenities.auth import create_access_token  # noqa: E402
from amenities.bookings import BookingManager  # noqa: E402
from amenities.database import Base, build_engine  # noqa: E402
from amenities.models import Resident, SpaceCategory, TimeUnit, Unit  # noqa: E402
from amenities.schemas import SpaceCreate  # noqa: E402
from amenities.spaces import SpaceRegistry  # noqa: E402
from amenities.viewer import ViewerContext  # noqa: E402
from services.bookings.app import app as bookings_app  # noqa: E402
from services.spaces.app import app as spaces_app  # noqa: E402

# Fixed "now" for the core tests; everything they book lies after it.
NOW = datetime(2026, 1, 1, 8, 0, 0)

ADMIN_ID = "admin-1"
ALICE_ID = "alice-1"
BOB_ID = "bob-1"
UNIT_ID = "unit-101"


def seed_identities(db: Session) -> None:
    db.add_all(
        [
            Resident(id=ADMIN_ID, name="Administrator", email="admin@example.com"),
            Resident(id=ALICE_ID, name="Alice", email="alice@example.com"),
            Resident(id=BOB_ID, name="Bob", email="bob@example.com"),
            Unit(id=UNIT_ID, identifier="T1-101"),
        ]
    )
    db.commit()


# -- core fixtures ---------------------------------------------------------


@pytest.fixture()
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'tenant.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine) -> sessionmaker:
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    with factory() as db:
        seed_identities(db)
    return factory


@pytest.fixture()
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def manager(db_session) -> BookingManager:
    return BookingManager(db_session, clock=lambda: NOW)


@pytest.fixture()
def registry(db_session) -> SpaceRegistry:
    return SpaceRegistry(db_session)


@pytest.fixture()
def make_space(registry) -> Callable[..., str]:
    def _make(**overrides) -> str:
        payload = {
            "name": "Social Hall",
            "category": SpaceCategory.SOCIAL_HALL,
            "capacity": 40,
            "time_unit": TimeUnit.HOUR,
            "price_per_unit": "50000",
        }
        payload.update(overrides)
        return registry.create(SpaceCreate(**payload)).id

    return _make


@pytest.fixture()
def admin() -> ViewerContext:
    return ViewerContext(id=ADMIN_ID, is_admin=True)


@pytest.fixture()
def alice() -> ViewerContext:
    return ViewerContext(id=ALICE_ID)


@pytest.fixture()
def bob() -> ViewerContext:
    return ViewerContext(id=BOB_ID)


# -- service fixtures ------------------------------------------------------


@pytest.fixture()
def _service_database() -> Generator[None, None, None]:
    engine = bookings_app.state.engines.engine_for(None)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with Session(engine) as db:
        seed_identities(db)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def spaces_client(_service_database) -> Generator[TestClient, None, None]:
    with TestClient(spaces_app) as client:
        yield client


@pytest.fixture()
def bookings_client(_service_database) -> Generator[TestClient, None, None]:
    with TestClient(bookings_app) as client:
        yield client


def auth_header(user_id: str, role: str = "RESIDENT") -> Dict[str, str]:
    token = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers() -> Dict[str, str]:
    return auth_header(ADMIN_ID, "ADMIN")


@pytest.fixture()
def alice_headers() -> Dict[str, str]:
    return auth_header(ALICE_ID)


@pytest.fixture()
def bob_headers() -> Dict[str, str]:
    return auth_header(BOB_ID)
