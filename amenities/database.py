"""Engine construction and per-tenant session handling."""
from __future__ import annotations

import logging
from typing import Generator, Optional, Tuple

from cachetools import LRUCache
from fastapi import Header, Request
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import Settings, get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


WRITE_LOCK = {"sqlite_begin": "IMMEDIATE"}


def _configure_sqlite_transactions(engine: Engine) -> None:
    """Let SQLAlchemy issue BEGIN itself, choosing the mode per transaction.

    Plain reads open a DEFERRED transaction and never wait on each other.
    A transaction started through :func:`begin_write` opens with
    BEGIN IMMEDIATE instead, so the conflict check and the write that
    follows it run under the database write lock.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, _record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):  # type: ignore[no-untyped-def]
        mode = conn.get_execution_options().get("sqlite_begin", "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


def begin_write(db: Session) -> None:
    """Open the session's transaction holding the write lock on SQLite.

    Other backends ignore the option and lock rows explicitly. A transaction
    already open on the session is kept as it is.
    """

    if not db.in_transaction():
        db.connection(execution_options=WRITE_LOCK)


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
        _configure_sqlite_transactions(engine)
        return engine
    return create_engine(url, pool_pre_ping=True, pool_recycle=300)


class _EngineCache(LRUCache):
    def popitem(self):  # type: ignore[override]
        url, entry = super().popitem()
        logger.info("Disposing engine for %s", url)
        entry[0].dispose()
        return url, entry


class TenantEngines:
    """One engine and session factory per tenant database.

    Instances live on ``app.state``; each request receives its own ``Session``
    from :meth:`session_for` and never shares it.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._cache: LRUCache = _EngineCache(maxsize=self.settings.tenant_engine_cache_size)

    def url_for(self, tenant: Optional[str]) -> str:
        if not tenant:
            return self.settings.database_url
        safe = "".join(ch if ch.isalnum() or ch == "_" else "_" for ch in tenant)
        return self.settings.tenant_database_url_template.format(tenant=safe)

    def _entry(self, tenant: Optional[str]) -> Tuple[Engine, sessionmaker]:
        url = self.url_for(tenant)
        entry = self._cache.get(url)
        if entry is None:
            engine = build_engine(url)
            if self.settings.run_db_migrations:
                Base.metadata.create_all(bind=engine)
            entry = (engine, sessionmaker(autocommit=False, autoflush=False, bind=engine))
            self._cache[url] = entry
        return entry

    def engine_for(self, tenant: Optional[str]) -> Engine:
        return self._entry(tenant)[0]

    def session_for(self, tenant: Optional[str]) -> Session:
        return self._entry(tenant)[1]()

    def dispose(self) -> None:
        for engine, _maker in list(self._cache.values()):
            engine.dispose()
        self._cache.clear()


def get_tenant_db(
    request: Request,
    x_tenant_id: Optional[str] = Header(default=None, alias="X-Tenant-ID"),
) -> Generator[Session, None, None]:
    engines: TenantEngines = request.app.state.engines
    db = engines.session_for(x_tenant_id)
    try:
        yield db
    finally:
        db.close()
