"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration shared across services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = Field(
        default="sqlite:///./amenities.db",
        description="Database used when a request carries no tenant. Defaults to local SQLite.",
    )
    tenant_database_url_template: str = Field(
        default="sqlite:///./tenant_{tenant}.db",
        description="Per-tenant database URL; '{tenant}' is replaced with the tenant id.",
    )
    tenant_engine_cache_size: int = Field(default=32, description="Tenant engines kept open at once")
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )
    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Token lifetime in minutes")
    admin_roles: List[str] = Field(
        default_factory=lambda: ["ADMIN", "SUPER_ADMIN"],
        description="Role claims that grant administrator privilege",
    )
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="30/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    default_page_size: int = Field(default=10, description="Bookings returned per page when no limit is given")
    max_page_size: int = Field(default=100, description="Upper bound for the booking list page size")
    log_dir: str = Field(default="logs", description="Directory that receives the audit logs")

    spaces_service_port: int = 8002
    bookings_service_port: int = 8003


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
