"""Unit tests for configuration and settings."""
from amenities.config import Settings, get_settings, reset_settings_cache


class TestSettings:
    """Test configuration management."""

    def test_get_settings_returns_same_instance(self):
        """Test that get_settings returns cached instance."""
        assert get_settings() is get_settings()

    def test_reset_settings_cache(self):
        """Test that cache can be reset."""
        settings1 = get_settings()
        reset_settings_cache()
        settings2 = get_settings()

        assert settings1 is not settings2

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_PAGE_SIZE", "25")
        monkeypatch.setenv("ADMIN_ROLES", '["MANAGER"]')

        settings = Settings()

        assert settings.default_page_size == 25
        assert settings.admin_roles == ["MANAGER"]

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "TENANT_DATABASE_URL_TEMPLATE", "RATE_LIMITING_ENABLED", "LOG_DIR"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.database_url == "sqlite:///./amenities.db"
        assert "{tenant}" in settings.tenant_database_url_template
        assert settings.jwt_algorithm == "HS256"
        assert settings.admin_roles == ["ADMIN", "SUPER_ADMIN"]
        assert settings.default_page_size == 10
        assert settings.max_page_size == 100
        assert settings.rate_limiting_enabled is True

    def test_service_ports_configuration(self):
        """Test service port configuration."""
        settings = get_settings()

        assert settings.spaces_service_port == 8002
        assert settings.bookings_service_port == 8003
