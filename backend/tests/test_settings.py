"""
backend/tests/test_settings.py
Environment-driven settings
"""
import pytest

from backend.config.settings import Settings, get_settings, reset_settings


@pytest.fixture
def fresh_settings():
    reset_settings()
    yield
    reset_settings()


class TestSettings:

    def test_missing_jwt_secret_fails_fast(self, monkeypatch, fresh_settings):
        monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
        with pytest.raises(EnvironmentError, match="JWT_SECRET_KEY"):
            get_settings()

    def test_blank_jwt_secret_is_missing(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET_KEY", "   ")
        with pytest.raises(EnvironmentError):
            Settings()

    def test_values_come_from_the_environment(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET_KEY", "abc")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example ,")
        monkeypatch.setenv("RATE_LIMIT_ENABLED", "no")
        monkeypatch.setenv("ENVIRONMENT", "production")

        settings = Settings()
        assert settings.ALLOWED_ORIGINS == ["https://a.example", "https://b.example"]
        assert settings.RATE_LIMIT_ENABLED is False
        assert settings.is_development is False

    def test_settings_are_cached(self, fresh_settings):
        assert get_settings() is get_settings()
