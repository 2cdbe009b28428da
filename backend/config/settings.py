"""
backend/config/settings.py
Application settings

All settings are loaded from environment variables (a .env file is read
first when present). JWT_SECRET_KEY has no fallback: the application
refuses to start without it.
"""
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable."""
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return int(value)


def require_env(key: str) -> str:
    """Get a required environment variable or fail fast."""
    value = os.getenv(key, "").strip()
    if not value:
        raise EnvironmentError(f"Missing required environment variable: {key}")
    return value


class Settings:
    """
    Runtime settings.

    Instantiated once through get_settings(); tests may build their own
    instance after adjusting os.environ.
    """

    def __init__(self):
        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
        self.PORT: int = get_int_env("PORT", 5000)

        # Database
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./elearning.db")

        # Tokens
        self.JWT_SECRET_KEY: str = require_env("JWT_SECRET_KEY")
        self.JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
        self.ACCESS_TOKEN_EXPIRE_DAYS: int = get_int_env("ACCESS_TOKEN_EXPIRE_DAYS", 7)
        self.EMAIL_VERIFICATION_EXPIRE_DAYS: int = get_int_env("EMAIL_VERIFICATION_EXPIRE_DAYS", 1)
        self.BCRYPT_ROUNDS: int = get_int_env("BCRYPT_ROUNDS", 12)

        # Uploads and URLs
        self.UPLOAD_DIR: Path = Path(os.getenv("UPLOAD_DIR", str(PROJECT_ROOT / "uploads")))
        self.PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "").rstrip("/")
        self.MEETING_BASE_URL: str = os.getenv("MEETING_BASE_URL", "https://meet.jit.si").rstrip("/")

        # HTTP
        self.ALLOWED_ORIGINS: List[str] = [
            origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "").split(",") if origin.strip()
        ]
        self.RATE_LIMIT_ENABLED: bool = get_bool_env("RATE_LIMIT_ENABLED", True)
        self.AUTH_RATE_LIMIT: str = os.getenv("AUTH_RATE_LIMIT", "20/minute")

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


_settings = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
