"""
backend/security/rate_limit.py
Shared slowapi limiter for the credential endpoints

The same instance is attached to app.state.limiter in main.py.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from backend.config.settings import get_settings

limiter = Limiter(key_func=get_remote_address, enabled=get_settings().RATE_LIMIT_ENABLED)


def auth_rate_limit() -> str:
    return get_settings().AUTH_RATE_LIMIT
