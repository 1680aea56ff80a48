"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the routes that
sit in front of authentication (/authenticate, /admin/*) to apply per-route
limits with @limiter.limit().

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

Limits are read from Settings lazily through the provider functions below, so
importing this module does not force settings to load.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def authenticate_limit() -> str:
    return get_settings().authenticate_rate_limit


def admin_limit() -> str:
    return get_settings().admin_rate_limit
