"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/users.py (to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

Limits must be plain strings: SlowAPIMiddleware only enforces the static
per-route limits, and callable (dynamic) limits are skipped there.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Limit for the unauthenticated POST routes (AUTH_RATE_LIMIT), read once at import.
AUTH_RATE_LIMIT = get_settings().auth_rate_limit
