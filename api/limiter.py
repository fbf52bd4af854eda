"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (mounted as middleware and app.state.limiter) and by
api/routes/v1/auth.py (per-route limits with @limiter.limit()). A single
instance means every route shares one in-memory counter store.

The login limit is per client IP and complements the per-account lockout in
auth/lockout.py: lockout stops guessing against one account, the rate limit
slows guessing across many.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Current login limit string, e.g. '10/minute'. Read per request so tests can raise it."""
    return get_settings().login_rate_limit
