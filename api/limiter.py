"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/auth.py (to apply the stricter login/register limits with
@limiter.limit()).

Every other route gets Settings.default_rate_limit through default_limits.
All routes share one in-memory counter store keyed by client IP; a second
Limiter instance would keep its own counters and its limits would never
add up with these.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[_settings.default_rate_limit],
    storage_uri="memory://",
    headers_enabled=False,
    enabled=_settings.rate_limit_enabled,
)
