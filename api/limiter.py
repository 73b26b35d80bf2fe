"""
api/limiter.py -- The one slowapi Limiter for the process.

api/main.py mounts it (app.state.limiter + SlowAPIMiddleware) and
api/routes/auth.py decorates register and login with it. Both must see the
same object: counters live in the instance's memory:// storage, and a second
Limiter would count separately.

Limits are keyed on client IP. RATE_LIMIT_ENABLED=false disables every limit
(the test suite does this).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

AUTH_RATE_LIMIT = get_settings().auth_rate_limit

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=get_settings().rate_limit_enabled,
)
