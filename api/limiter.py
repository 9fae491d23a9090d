"""
api/limiter.py -- Shared slowapi rate limiter for general API traffic.

enforce_api_limit() is attached as a router dependency to every /api/v1
router in api/main.py. It hits the limiter's strategy directly with the
general per-IP ceiling (100 requests per 15 minutes by default) instead of
relying on SlowAPIMiddleware to find the route, since routers included with
a prefix are not visible to the middleware's route lookup. The health route
is registered on the app itself and is therefore never counted.

Login-class endpoints are additionally guarded by auth.throttle.LoginThrottle,
which runs inside the handler.

Using a single shared instance ensures all routes share the same in-memory
counter store.
"""

import math
import time

from fastapi import Request
from limits import parse
from slowapi import Limiter
from slowapi.util import get_remote_address

from auth.errors import RateLimited
from core.config import get_settings

API_SCOPE = "api"

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

api_limit = parse(get_settings().api_rate_limit)


def enforce_api_limit(request: Request) -> None:
    """Count one request against the caller's general budget. Raises RateLimited (429)."""
    if not limiter.enabled:
        return
    key = get_remote_address(request)
    if limiter.limiter.hit(api_limit, API_SCOPE, key):
        return
    reset_time = limiter.limiter.get_window_stats(api_limit, API_SCOPE, key).reset_time
    raise RateLimited(
        "Too many requests, please try again later.",
        retry_after=max(1, math.ceil(reset_time - time.time())),
    )
