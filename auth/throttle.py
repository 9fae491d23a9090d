"""
auth/throttle.py -- Per-origin attempt throttle for login-class endpoints.

Built on the `limits` library, the same engine slowapi uses for the general
API limiter in api/limiter.py. The throttle is a separate object because it
must be injectable (one fresh instance per test) and must run inside the
handler, before any credential lookup, so it also throttles guesses against
emails that do not exist.

Windows: fixed windows aligned to the injected Clock. The current window
number (clock seconds // window length) is part of the counter key, so a
new window starts a new counter and retry_after is measured on the same
clock. The storage's own expiry only garbage-collects old windows.

Atomicity: FixedWindowRateLimiter.hit() is a single storage increment that
returns the post-increment count, and the comparison is made on that value.
Two concurrent requests racing for the last slot get different counts, so at
most one of them is admitted. No read-then-write.

Counters are keyed by (scope, origin, window). Losing them on restart is
acceptable; point storage_uri at redis:// to share them between workers.
"""

from __future__ import annotations

import logging

from limits import parse
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter

from auth.clock import Clock, SystemClock
from auth.errors import RateLimited

logger = logging.getLogger("storefront.auth")

LOGIN_SCOPE = "login"
FORGOT_PASSWORD_SCOPE = "forgot-password"
RESET_PASSWORD_SCOPE = "reset-password"


class LoginThrottle:
    """Fixed-window attempt counter keyed by scope and origin.

    Usage:
        throttle = LoginThrottle("10/15 minutes")
        throttle.hit(LOGIN_SCOPE, request.client.host)   # raises RateLimited
    """

    def __init__(
        self,
        limit: str = "10/15 minutes",
        storage_uri: str = "memory://",
        clock: Clock | None = None,
    ) -> None:
        self.limit = parse(limit)
        self.window_seconds = self.limit.get_expiry()
        self._clock = clock or SystemClock()
        self._storage = storage_from_string(storage_uri)
        self._strategy = FixedWindowRateLimiter(self._storage)

    def _window(self) -> tuple[str, int]:
        """Return (window key, seconds until the window closes) for the clock's now."""
        now = int(self._clock.now().timestamp())
        window, elapsed = divmod(now, self.window_seconds)
        return str(window), self.window_seconds - elapsed

    def hit(self, scope: str, origin: str) -> None:
        """Count one attempt. Raises RateLimited once the ceiling is exceeded."""
        window, retry_after = self._window()
        if self._strategy.hit(self.limit, scope, origin, window):
            return
        logger.warning("Throttled %s attempt from %s (retry in %ds)", scope, origin, retry_after)
        raise RateLimited(retry_after=retry_after)

    def remaining(self, scope: str, origin: str) -> int:
        window, _ = self._window()
        return self._strategy.get_window_stats(self.limit, scope, origin, window).remaining

    def retry_after(self, scope: str, origin: str) -> int:
        """Seconds until the current window closes and the budget is restored."""
        return self._window()[1]

    def clear(self, scope: str, origin: str) -> None:
        window, _ = self._window()
        self._strategy.clear(self.limit, scope, origin, window)

    def reset(self) -> None:
        """Drop every counter."""
        self._storage.reset()
