"""
auth/clock.py -- Injectable time source.

Expiry decisions (bearer tokens, reset tokens) read time through a Clock so
tests can pin or advance it. Production code uses SystemClock.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
