"""Injectable clocks.

Everything that depends on "now" (cache freshness, cacheability, rate expiry,
scheduler windows) takes a clock so tests can pin time.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def store_today(clock: Clock, offset_minutes: int = 0) -> date:
    """Calendar day in a store's local time."""
    return (clock() + timedelta(minutes=offset_minutes)).date()


class FrozenClock:
    """Clock returning a fixed instant; advance() moves it forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


__all__ = ["Clock", "FrozenClock", "store_today", "utc_now"]
