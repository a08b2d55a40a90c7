"""Asynchronous token bucket rate limiter.

Shopify's REST limits are a leaky bucket (40 requests, refilled at 2/sec for
standard plans); the same refill model works for the Graph API budget.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable


class AsyncTokenBucket:
    """Token bucket with time-based refill and server-driven cool-down."""

    def __init__(
        self,
        rate_per_sec: float,
        capacity: int,
        time_fn: Callable[[], float] = time.monotonic,
    ):
        """Initialize token bucket.

        Args:
            rate_per_sec: Token refill rate per second
            capacity: Maximum number of tokens (burst size)
            time_fn: Monotonic time source

        """
        self.rate = rate_per_sec
        self.capacity = capacity
        self.tokens = float(capacity)
        self._time = time_fn
        self.updated = time_fn()
        self.blocked_until = 0.0
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._time()
        self.tokens = min(self.capacity, self.tokens + (now - self.updated) * self.rate)
        self.updated = now

    async def acquire(self, tokens: int = 1) -> None:
        """Acquire tokens from bucket, waiting if necessary."""
        async with self._lock:
            cooldown = self.blocked_until - self._time()
            if cooldown > 0:
                await asyncio.sleep(cooldown)

            self._refill()
            if self.tokens < tokens:
                await asyncio.sleep((tokens - self.tokens) / self.rate)
                self._refill()
            self.tokens = max(0.0, self.tokens - tokens)

    def penalize(self, retry_after: float) -> None:
        """Drain the bucket and block callers for `retry_after` seconds (HTTP 429)."""
        self.tokens = 0.0
        self.blocked_until = max(self.blocked_until, self._time() + retry_after)


__all__ = ["AsyncTokenBucket"]
