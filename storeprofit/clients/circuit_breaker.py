"""Per-host circuit breaker.

Stops hammering an upstream that keeps failing; after `reset_timeout` a single
probe request is let through (half-open) and its outcome decides the state.
"""

from __future__ import annotations

import time
from collections.abc import Callable

CLOSED = "closed"
OPEN = "open"
HALF_OPEN = "half-open"


class CircuitBreaker:
    """Open after N consecutive failures, half-open after a timeout."""

    def __init__(
        self,
        fail_threshold: int = 5,
        reset_timeout: float = 30.0,
        time_fn: Callable[[], float] = time.monotonic,
    ):
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self.fail_count = 0
        self.state = CLOSED
        self.opened_at = 0.0
        self._time = time_fn

    def on_success(self) -> None:
        """Record successful call; closes the circuit."""
        self.fail_count = 0
        self.state = CLOSED

    def on_failure(self) -> None:
        """Record failed call; a failed half-open probe re-opens immediately."""
        self.fail_count += 1
        if self.state == HALF_OPEN or (
            self.fail_count >= self.fail_threshold and self.state != OPEN
        ):
            self.state = OPEN
            self.opened_at = self._time()

    def allow(self) -> bool:
        """Check if a request may go through."""
        if self.state == OPEN:
            if self._time() - self.opened_at >= self.reset_timeout:
                self.state = HALF_OPEN
                return True
            return False
        return True


__all__ = ["CircuitBreaker", "CLOSED", "OPEN", "HALF_OPEN"]
