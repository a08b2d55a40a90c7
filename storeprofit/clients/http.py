"""Unified async HTTP client with retry, rate limiting, and circuit breaker.

Provides BaseHTTPClient with built-in reliability patterns. Responses are read
fully inside the session context and returned as a plain HTTPResponse, so
callers can inspect status and headers (pagination cursors live in `Link`).
"""

from __future__ import annotations

import asyncio
import json
import random
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from storeprofit.clients.circuit_breaker import CircuitBreaker
from storeprofit.clients.ratelimit import AsyncTokenBucket
from storeprofit.core.logging import get_logger
from storeprofit.core.metrics import external_api_duration_seconds, external_api_requests_total
from storeprofit.errors import UpstreamHTTPError

log = get_logger("storeprofit.http")

DEFAULT_TIMEOUT = 30
RETRY_STATUS = {429, 500, 502, 503, 504}


class CircuitOpenError(RuntimeError):
    """Raised without touching the network while the host's breaker is open."""


@dataclass
class HTTPResponse:
    """Fully-read HTTP response."""

    status: int
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode("utf-8", "replace")

    def json(self) -> Any:
        txt = self.text()
        return json.loads(txt) if txt else {}

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for k, v in self.headers.items():
            if k.lower() == lowered:
                return v
        return None


def _backoff_delay(attempt: int, base: float, cap: float) -> float:
    delay = min(base * (2 ** (attempt - 1)), cap)
    return delay * random.uniform(0.7, 1.3)


def _token_bucket(rate_limit_per_min: int | None, rate_capacity: int | None) -> AsyncTokenBucket | None:
    if not rate_limit_per_min:
        return None
    return AsyncTokenBucket(
        rate_per_sec=rate_limit_per_min / 60.0, capacity=rate_capacity or rate_limit_per_min
    )


@dataclass
class HostGuard:
    """Rate limiter and circuit breaker for one upstream host."""

    rate: AsyncTokenBucket | None
    breaker: CircuitBreaker


class HostGuards:
    """Registry of HostGuard by host key.

    Clients are short-lived (one per report), the upstream budget is not: every
    client for the same shop or ad account draws from the same guard.
    """

    def __init__(self) -> None:
        self._guards: dict[str, HostGuard] = {}

    def get(
        self,
        key: str,
        rate_limit_per_min: int | None = None,
        rate_capacity: int | None = None,
        cb_fail_threshold: int = 5,
        cb_reset_timeout: float = 30.0,
    ) -> HostGuard:
        """Guard for `key`, created on first use with the given limits."""
        guard = self._guards.get(key)
        if guard is None:
            guard = HostGuard(
                rate=_token_bucket(rate_limit_per_min, rate_capacity),
                breaker=CircuitBreaker(cb_fail_threshold, cb_reset_timeout),
            )
            self._guards[key] = guard
        return guard

    def __len__(self) -> int:
        return len(self._guards)

    def clear(self) -> None:
        self._guards.clear()


class BaseHTTPClient:
    """Base HTTP client with retry, rate limiting, and circuit breaker."""

    def __init__(
        self,
        base_url: str,
        service: str,
        default_headers: Mapping[str, str] | None = None,
        timeout_sec: int = DEFAULT_TIMEOUT,
        # Rate limiting and circuit breaker (per host)
        rate_limit_per_min: int | None = None,
        rate_capacity: int | None = None,
        cb_fail_threshold: int = 5,
        cb_reset_timeout: float = 30.0,
        max_retries: int = 3,
        backoff_base: float = 0.75,
        backoff_max: float = 8.0,
        guard: HostGuard | None = None,
    ) -> None:
        """Initialize HTTP client.

        Args:
            base_url: Base URL for relative paths
            service: Label used in logs and prometheus metrics
            default_headers: Headers to include in all requests
            timeout_sec: Request timeout in seconds
            rate_limit_per_min: Max requests per minute (None to disable)
            rate_capacity: Token bucket capacity (defaults to rate_limit_per_min)
            cb_fail_threshold: Failures before circuit breaker opens
            cb_reset_timeout: Seconds before circuit breaker tries half-open
            max_retries: Maximum attempts per request
            backoff_base: Base delay for exponential backoff
            backoff_max: Maximum backoff delay
            guard: Shared limiter and breaker; the rate and breaker args are
                ignored when given

        """
        self.base_url = base_url.rstrip("/")
        self.service = service
        self.default_headers = dict(default_headers or {})
        self.timeout_sec = timeout_sec
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max

        if guard is None:
            guard = HostGuard(
                rate=_token_bucket(rate_limit_per_min, rate_capacity),
                breaker=CircuitBreaker(cb_fail_threshold, cb_reset_timeout),
            )
        self._rate = guard.rate
        self._cb = guard.breaker
        self._session: aiohttp.ClientSession | None = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if not self._session or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_sec)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
    ) -> HTTPResponse:
        """Make HTTP request with retry, rate limiting, and circuit breaker.

        Non-2xx answers that are not retryable (or exhausted their retries) are
        returned, not raised; use get_json() for raise-on-error semantics.

        Raises:
            CircuitOpenError: If circuit breaker is open
            aiohttp.ClientError: If all retries fail on transport errors

        """
        if not self._cb.allow():
            raise CircuitOpenError(f"CircuitBreaker is OPEN for {self.service}")

        url = self._url(path)
        hdrs = dict(self.default_headers)
        if headers:
            hdrs.update(headers)

        session = await self._ensure_session()
        attempt = 0

        while True:
            attempt += 1
            if self._rate:
                await self._rate.acquire(1)
            t0 = time.perf_counter()

            try:
                async with session.request(
                    method=method.upper(),
                    url=url,
                    headers=hdrs,
                    params=params,
                    json=json_body,
                ) as resp:
                    body = await resp.read()
                    elapsed = time.perf_counter() - t0
                    status = resp.status
                    resp_headers = {k: v for k, v in resp.headers.items()}

                log.info(
                    "http_response",
                    extra={
                        "service": self.service,
                        "method": method,
                        "url": url,
                        "status": status,
                        "elapsed_ms": int(elapsed * 1000),
                        "attempt": attempt,
                        "body_len": len(body),
                    },
                )
                external_api_requests_total.labels(service=self.service, status=str(status)).inc()
                external_api_duration_seconds.labels(service=self.service).observe(elapsed)

                if status in RETRY_STATUS and attempt < self.max_retries:
                    retry_after = resp_headers.get("Retry-After")
                    if status == 429 and retry_after and self._rate:
                        try:
                            self._rate.penalize(float(retry_after))
                        except ValueError:
                            pass
                    await asyncio.sleep(
                        _backoff_delay(attempt, self.backoff_base, self.backoff_max)
                    )
                    continue

                # 4xx is the caller's problem, not the host's health
                if status >= 500 or status == 429:
                    self._cb.on_failure()
                else:
                    self._cb.on_success()

                return HTTPResponse(status=status, url=url, headers=resp_headers, body=body)

            except (TimeoutError, aiohttp.ClientError) as e:
                log.warning(
                    "http_exception",
                    extra={
                        "service": self.service,
                        "method": method,
                        "url": url,
                        "attempt": attempt,
                        "error": str(e),
                    },
                )
                external_api_requests_total.labels(service=self.service, status="error").inc()
                self._cb.on_failure()

                if attempt >= self.max_retries:
                    raise

                await asyncio.sleep(_backoff_delay(attempt, self.backoff_base, self.backoff_max))

    async def get_json(
        self, path: str, **kwargs: Any
    ) -> tuple[Any, HTTPResponse]:
        """GET and parse JSON, raising UpstreamHTTPError on non-2xx.

        Returns:
            (parsed body, response) so callers can read pagination headers

        """
        resp = await self.request("GET", path, **kwargs)
        if not resp.ok:
            raise UpstreamHTTPError(self.service, resp.status, resp.url, resp.text())
        try:
            return resp.json(), resp
        except json.JSONDecodeError:
            log.error(
                "json_decode_error",
                extra={"url": resp.url, "text_sample": resp.text()[:256]},
            )
            raise


__all__ = [
    "BaseHTTPClient",
    "CircuitOpenError",
    "HTTPResponse",
    "HostGuard",
    "HostGuards",
    "DEFAULT_TIMEOUT",
    "RETRY_STATUS",
]
