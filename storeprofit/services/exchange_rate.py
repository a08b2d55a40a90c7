"""EUR -> USD rate service.

The provider publishes a USD-based table once a day; EUR->USD is 1 / rates.EUR.
A fetched rate is kept until the provider's announced next update (capped by
the configured TTL). When the provider cannot be reached the configured
fallback constant is returned and nothing is cached, so the next call retries.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from storeprofit.clients.exchange_rate import ExchangeRateClient
from storeprofit.core.clock import Clock, utc_now
from storeprofit.core.config import Settings, get_settings
from storeprofit.core.logging import get_logger

log = get_logger("storeprofit.exchange_rate")


@dataclass
class CachedRate:
    rate: float
    fetched_at: datetime
    expires_at: datetime


class RateCache:
    """Single-entry rate cache with an injected clock."""

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock
        self._entry: CachedRate | None = None

    def get(self) -> CachedRate | None:
        """Current entry, or None if empty or expired."""
        if self._entry is None or self._clock() >= self._entry.expires_at:
            return None
        return self._entry

    def put(self, rate: float, expires_at: datetime) -> CachedRate:
        self._entry = CachedRate(rate=rate, fetched_at=self._clock(), expires_at=expires_at)
        return self._entry

    def clear(self) -> None:
        self._entry = None


class ExchangeRateService:
    """Owns the rate client and cache; start()/close() bracket its lifetime."""

    def __init__(
        self,
        client: ExchangeRateClient | None = None,
        cache: RateCache | None = None,
        settings: Settings | None = None,
        clock: Clock = utc_now,
    ):
        self._settings = settings or get_settings()
        self._client = client
        self._clock = clock
        self.cache = cache or RateCache(clock)
        self.fallback_rate = self._settings.exchange_rate_eur_usd
        self.ttl = timedelta(hours=self._settings.exchange_rate_ttl_hours)
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        """Create the client and warm the cache (never raises)."""
        if self._client is None:
            self._client = ExchangeRateClient(settings=self._settings)
        rate = await self.get_eur_usd_rate()
        log.info("exchange_rate_service_started", extra={"eur_usd": round(rate, 6)})

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    def cached(self) -> CachedRate | None:
        """Cached entry without fetching."""
        return self.cache.get()

    async def get_eur_usd_rate(self) -> float:
        """Multiplier converting EUR amounts to USD; always resolves."""
        entry = self.cache.get()
        if entry is not None:
            return entry.rate

        async with self._lock:
            entry = self.cache.get()
            if entry is not None:
                return entry.rate
            return await self._refresh()

    async def _refresh(self) -> float:
        if self._client is None:
            self._client = ExchangeRateClient(settings=self._settings)
        try:
            payload = await self._client.fetch_latest()
        except Exception as e:
            log.warning(
                "exchange_rate_fallback",
                extra={"fallback_rate": self.fallback_rate, "error": str(e)},
            )
            return self.fallback_rate

        rate = 1.0 / payload.rates["EUR"]
        now = self._clock()
        expires_at = now + self.ttl
        if payload.time_next_update_unix:
            announced = datetime.fromtimestamp(payload.time_next_update_unix, tz=UTC)
            if now < announced < expires_at:
                expires_at = announced

        self.cache.put(rate, expires_at)
        log.info(
            "exchange_rate_updated",
            extra={"eur_usd": round(rate, 6), "expires_at": expires_at.isoformat()},
        )
        return rate


__all__ = ["CachedRate", "ExchangeRateService", "RateCache"]
