"""open.er-api.com client: USD-based rate table."""

from __future__ import annotations

from storeprofit.clients.http import BaseHTTPClient
from storeprofit.core.config import Settings, get_settings
from storeprofit.domain.schemas import ExchangeRatePayload


class InvalidRatePayloadError(ValueError):
    """Provider answered 2xx but without a usable EUR rate."""


class ExchangeRateClient:
    """Fetch the latest USD rate table."""

    def __init__(
        self,
        url: str | None = None,
        http: BaseHTTPClient | None = None,
        settings: Settings | None = None,
    ):
        s = settings or get_settings()
        self.url = url or s.exchange_rate_url
        if http is None:
            http = BaseHTTPClient(
                self.url,
                service="exchange_rate",
                timeout_sec=s.http_timeout_seconds,
                max_retries=s.http_max_retries,
                backoff_base=s.http_backoff_base,
                backoff_max=s.http_backoff_max,
            )
        self.http = http

    async def fetch_latest(self) -> ExchangeRatePayload:
        """Validated rate table.

        Raises:
            UpstreamHTTPError: Non-2xx answer
            InvalidRatePayloadError: result != "success" or no positive EUR rate

        """
        data, _ = await self.http.get_json(self.url)
        payload = ExchangeRatePayload.model_validate(data)
        if payload.result != "success" or payload.rates.get("EUR", 0) <= 0:
            raise InvalidRatePayloadError(f"unusable rate payload: result={payload.result}")
        return payload

    async def close(self) -> None:
        await self.http.close()


__all__ = ["ExchangeRateClient", "InvalidRatePayloadError"]
