"""Facebook Marketing API client (ad spend only)."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date

from storeprofit.clients.http import BaseHTTPClient, HostGuards
from storeprofit.core.config import Settings, get_settings
from storeprofit.core.logging import get_logger
from storeprofit.domain.schemas import lenient_float

log = get_logger("storeprofit.clients.facebook")

DEFAULT_ACCOUNT_CURRENCY = "EUR"


@dataclass
class AdSpend:
    spend: float
    currency: str


def account_path(ad_account_id: str) -> str:
    """Graph API node for an ad account; the act_ prefix is added when missing."""
    account = ad_account_id if ad_account_id.startswith("act_") else f"act_{ad_account_id}"
    return f"/{account}"


class FacebookClient:
    """Graph API client for one ad account."""

    def __init__(
        self,
        ad_account_id: str,
        access_token: str,
        api_version: str = "v21.0",
        http: BaseHTTPClient | None = None,
        settings: Settings | None = None,
        guards: HostGuards | None = None,
    ):
        s = settings or get_settings()
        self.ad_account_id = ad_account_id
        self.access_token = access_token
        if http is None:
            # Graph API budgets are per ad account
            guard = None
            if guards is not None:
                guard = guards.get(
                    f"facebook:{ad_account_id}",
                    rate_limit_per_min=s.facebook_rate_per_min,
                    cb_fail_threshold=s.cb_fail_threshold,
                    cb_reset_timeout=s.cb_reset_timeout,
                )
            http = BaseHTTPClient(
                f"{s.facebook_base_url.rstrip('/')}/{api_version}",
                service="facebook",
                timeout_sec=s.http_timeout_seconds,
                rate_limit_per_min=s.facebook_rate_per_min,
                cb_fail_threshold=s.cb_fail_threshold,
                cb_reset_timeout=s.cb_reset_timeout,
                max_retries=s.http_max_retries,
                backoff_base=s.http_backoff_base,
                backoff_max=s.http_backoff_max,
                guard=guard,
            )
        self.http = http

    async def get_spend(self, date_from: date, date_to: date) -> float:
        """Account-level spend for the inclusive date range, in account currency.

        Endpoint: /act_{id}/insights
        """
        time_range = json.dumps({"since": date_from.isoformat(), "until": date_to.isoformat()})
        data, _ = await self.http.get_json(
            f"{account_path(self.ad_account_id)}/insights",
            params={
                "access_token": self.access_token,
                "fields": "spend",
                "time_range": time_range,
                "level": "account",
            },
        )
        rows = data.get("data") or []
        if not rows:
            return 0.0
        return lenient_float(rows[0].get("spend"))

    async def get_account_currency(self) -> str:
        """Account currency; EUR when the lookup fails."""
        resp = await self.http.request(
            "GET",
            account_path(self.ad_account_id),
            params={"access_token": self.access_token, "fields": "currency"},
        )
        if not resp.ok:
            log.warning(
                "facebook_currency_lookup_failed",
                extra={"ad_account_id": self.ad_account_id, "status": resp.status},
            )
            return DEFAULT_ACCOUNT_CURRENCY
        return str(resp.json().get("currency") or DEFAULT_ACCOUNT_CURRENCY).upper()

    async def get_ad_spend(self, date_from: date, date_to: date) -> AdSpend:
        spend = await self.get_spend(date_from, date_to)
        currency = await self.get_account_currency()
        return AdSpend(spend=spend, currency=currency)

    async def close(self) -> None:
        """Close HTTP client session."""
        await self.http.close()


__all__ = ["AdSpend", "FacebookClient", "account_path"]
