"""Shopify Admin REST API client.

Thin wrapper around BaseHTTPClient for the three endpoints the profit engine
reads: orders, lost disputes and the Payments balance ledger. Every page is
validated into typed records here; callers drive pagination.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qs, urlparse

from pydantic import BaseModel, ValidationError

from storeprofit.clients.http import BaseHTTPClient, HostGuards, HTTPResponse
from storeprofit.core.config import Settings, get_settings
from storeprofit.core.logging import get_logger
from storeprofit.domain.schemas import BalanceTransaction, Dispute, Order
from storeprofit.errors import FeatureUnavailableError, LedgerUnavailableError, UpstreamHTTPError

log = get_logger("storeprofit.clients.shopify")

ORDER_FIELDS = (
    "id,order_number,created_at,total_price,currency,total_discounts,"
    "total_tip_received,customer,line_items,shipping_address,shipping_lines"
)
DISPUTE_FIELDS = "id,amount,currency,status"
MAX_PAGE_LIMIT = 250


def parse_next_page_info(link_header: str | None) -> str | None:
    """Extract the page_info cursor of the rel="next" entry of a Link header.

    Example:
        <https://s.myshopify.com/admin/api/2025-10/orders.json?limit=250&page_info=abc>; rel="next"

    """
    if not link_header:
        return None
    for part in link_header.split(","):
        segments = [s.strip() for s in part.split(";")]
        if not segments or not segments[0].startswith("<"):
            continue
        rels = [s for s in segments[1:] if s.replace(" ", "").lower() in ('rel="next"', "rel=next")]
        if not rels:
            continue
        url = segments[0].strip("<>")
        values = parse_qs(urlparse(url).query).get("page_info")
        return values[0] if values else None
    return None


def _validate_records(raw: Any, model: type[BaseModel], kind: str) -> list[Any]:
    records = []
    for item in raw or []:
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            log.warning(
                "shopify_record_skipped",
                extra={"kind": kind, "record_id": (item or {}).get("id"), "error": str(e)},
            )
    return records


class ShopifyClient:
    """Shopify Admin API client for one shop."""

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = "2025-10",
        http: BaseHTTPClient | None = None,
        settings: Settings | None = None,
        guards: HostGuards | None = None,
    ):
        """Initialize Shopify client.

        Args:
            shop_domain: e.g. "my-shop.myshopify.com"
            access_token: Admin API access token (shpat_...)
            api_version: Admin API version segment
            http: Preconfigured HTTP client (tests inject fakes here)
            settings: Overrides for timeouts, retries and rate limits
            guards: Registry holding the shop's bucket and breaker across clients

        """
        self.shop_domain = shop_domain
        self.api_version = api_version
        if http is None:
            s = settings or get_settings()
            guard = None
            if guards is not None:
                guard = guards.get(
                    f"shopify:{shop_domain}",
                    rate_limit_per_min=s.shopify_rate_per_min,
                    rate_capacity=s.shopify_rate_capacity,
                    cb_fail_threshold=s.cb_fail_threshold,
                    cb_reset_timeout=s.cb_reset_timeout,
                )
            http = BaseHTTPClient(
                f"https://{shop_domain}/admin/api/{api_version}",
                service="shopify",
                default_headers={
                    "X-Shopify-Access-Token": access_token,
                    "Content-Type": "application/json",
                },
                timeout_sec=s.http_timeout_seconds,
                rate_limit_per_min=s.shopify_rate_per_min,
                rate_capacity=s.shopify_rate_capacity,
                cb_fail_threshold=s.cb_fail_threshold,
                cb_reset_timeout=s.cb_reset_timeout,
                max_retries=s.http_max_retries,
                backoff_base=s.http_backoff_base,
                backoff_max=s.http_backoff_max,
                guard=guard,
            )
        self.http = http

    async def _get(self, path: str, params: Mapping[str, Any]) -> HTTPResponse:
        return await self.http.request("GET", path, params=params)

    async def get_orders_page(
        self,
        created_at_min: str | None = None,
        created_at_max: str | None = None,
        page_info: str | None = None,
        limit: int = MAX_PAGE_LIMIT,
    ) -> tuple[list[Order], str | None]:
        """One page of orders.

        Endpoint: /orders.json

        Shopify rejects filters next to page_info, so follow-up pages send only
        the cursor and limit.

        Returns:
            (orders, next page_info or None)

        Raises:
            UpstreamHTTPError: On any non-2xx answer

        """
        limit = min(limit, MAX_PAGE_LIMIT)
        if page_info:
            params: dict[str, Any] = {"page_info": page_info, "limit": limit}
        else:
            params = {"status": "any", "limit": limit, "fields": ORDER_FIELDS}
            if created_at_min:
                params["created_at_min"] = created_at_min
            if created_at_max:
                params["created_at_max"] = created_at_max

        resp = await self._get("/orders.json", params)
        if not resp.ok:
            raise UpstreamHTTPError("shopify", resp.status, resp.url, resp.text())

        orders = _validate_records(resp.json().get("orders"), Order, "order")
        return orders, parse_next_page_info(resp.header("Link"))

    async def get_lost_disputes_page(
        self,
        initiated_at_min: str | None = None,
        initiated_at_max: str | None = None,
        page_info: str | None = None,
        limit: int = MAX_PAGE_LIMIT,
    ) -> tuple[list[Dispute], str | None]:
        """One page of lost disputes.

        Endpoint: /shopify_payments/disputes.json

        Raises:
            FeatureUnavailableError: 404, Shopify Payments not enabled
            UpstreamHTTPError: Any other non-2xx answer

        """
        limit = min(limit, MAX_PAGE_LIMIT)
        if page_info:
            params: dict[str, Any] = {"page_info": page_info, "limit": limit}
        else:
            params = {"status": "lost", "limit": limit, "fields": DISPUTE_FIELDS}
            if initiated_at_min:
                params["initiated_at_min"] = initiated_at_min
            if initiated_at_max:
                params["initiated_at_max"] = initiated_at_max

        resp = await self._get("/shopify_payments/disputes.json", params)
        if resp.status == 404:
            raise FeatureUnavailableError("disputes", resp.status)
        if not resp.ok:
            raise UpstreamHTTPError("shopify", resp.status, resp.url, resp.text())

        disputes = _validate_records(resp.json().get("disputes"), Dispute, "dispute")
        return disputes, parse_next_page_info(resp.header("Link"))

    async def get_balance_transactions_page(
        self,
        last_id: str | None = None,
        limit: int = MAX_PAGE_LIMIT,
    ) -> tuple[list[BalanceTransaction], bool]:
        """One page of Payments balance transactions, newest first.

        Endpoint: /shopify_payments/balance/transactions.json

        The endpoint has no date filter; callers filter on processed_at.

        Returns:
            (transactions, whether Link advertises a next page)

        Raises:
            LedgerUnavailableError: 403/404, ledger not available to this app
            UpstreamHTTPError: Any other non-2xx answer

        """
        params: dict[str, Any] = {"limit": min(limit, MAX_PAGE_LIMIT)}
        if last_id:
            params["last_id"] = last_id

        resp = await self._get("/shopify_payments/balance/transactions.json", params)
        if resp.status in (403, 404):
            raise LedgerUnavailableError(resp.status)
        if not resp.ok:
            raise UpstreamHTTPError("shopify", resp.status, resp.url, resp.text())

        txs = _validate_records(resp.json().get("transactions"), BalanceTransaction, "transaction")
        link = resp.header("Link") or ""
        has_next = 'rel="next"' in link or "rel=next" in link
        return txs, has_next

    async def close(self) -> None:
        """Close HTTP client session."""
        await self.http.close()


__all__ = ["ShopifyClient", "parse_next_page_info", "MAX_PAGE_LIMIT", "ORDER_FIELDS"]
