"""Tests for the Shopify Admin API client."""

from __future__ import annotations

import json

import pytest

from storeprofit.clients.http import HTTPResponse
from storeprofit.clients.shopify import ShopifyClient, parse_next_page_info
from storeprofit.errors import FeatureUnavailableError, LedgerUnavailableError, UpstreamHTTPError


class _FakeHTTP:
    def __init__(self, *responses: HTTPResponse):
        self.responses = list(responses)
        self.calls = []

    async def request(self, method, path, *, headers=None, params=None, json_body=None):
        self.calls.append({"method": method, "path": path, "params": dict(params or {})})
        return self.responses.pop(0)

    async def close(self):
        pass


def _resp(status: int, payload=None, link: str | None = None) -> HTTPResponse:
    headers = {"Link": link} if link else {}
    body = json.dumps(payload).encode() if payload is not None else b""
    return HTTPResponse(status=status, url="https://test-shop.myshopify.com/x", headers=headers, body=body)


NEXT_LINK = (
    '<https://test-shop.myshopify.com/admin/api/2025-10/orders.json?limit=250&page_info=prev1>; rel="previous", '
    '<https://test-shop.myshopify.com/admin/api/2025-10/orders.json?limit=250&page_info=abc123>; rel="next"'
)


def test_parse_next_page_info():
    assert parse_next_page_info(NEXT_LINK) == "abc123"
    assert parse_next_page_info(None) is None
    assert parse_next_page_info('<https://s/orders.json?page_info=p>; rel="previous"') is None


@pytest.mark.asyncio
async def test_orders_first_page_sends_filters_then_cursor_only():
    order = {"id": 1, "total_price": "10.00", "line_items": []}
    http = _FakeHTTP(
        _resp(200, {"orders": [order]}, link=NEXT_LINK),
        _resp(200, {"orders": [order]}),
    )
    client = ShopifyClient("test-shop.myshopify.com", "shpat_x", http=http)

    orders, cursor = await client.get_orders_page("2025-03-01T00:00:00-05:00", "2025-03-31T23:59:59-05:00")
    assert cursor == "abc123"
    assert orders[0].id == "1"
    assert orders[0].total_price == 10.0
    first = http.calls[0]["params"]
    assert first["status"] == "any"
    assert first["limit"] == 250
    assert first["created_at_min"] == "2025-03-01T00:00:00-05:00"

    _, cursor = await client.get_orders_page(page_info="abc123")
    assert cursor is None
    assert http.calls[1]["params"] == {"page_info": "abc123", "limit": 250}


@pytest.mark.asyncio
async def test_orders_error_raises():
    http = _FakeHTTP(_resp(401, {"errors": "Invalid API key"}))
    client = ShopifyClient("test-shop.myshopify.com", "shpat_x", http=http)

    with pytest.raises(UpstreamHTTPError):
        await client.get_orders_page()


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [403, 404])
async def test_ledger_unavailable(status):
    http = _FakeHTTP(_resp(status, {"errors": "Not Found"}))
    client = ShopifyClient("test-shop.myshopify.com", "shpat_x", http=http)

    with pytest.raises(LedgerUnavailableError) as exc_info:
        await client.get_balance_transactions_page()
    assert exc_info.value.status == status


@pytest.mark.asyncio
async def test_ledger_real_failure_is_not_unavailable():
    http = _FakeHTTP(_resp(500, {"errors": "boom"}))
    client = ShopifyClient("test-shop.myshopify.com", "shpat_x", http=http)

    with pytest.raises(UpstreamHTTPError):
        await client.get_balance_transactions_page()


@pytest.mark.asyncio
async def test_ledger_page_uses_last_id_and_link():
    tx = {"id": 9, "type": "charge", "amount": "10.00", "fee": "0.59", "source_order_id": 1001}
    http = _FakeHTTP(_resp(200, {"transactions": [tx]}, link=NEXT_LINK))
    client = ShopifyClient("test-shop.myshopify.com", "shpat_x", http=http)

    txs, has_next = await client.get_balance_transactions_page(last_id="8", limit=500)

    assert has_next is True
    assert txs[0].source_order_id == "1001"
    assert http.calls[0]["params"] == {"limit": 250, "last_id": "8"}


@pytest.mark.asyncio
async def test_disputes_404_is_feature_unavailable():
    http = _FakeHTTP(_resp(404))
    client = ShopifyClient("test-shop.myshopify.com", "shpat_x", http=http)

    with pytest.raises(FeatureUnavailableError):
        await client.get_lost_disputes_page()


@pytest.mark.asyncio
async def test_invalid_records_are_skipped():
    http = _FakeHTTP(_resp(200, {"orders": [{"total_price": "5"}, {"id": 2}]}))
    client = ShopifyClient("test-shop.myshopify.com", "shpat_x", http=http)

    orders, _ = await client.get_orders_page()

    assert [o.id for o in orders] == ["2"]
