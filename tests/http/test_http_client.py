"""Tests for BaseHTTPClient with retry logic."""

from __future__ import annotations

import pytest

from storeprofit.clients.http import (
    RETRY_STATUS,
    BaseHTTPClient,
    CircuitOpenError,
    HostGuards,
    HTTPResponse,
)
from storeprofit.errors import UpstreamHTTPError


class _FakeResp:
    def __init__(self, status: int, body: bytes = b"{}", headers: dict | None = None):
        self.status = status
        self.body = body
        self.headers = headers or {}

    async def read(self):
        return self.body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class _FakeSession:
    closed = False

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, headers=None, params=None, json=None):
        self.calls.append({"method": method, "url": url, "headers": headers, "params": params})
        return self.responses.pop(0)

    async def close(self):
        self.closed = True


def _client(session: _FakeSession, **kw) -> BaseHTTPClient:
    client = BaseHTTPClient(
        "https://example.com/api", service="test", backoff_base=0.001, backoff_max=0.002, **kw
    )
    client._session = session
    return client


@pytest.mark.asyncio
async def test_base_client_initialization():
    client = BaseHTTPClient(
        "https://example.com/",
        service="test",
        default_headers={"X-Test": "value"},
        rate_limit_per_min=60,
    )

    assert client.base_url == "https://example.com"
    assert client.default_headers == {"X-Test": "value"}
    assert client._rate is not None

    await client.close()


@pytest.mark.asyncio
async def test_circuit_breaker_blocks_requests():
    client = BaseHTTPClient("https://example.com", service="test", cb_fail_threshold=1)
    client._cb.on_failure()

    with pytest.raises(CircuitOpenError, match="CircuitBreaker is OPEN"):
        await client.request("GET", "/test")

    await client.close()


@pytest.mark.asyncio
async def test_retries_5xx_then_succeeds():
    session = _FakeSession([_FakeResp(503), _FakeResp(200, b'{"ok": true}')])
    client = _client(session, max_retries=3)

    resp = await client.request("GET", "/orders.json", params={"limit": 1})

    assert resp.ok
    assert resp.json() == {"ok": True}
    assert len(session.calls) == 2
    assert session.calls[0]["url"] == "https://example.com/api/orders.json"


@pytest.mark.asyncio
async def test_4xx_is_returned_not_retried():
    session = _FakeSession([_FakeResp(404, b"not found")])
    client = _client(session, max_retries=3)

    resp = await client.request("GET", "/missing")

    assert resp.status == 404
    assert len(session.calls) == 1
    assert client._cb.state == "closed"


@pytest.mark.asyncio
async def test_get_json_raises_upstream_error():
    session = _FakeSession([_FakeResp(401, b'{"errors": "bad token"}')])
    client = _client(session)

    with pytest.raises(UpstreamHTTPError) as exc_info:
        await client.get_json("/orders.json")

    assert exc_info.value.status == 401
    assert exc_info.value.service == "test"


@pytest.mark.asyncio
async def test_429_retry_after_penalizes_bucket():
    session = _FakeSession(
        [_FakeResp(429, headers={"Retry-After": "0.01"}), _FakeResp(200)]
    )
    client = _client(session, rate_limit_per_min=6000)

    resp = await client.request("GET", "/x")

    assert resp.ok
    assert client._rate.blocked_until > 0


@pytest.mark.asyncio
async def test_absolute_url_passes_through():
    session = _FakeSession([_FakeResp(200)])
    client = _client(session)

    await client.request("GET", "https://other.example.org/v6/latest/USD")

    assert session.calls[0]["url"] == "https://other.example.org/v6/latest/USD"


def test_response_header_lookup_is_case_insensitive():
    resp = HTTPResponse(status=200, url="u", headers={"Link": "<x>; rel=\"next\""})
    assert resp.header("link") == '<x>; rel="next"'
    assert resp.header("missing") is None


def test_retry_status_codes():
    assert {429, 500, 502, 503, 504} <= RETRY_STATUS
    assert 404 not in RETRY_STATUS


@pytest.mark.asyncio
async def test_clients_with_same_guard_share_breaker():
    guards = HostGuards()
    guard = guards.get("shopify:test-shop", rate_limit_per_min=600, cb_fail_threshold=1)
    first = _client(_FakeSession([_FakeResp(500)]), max_retries=1, guard=guard)
    second = _client(_FakeSession([_FakeResp(200)]), max_retries=1, guard=guards.get("shopify:test-shop"))

    await first.request("GET", "/orders.json")

    with pytest.raises(CircuitOpenError):
        await second.request("GET", "/orders.json")
    assert guards.get("shopify:other").breaker is not guard.breaker
