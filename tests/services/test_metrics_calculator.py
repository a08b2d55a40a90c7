"""End-to-end tests for MetricsCalculator with fake upstreams."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from storeprofit.core.clock import FrozenClock
from storeprofit.db.models import (
    CogsConfig,
    FacebookConnection,
    OperationalExpense,
    ShopifyConnection,
    Store,
)
from storeprofit.domain.dates import DateRange
from storeprofit.errors import LedgerUnavailableError, StoreAccessError, UpstreamHTTPError
from storeprofit.services.metrics_calculator import MetricsCalculator
from tests.fakes import FakeFacebookClient, FakeRates, FakeShopifyClient, make_order, make_tx

MARCH = DateRange(date(2025, 3, 1), date(2025, 3, 31))


@pytest.fixture
def cost_model(db, store, shipping_row):
    db.add(CogsConfig(store_id=store.id, variant_id="111", cogs_value=10.0))
    db.commit()


def _calculator(settings, shopify, facebook=None, rate=1.1):
    return MetricsCalculator(
        FakeRates(rate),
        shopify_factory=lambda conn: shopify,
        facebook_factory=lambda conn: facebook or FakeFacebookClient(),
        settings=settings,
    )


@pytest.mark.asyncio
async def test_ledger_404_falls_back_to_formula_fees(db, settings, cost_model):
    """No reconciled fee: cogs 20, shipping 8, fee 3.09 -> net profit 68.91."""
    shopify = FakeShopifyClient(
        orders_pages=[[make_order()]],
        ledger_error=LedgerUnavailableError(404),
    )

    report = await _calculator(settings, shopify).calculate(db, 1, MARCH, user_id=1)

    assert report.orders == 1
    assert report.revenue == pytest.approx(100.0)
    assert report.cogs == pytest.approx(20.0)
    assert report.shipping == pytest.approx(8.0)
    assert report.processing_fees == pytest.approx(3.09)
    assert report.net_profit == pytest.approx(68.91)
    assert report.reconciliation_status == "unavailable"
    assert all(o.fee_source == "estimate" for o in report.processed_orders)
    assert shopify.closed


@pytest.mark.asyncio
async def test_reconciled_fees_and_disputes(db, settings, cost_model):
    shopify = FakeShopifyClient(
        orders_pages=[[make_order()]],
        ledger_pages=[
            [
                make_tx(3, "charge", "100.00", "2.00", "2025-03-10T17:00:00Z", source_order_id=1001),
                make_tx(2, "dispute", "-30.00", "-15.00", "2025-03-12T17:00:00Z"),
                make_tx(1, "dispute_reversal", "30.00", "15.00", "2025-03-20T17:00:00Z"),
            ]
        ],
    )

    report = await _calculator(settings, shopify).calculate(db, 1, MARCH, user_id=1)

    assert report.reconciliation_status == "reconciled"
    assert report.processing_fees == pytest.approx(2.0)
    assert report.ledger_fee_orders == 1
    assert report.lost_dispute_value == 30.0
    assert report.lost_dispute_fees == 15.0
    assert report.recovered_dispute_value == 30.0
    assert report.net_profit == pytest.approx(100 - 20 - 8 - 2 - 30 - 15)
    assert shopify.dispute_calls == 0


@pytest.mark.asyncio
async def test_ledger_error_degrades_and_uses_dispute_source(db, settings, cost_model):
    from storeprofit.domain.schemas import Dispute

    shopify = FakeShopifyClient(
        orders_pages=[[make_order()]],
        ledger_error=UpstreamHTTPError("shopify", 401, "u", "expired"),
        dispute_pages=[[Dispute(id="9", amount=25.0, currency="USD")]],
    )

    report = await _calculator(settings, shopify).calculate(db, 1, MARCH, user_id=1)

    assert report.reconciliation_status == "failed"
    assert report.processing_fees == pytest.approx(3.09)
    assert report.lost_dispute_value == 25.0
    assert report.lost_dispute_fees == 0.0
    assert report.net_profit == pytest.approx(68.91 - 25.0)


@pytest.mark.asyncio
async def test_orders_failure_is_fatal(db, settings, cost_model):
    shopify = FakeShopifyClient(orders_error=UpstreamHTTPError("shopify", 500, "u"))

    with pytest.raises(UpstreamHTTPError):
        await _calculator(settings, shopify).calculate(db, 1, MARCH, user_id=1)
    assert shopify.closed


@pytest.mark.asyncio
async def test_access_check(db, settings, store):
    db.add(Store(id=2, user_id=99, name="Other"))
    db.commit()
    calc = _calculator(settings, FakeShopifyClient())

    with pytest.raises(StoreAccessError):
        await calc.calculate(db, 2, MARCH, user_id=1)
    with pytest.raises(StoreAccessError):
        await calc.calculate(db, 404, MARCH, user_id=1)


@pytest.mark.asyncio
async def test_ad_spend_converted_and_failures_degrade(db, settings, cost_model):
    db.add(FacebookConnection(store_id=1, ad_account_id="111", access_token="EAAtoken"))
    db.add(FacebookConnection(store_id=1, ad_account_id="222", access_token="EAAtoken"))
    db.commit()
    accounts = iter(
        [FakeFacebookClient(spend=100.0, currency="EUR"), FakeFacebookClient(error=RuntimeError("boom"))]
    )
    shopify = FakeShopifyClient(orders_pages=[[make_order()]], ledger_error=LedgerUnavailableError(404))
    calc = MetricsCalculator(
        FakeRates(1.1),
        shopify_factory=lambda conn: shopify,
        facebook_factory=lambda conn: next(accounts),
        settings=settings,
    )

    report = await calc.calculate(db, 1, MARCH, user_id=1)

    assert report.ad_spend == pytest.approx(110.0)
    assert report.roas == pytest.approx(100.0 / 110.0)
    assert report.net_profit == pytest.approx(68.91 - 110.0)


@pytest.mark.asyncio
async def test_expenses_and_no_shopify_connection(db, settings):
    db.add(Store(id=5, user_id=1, name="Ads only"))
    db.add(
        OperationalExpense(
            store_id=5, title="Shopify plan", type="monthly", amount=39.0, start_date=date(2025, 1, 15)
        )
    )
    db.commit()
    clock = FrozenClock(datetime(2025, 4, 2, tzinfo=UTC))
    calc = MetricsCalculator(
        FakeRates(1.1),
        shopify_factory=lambda conn: pytest.fail("no Shopify connection expected"),
        settings=settings,
        clock=clock,
    )

    report = await calc.calculate(db, 5, MARCH, user_id=1)

    assert report.reconciliation_status == "not_connected"
    assert report.orders == 0
    assert report.operational_expenses == 39.0
    assert report.net_profit == -39.0
    assert report.computed_at == clock.now


def test_default_clients_share_guards_per_shop(settings):
    calc = MetricsCalculator(FakeRates(), settings=settings)
    conn = ShopifyConnection(store_id=1, shop_domain="test-shop.myshopify.com", access_token="shpat_x")
    other = ShopifyConnection(store_id=2, shop_domain="other.myshopify.com", access_token="shpat_y")

    first = calc.shopify_factory(conn)
    second = calc.shopify_factory(conn)

    assert first is not second
    assert first.http._rate is second.http._rate
    assert first.http._cb is second.http._cb
    assert calc.shopify_factory(other).http._rate is not first.http._rate

    # a tripped breaker is seen by the next report's client
    for _ in range(settings.cb_fail_threshold):
        first.http._cb.on_failure()
    assert not calc.shopify_factory(conn).http._cb.allow()


def test_default_ad_clients_share_guards_per_account(settings):
    calc = MetricsCalculator(FakeRates(), settings=settings)
    conn = FacebookConnection(store_id=1, ad_account_id="111", access_token="EAAtoken")

    assert calc.facebook_factory(conn).http._rate is calc.facebook_factory(conn).http._rate
    assert len(calc.guards) == 1
