"""Profit report orchestration.

Gathers everything one report needs and hands it to the pure domain layer:

1. access check (store must belong to the caller)
2. exchange rate (always resolves)
3. orders (fatal on failure)
4. lost disputes and ledger reconciliation (optional, best-effort)
5. ad spend over every linked ad account (optional, degrades to 0)
6. cost model and operational expenses from the database
"""

from __future__ import annotations

import time
from collections.abc import Callable
from functools import partial
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from storeprofit.clients.facebook import FacebookClient
from storeprofit.clients.http import HostGuards
from storeprofit.clients.shopify import ShopifyClient
from storeprofit.core.clock import Clock, utc_now
from storeprofit.core.config import Settings, get_settings
from storeprofit.core.logging import get_logger
from storeprofit.core.metrics import metrics_compute_duration_seconds, reconciliation_fallback_total
from storeprofit.db.models import FacebookConnection, ShopifyConnection, Store
from storeprofit.domain.currency import to_usd
from storeprofit.domain.dates import DateRange
from storeprofit.domain.expenses import operational_expenses_for_period
from storeprofit.domain.orders import OrdersSummary, process_orders
from storeprofit.domain.profit import (
    FAILED,
    NOT_CONNECTED,
    RECONCILED,
    UNAVAILABLE,
    MetricsReport,
    build_report,
)
from storeprofit.domain.reconcile import DisputeTotals, ReconciliationTotals, lost_dispute_totals
from storeprofit.errors import StoreAccessError
from storeprofit.services.cost_model import load_cost_model
from storeprofit.services.reconciler import reconcile
from storeprofit.services.shopify_data import fetch_lost_disputes, fetch_orders

log = get_logger("storeprofit.metrics_calculator")


class RateProvider(Protocol):
    async def get_eur_usd_rate(self) -> float: ...


ShopifyClientFactory = Callable[[ShopifyConnection], ShopifyClient]
FacebookClientFactory = Callable[[FacebookConnection], FacebookClient]


def default_shopify_factory(
    conn: ShopifyConnection,
    guards: HostGuards | None = None,
    settings: Settings | None = None,
) -> ShopifyClient:
    return ShopifyClient(
        conn.shop_domain,
        conn.access_token,
        conn.api_version or "2025-10",
        settings=settings,
        guards=guards,
    )


def default_facebook_factory(
    conn: FacebookConnection,
    guards: HostGuards | None = None,
    settings: Settings | None = None,
) -> FacebookClient:
    return FacebookClient(
        conn.ad_account_id,
        conn.access_token,
        conn.api_version or "v21.0",
        settings=settings,
        guards=guards,
    )


def get_store_for_user(db: Session, store_id: int, user_id: int | None) -> Store:
    """Load a store, enforcing ownership when a user is given.

    Raises:
        StoreAccessError: Unknown store or owned by someone else

    """
    store = db.get(Store, store_id)
    if store is None or (user_id is not None and store.user_id != user_id):
        raise StoreAccessError(store_id)
    return store


class MetricsCalculator:
    """Compute MetricsReport for a store and date range."""

    def __init__(
        self,
        rates: RateProvider,
        shopify_factory: ShopifyClientFactory | None = None,
        facebook_factory: FacebookClientFactory | None = None,
        settings: Settings | None = None,
        clock: Clock = utc_now,
        guards: HostGuards | None = None,
    ):
        self.rates = rates
        self.settings = settings or get_settings()
        self.clock = clock
        # one registry per calculator: API requests and scheduled refreshes of
        # the same shop share its rate budget and breaker
        self.guards = guards if guards is not None else HostGuards()
        self.shopify_factory = shopify_factory or partial(
            default_shopify_factory, guards=self.guards, settings=self.settings
        )
        self.facebook_factory = facebook_factory or partial(
            default_facebook_factory, guards=self.guards, settings=self.settings
        )

    async def calculate(
        self,
        db: Session,
        store_id: int,
        date_range: DateRange,
        user_id: int | None = None,
    ) -> MetricsReport:
        """Compute the report live (no cache).

        Args:
            db: Database session
            store_id: Store to report on
            date_range: Store-local calendar days
            user_id: Caller; None for internal callers (scheduler)

        Raises:
            StoreAccessError: Store missing or not owned by user_id
            UpstreamHTTPError: Orders could not be fetched

        """
        t0 = time.perf_counter()
        store = get_store_for_user(db, store_id, user_id)
        offset = store.timezone_offset
        if offset is None:
            offset = self.settings.default_timezone_offset

        rate = await self.rates.get_eur_usd_rate()
        cost_model = load_cost_model(db, store_id, self.settings)

        summary = OrdersSummary()
        disputes = DisputeTotals()
        refunds = 0.0
        status = NOT_CONNECTED

        shopify_conn = db.scalar(
            select(ShopifyConnection).where(ShopifyConnection.store_id == store_id)
        )
        if shopify_conn is not None:
            client = self.shopify_factory(shopify_conn)
            try:
                orders = await fetch_orders(
                    client,
                    date_range,
                    offset,
                    max_pages=self.settings.orders_max_pages,
                    page_limit=self.settings.orders_page_limit,
                )
                totals, status = await self._reconcile(client, store_id, date_range, offset, rate)

                if totals is not None:
                    disputes = totals.disputes
                    refunds = totals.refunds
                else:
                    disputes = await self._lost_disputes(client, store_id, date_range, offset, rate)

                summary = process_orders(
                    orders,
                    cost_model.cogs,
                    cost_model.shipping,
                    cost_model.fees,
                    rate,
                    order_fees=totals.order_fees if totals is not None else None,
                )
            finally:
                await client.close()

        ad_spend = await self._ad_spend(db, store_id, date_range, rate)
        expenses = operational_expenses_for_period(
            cost_model.expenses, date_range.start, date_range.end, rate
        )

        report = build_report(
            store_id=store_id,
            date_from=date_range.start,
            date_to=date_range.end,
            summary=summary,
            disputes=disputes,
            refunds=refunds,
            ad_spend=ad_spend,
            operational_expenses=expenses,
            exchange_rate=rate,
            reconciliation_status=status,
            computed_at=self.clock(),
        )

        elapsed = time.perf_counter() - t0
        metrics_compute_duration_seconds.observe(elapsed)
        log.info(
            "metrics_computed",
            extra={
                "store_id": store_id,
                "range": date_range.label,
                "orders": report.orders,
                "net_profit": round(report.net_profit, 2),
                "reconciliation": status,
                "elapsed_ms": int(elapsed * 1000),
            },
        )
        return report

    async def _reconcile(
        self,
        client: ShopifyClient,
        store_id: int,
        date_range: DateRange,
        offset: int,
        rate: float,
    ) -> tuple[ReconciliationTotals | None, str]:
        """Ledger totals and status; None totals means formula fees apply."""
        try:
            totals = await reconcile(
                client,
                date_range,
                offset,
                rate,
                max_pages=self.settings.ledger_max_pages,
                page_limit=self.settings.ledger_page_limit,
            )
        except Exception as e:
            log.error(
                "ledger_reconciliation_failed",
                extra={"store_id": store_id, "range": date_range.label, "error": str(e)},
                exc_info=True,
            )
            reconciliation_fallback_total.labels(reason="error").inc()
            return None, FAILED

        if not totals.available:
            return None, UNAVAILABLE
        return totals, RECONCILED

    async def _lost_disputes(
        self,
        client: ShopifyClient,
        store_id: int,
        date_range: DateRange,
        offset: int,
        rate: float,
    ) -> DisputeTotals:
        """Lost-dispute value from the dispute source, used when the ledger gave nothing."""
        try:
            lost = await fetch_lost_disputes(client, date_range, offset)
        except Exception as e:
            log.warning(
                "lost_disputes_unavailable",
                extra={"store_id": store_id, "range": date_range.label, "error": str(e)},
            )
            return DisputeTotals()
        return lost_dispute_totals(lost, rate)

    async def _ad_spend(self, db: Session, store_id: int, date_range: DateRange, rate: float) -> float:
        """USD ad spend summed over every linked ad account."""
        conns = db.scalars(
            select(FacebookConnection).where(FacebookConnection.store_id == store_id)
        ).all()

        total = 0.0
        for conn in conns:
            client = self.facebook_factory(conn)
            try:
                spend = await client.get_ad_spend(date_range.start, date_range.end)
                total += to_usd(spend.spend, spend.currency, rate)
            except Exception as e:
                log.warning(
                    "ad_spend_unavailable",
                    extra={"store_id": store_id, "ad_account_id": conn.ad_account_id, "error": str(e)},
                )
            finally:
                await client.close()
        return total


__all__ = [
    "MetricsCalculator",
    "RateProvider",
    "default_facebook_factory",
    "default_shopify_factory",
    "get_store_for_user",
]
