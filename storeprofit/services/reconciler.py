"""Ledger reconciliation against Shopify Payments balance transactions.

Pages through the ledger newest-first with a `last_id` cursor, keeps the
transactions processed inside the store-local date range and accumulates
per-order fees, disputes and refunds.

Failure policy:
- 403/404 (ledger not available to this shop/app) -> empty totals with
  `available=False`, logged at info level.
- Anything else propagates; the caller decides how to degrade.
"""

from __future__ import annotations

from storeprofit.clients.shopify import ShopifyClient
from storeprofit.core.logging import get_logger
from storeprofit.core.metrics import reconciliation_fallback_total, reconciliation_pages_fetched
from storeprofit.domain.dates import DateRange, utc_window
from storeprofit.domain.reconcile import ReconciliationTotals, accumulate, in_window
from storeprofit.errors import LedgerUnavailableError

log = get_logger("storeprofit.reconciler")


async def reconcile(
    client: ShopifyClient,
    date_range: DateRange,
    offset_minutes: int,
    eur_usd_rate: float,
    max_pages: int = 10,
    page_limit: int = 250,
) -> ReconciliationTotals:
    """Reconcile fees, disputes and refunds for a date range.

    Args:
        client: Shopify client for the store
        date_range: Store-local calendar days
        offset_minutes: Store UTC offset (e.g. -300)
        eur_usd_rate: Multiplier for EUR-denominated transactions
        max_pages: Hard page cap; hitting it sets `truncated`
        page_limit: Transactions per page (at most 250)

    Returns:
        ReconciliationTotals (USD, absolute values)

    """
    start_utc, end_utc = utc_window(date_range, offset_minutes)
    totals = ReconciliationTotals()
    last_id: str | None = None

    try:
        while True:
            page, has_next = await client.get_balance_transactions_page(
                last_id=last_id, limit=min(page_limit, 250)
            )
            totals.pages_fetched += 1
            if not page:
                break

            for tx in page:
                totals.transactions_seen += 1
                if in_window(tx, start_utc, end_utc):
                    totals.transactions_in_range += 1
                    accumulate(totals, tx, eur_usd_rate)

            if not has_next:
                break
            if totals.pages_fetched >= max_pages:
                totals.truncated = True
                log.warning(
                    "ledger_page_cap_reached",
                    extra={
                        "shop": client.shop_domain,
                        "range": date_range.label,
                        "pages": totals.pages_fetched,
                        "transactions_seen": totals.transactions_seen,
                    },
                )
                break
            last_id = page[-1].id
    except LedgerUnavailableError as e:
        log.info(
            "ledger_unavailable",
            extra={"shop": client.shop_domain, "status": e.status},
        )
        reconciliation_fallback_total.labels(reason="unavailable").inc()
        return ReconciliationTotals(available=False)

    reconciliation_pages_fetched.observe(totals.pages_fetched)
    log.info(
        "ledger_reconciled",
        extra={
            "shop": client.shop_domain,
            "range": date_range.label,
            "pages": totals.pages_fetched,
            "in_range": totals.transactions_in_range,
            "orders_with_fees": len(totals.order_fees),
            "truncated": totals.truncated,
        },
    )
    return totals


__all__ = ["reconcile"]
