"""Paginated Shopify fetches for one store and date range."""

from __future__ import annotations

from storeprofit.clients.shopify import ShopifyClient
from storeprofit.core.logging import get_logger
from storeprofit.domain.dates import DateRange, local_bounds_iso
from storeprofit.domain.schemas import Dispute, Order
from storeprofit.errors import FeatureUnavailableError

log = get_logger("storeprofit.shopify_data")


async def fetch_orders(
    client: ShopifyClient,
    date_range: DateRange,
    offset_minutes: int,
    max_pages: int = 60,
    page_limit: int = 250,
) -> list[Order]:
    """All orders created in the store-local date range.

    Follows the Link page_info cursor until the last page or `max_pages`.
    Upstream errors propagate: a report without orders is meaningless.
    """
    created_min, created_max = local_bounds_iso(date_range, offset_minutes)
    orders: list[Order] = []
    page_info: str | None = None
    pages = 0

    while True:
        page, page_info = await client.get_orders_page(
            created_at_min=created_min,
            created_at_max=created_max,
            page_info=page_info,
            limit=page_limit,
        )
        pages += 1
        orders.extend(page)
        if not page or not page_info:
            break
        if pages >= max_pages:
            log.warning(
                "orders_page_cap_reached",
                extra={"shop": client.shop_domain, "pages": pages, "orders": len(orders)},
            )
            break

    log.info(
        "orders_fetched",
        extra={
            "shop": client.shop_domain,
            "range": date_range.label,
            "orders": len(orders),
            "pages": pages,
        },
    )
    return orders


async def fetch_lost_disputes(
    client: ShopifyClient,
    date_range: DateRange,
    offset_minutes: int,
    max_pages: int = 60,
    page_limit: int = 250,
) -> list[Dispute]:
    """Lost disputes initiated in the range; empty when Shopify Payments is off (404)."""
    initiated_min, initiated_max = local_bounds_iso(date_range, offset_minutes)
    disputes: list[Dispute] = []
    page_info: str | None = None
    pages = 0

    while True:
        try:
            page, page_info = await client.get_lost_disputes_page(
                initiated_at_min=initiated_min,
                initiated_at_max=initiated_max,
                page_info=page_info,
                limit=page_limit,
            )
        except FeatureUnavailableError as e:
            log.info("disputes_unavailable", extra={"shop": client.shop_domain, "status": e.status})
            return []
        pages += 1
        disputes.extend(page)
        if not page or not page_info or pages >= max_pages:
            break

    return disputes


__all__ = ["fetch_lost_disputes", "fetch_orders"]
