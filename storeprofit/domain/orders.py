"""Order processing: per-order revenue and cost breakdown.

Combines raw orders with the cost model (COGS map, shipping matrices, fee
config) and, when available, ledger-reconciled processing fees.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from storeprofit.domain.cogs import compute_cogs_for_line_item
from storeprofit.domain.currency import to_usd
from storeprofit.domain.schemas import Order
from storeprofit.domain.shipping import (
    ShippingMatrix,
    compute_shipping_for_line_item,
    normalize_method,
    normalize_region,
)

FEE_SOURCE_LEDGER = "ledger"
FEE_SOURCE_ESTIMATE = "estimate"


@dataclass
class ProcessingFeeConfig:
    """Payment processor pricing used when the ledger has no fee for an order."""

    percent_fee: float = 0.028
    fixed_fee: float = 0.29


@dataclass
class ProcessedLineItem:
    key: str | None
    title: str | None
    quantity: int
    price: float
    cogs: float
    shipping_cost: float


@dataclass
class ProcessedOrder:
    id: str
    name: str
    order_number: int | None
    created_at: datetime | None
    customer: str
    total: float
    currency: str
    country: str | None
    region: str | None
    shipping_method: str
    cogs: float
    shipping_cost: float
    processing_fee: float
    fee_source: str
    discounts: float
    tips: float
    shipping_revenue: float
    profit: float
    items: list[ProcessedLineItem] = field(default_factory=list)


@dataclass
class OrdersSummary:
    revenue: float = 0.0
    orders_count: int = 0
    total_cogs: float = 0.0
    total_shipping: float = 0.0
    total_processing_fees: float = 0.0
    total_discounts: float = 0.0
    total_tips: float = 0.0
    total_shipping_revenue: float = 0.0
    ledger_fee_orders: int = 0
    processed_orders: list[ProcessedOrder] = field(default_factory=list)


def estimate_processing_fee(revenue: float, fees: ProcessingFeeConfig) -> float:
    """Formula fee for one order: revenue x percent + fixed."""
    return revenue * fees.percent_fee + fees.fixed_fee


def process_order(
    order: Order,
    cogs_map: Mapping[str, float],
    shipping_map: Mapping[str, ShippingMatrix],
    fees: ProcessingFeeConfig,
    eur_usd_rate: float,
    order_fees: Mapping[str, float] | None = None,
) -> ProcessedOrder:
    """Resolve costs for one order.

    Region and shipping method are classified once per order (destination and
    first shipping line) and applied to every line item.
    """
    total = to_usd(order.total_price, order.currency, eur_usd_rate)

    country = order.destination_country
    region = normalize_region(country)
    method = normalize_method(order.shipping_lines[0].title if order.shipping_lines else None)

    order_cogs = 0.0
    order_shipping = 0.0
    items: list[ProcessedLineItem] = []
    for item in order.line_items:
        key = item.config_key
        item_cogs = compute_cogs_for_line_item(item, cogs_map)
        item_shipping = compute_shipping_for_line_item(
            item, region, method, shipping_map.get(key) if key else None, eur_usd_rate
        )
        order_cogs += item_cogs
        order_shipping += item_shipping
        items.append(
            ProcessedLineItem(
                key=key,
                title=item.title or item.name,
                quantity=item.quantity,
                price=to_usd(item.price, order.currency, eur_usd_rate),
                cogs=item_cogs,
                shipping_cost=item_shipping,
            )
        )

    if order_fees is not None and order.id in order_fees:
        fee = order_fees[order.id]
        fee_source = FEE_SOURCE_LEDGER
    else:
        fee = estimate_processing_fee(total, fees)
        fee_source = FEE_SOURCE_ESTIMATE

    return ProcessedOrder(
        id=order.id,
        name=f"#{order.order_number or order.id}",
        order_number=order.order_number,
        created_at=order.created_at,
        customer=order.customer.display_name if order.customer else "Guest",
        total=total,
        currency=(order.currency or "USD").upper(),
        country=country,
        region=region,
        shipping_method=method,
        cogs=order_cogs,
        shipping_cost=order_shipping,
        processing_fee=fee,
        fee_source=fee_source,
        discounts=to_usd(order.total_discounts, order.currency, eur_usd_rate),
        tips=to_usd(order.total_tip_received, order.currency, eur_usd_rate),
        shipping_revenue=to_usd(order.shipping_revenue, order.currency, eur_usd_rate),
        profit=total - order_cogs - order_shipping - fee,
        items=items,
    )


def process_orders(
    orders: list[Order],
    cogs_map: Mapping[str, float],
    shipping_map: Mapping[str, ShippingMatrix],
    fees: ProcessingFeeConfig,
    eur_usd_rate: float,
    order_fees: Mapping[str, float] | None = None,
) -> OrdersSummary:
    """Process all orders and aggregate totals.

    Args:
        orders: Validated orders for the period
        cogs_map: Cost-model key -> unit cost
        shipping_map: Cost-model key -> shipping matrix
        fees: Fallback fee formula
        eur_usd_rate: EUR -> USD multiplier
        order_fees: Ledger-reconciled USD fee per order id (None if reconciliation
            did not run)

    Returns:
        OrdersSummary with per-order breakdowns and period totals

    """
    summary = OrdersSummary()
    for order in orders:
        processed = process_order(order, cogs_map, shipping_map, fees, eur_usd_rate, order_fees)
        summary.processed_orders.append(processed)
        summary.revenue += processed.total
        summary.total_cogs += processed.cogs
        summary.total_shipping += processed.shipping_cost
        summary.total_processing_fees += processed.processing_fee
        summary.total_discounts += processed.discounts
        summary.total_tips += processed.tips
        summary.total_shipping_revenue += processed.shipping_revenue
        if processed.fee_source == FEE_SOURCE_LEDGER:
            summary.ledger_fee_orders += 1

    summary.orders_count = len(summary.processed_orders)
    return summary


__all__ = [
    "FEE_SOURCE_ESTIMATE",
    "FEE_SOURCE_LEDGER",
    "OrdersSummary",
    "ProcessedLineItem",
    "ProcessedOrder",
    "ProcessingFeeConfig",
    "estimate_processing_fee",
    "process_order",
    "process_orders",
]
