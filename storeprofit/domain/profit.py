"""Net profit aggregation.

Net Profit = Revenue - COGS - Shipping - Processing Fees - Ad Spend
             - Lost Dispute Value - Lost Dispute Fees - Refunds
             - Operational Expenses

Recovered (won / reversed) disputes are reported but never added back: revenue
was never reduced for a dispute the merchant won, so there is nothing to
reinstate.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel

from storeprofit.domain.orders import OrdersSummary, ProcessedOrder
from storeprofit.domain.reconcile import DisputeTotals

RECONCILED = "reconciled"
UNAVAILABLE = "unavailable"
FAILED = "failed"
NOT_CONNECTED = "not_connected"


class MetricsReport(BaseModel):
    """Profit report for one store and date range (all money in USD)."""

    store_id: int
    date_from: date
    date_to: date

    revenue: float = 0.0
    orders: int = 0
    cogs: float = 0.0
    shipping: float = 0.0
    processing_fees: float = 0.0
    ad_spend: float = 0.0
    lost_dispute_value: float = 0.0
    lost_dispute_fees: float = 0.0
    lost_dispute_count: int = 0
    recovered_dispute_value: float = 0.0
    recovered_dispute_fees: float = 0.0
    recovered_dispute_count: int = 0
    refunds: float = 0.0
    operational_expenses: float = 0.0
    net_profit: float = 0.0

    average_order_profit_margin: float = 0.0
    average_order_profit: float = 0.0
    roas: float = 0.0

    discounts: float = 0.0
    tips: float = 0.0
    shipping_revenue: float = 0.0

    exchange_rate: float = 1.0
    reconciliation_status: str = NOT_CONNECTED
    ledger_fee_orders: int = 0
    estimated_fee_orders: int = 0

    processed_orders: list[ProcessedOrder] = []
    computed_at: datetime | None = None


def calc_net_profit(
    revenue: float,
    cogs: float,
    shipping: float,
    processing_fees: float,
    ad_spend: float,
    lost_dispute_value: float,
    lost_dispute_fees: float,
    refunds: float,
    operational_expenses: float,
) -> float:
    """Net profit; see module docstring. Takes no recovered-dispute input."""
    return (
        revenue
        - cogs
        - shipping
        - processing_fees
        - ad_spend
        - lost_dispute_value
        - lost_dispute_fees
        - refunds
        - operational_expenses
    )


def calc_average_margin(orders: list[ProcessedOrder]) -> float:
    """Mean per-order margin in percent; an order with zero revenue counts as 0."""
    if not orders:
        return 0.0
    margins = [(o.profit / o.total) * 100.0 if o.total > 0 else 0.0 for o in orders]
    return sum(margins) / len(margins)


def calc_average_profit(orders: list[ProcessedOrder]) -> float:
    if not orders:
        return 0.0
    return sum(o.profit for o in orders) / len(orders)


def calc_roas(revenue: float, ad_spend: float) -> float:
    """Return on ad spend; 0.0 without spend."""
    if ad_spend <= 0:
        return 0.0
    return revenue / ad_spend


def build_report(
    store_id: int,
    date_from: date,
    date_to: date,
    summary: OrdersSummary,
    disputes: DisputeTotals,
    refunds: float,
    ad_spend: float,
    operational_expenses: float,
    exchange_rate: float,
    reconciliation_status: str,
    computed_at: datetime | None = None,
) -> MetricsReport:
    """Combine order, ledger, ad and expense figures into a MetricsReport."""
    net_profit = calc_net_profit(
        revenue=summary.revenue,
        cogs=summary.total_cogs,
        shipping=summary.total_shipping,
        processing_fees=summary.total_processing_fees,
        ad_spend=ad_spend,
        lost_dispute_value=disputes.lost_value,
        lost_dispute_fees=disputes.lost_fee,
        refunds=refunds,
        operational_expenses=operational_expenses,
    )

    return MetricsReport(
        store_id=store_id,
        date_from=date_from,
        date_to=date_to,
        revenue=summary.revenue,
        orders=summary.orders_count,
        cogs=summary.total_cogs,
        shipping=summary.total_shipping,
        processing_fees=summary.total_processing_fees,
        ad_spend=ad_spend,
        lost_dispute_value=disputes.lost_value,
        lost_dispute_fees=disputes.lost_fee,
        lost_dispute_count=disputes.lost_count,
        recovered_dispute_value=disputes.recovered_value,
        recovered_dispute_fees=disputes.recovered_fee,
        recovered_dispute_count=disputes.recovered_count,
        refunds=refunds,
        operational_expenses=operational_expenses,
        net_profit=net_profit,
        average_order_profit_margin=calc_average_margin(summary.processed_orders),
        average_order_profit=calc_average_profit(summary.processed_orders),
        roas=calc_roas(summary.revenue, ad_spend),
        discounts=summary.total_discounts,
        tips=summary.total_tips,
        shipping_revenue=summary.total_shipping_revenue,
        exchange_rate=exchange_rate,
        reconciliation_status=reconciliation_status,
        ledger_fee_orders=summary.ledger_fee_orders,
        estimated_fee_orders=summary.orders_count - summary.ledger_fee_orders,
        processed_orders=summary.processed_orders,
        computed_at=computed_at,
    )


__all__ = [
    "FAILED",
    "NOT_CONNECTED",
    "RECONCILED",
    "UNAVAILABLE",
    "MetricsReport",
    "build_report",
    "calc_average_margin",
    "calc_average_profit",
    "calc_net_profit",
    "calc_roas",
]
