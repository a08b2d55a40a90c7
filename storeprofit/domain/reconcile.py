"""Ledger reconciliation: classify balance transactions and accumulate totals.

Each transaction lands in exactly one bucket:

- order-linked, not a dispute/chargeback/refund -> that order's fee total
- dispute / chargeback                           -> lost disputes
- dispute reversal / won                         -> recovered disputes
- refund                                         -> refunds
- anything else (payouts, reserves, ...)         -> ignored

All amounts are accumulated as absolute USD values.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from storeprofit.domain.currency import to_usd
from storeprofit.domain.dates import as_utc
from storeprofit.domain.schemas import BalanceTransaction, Dispute

ORDER_FEE = "order_fee"
LOST_DISPUTE = "lost_dispute"
RECOVERED_DISPUTE = "recovered_dispute"
REFUND = "refund"
IGNORED = "ignored"

_DISPUTE_MARKERS = ("dispute", "chargeback")
_RECOVERED_MARKERS = ("reversal", "won")


@dataclass
class DisputeTotals:
    lost_value: float = 0.0
    lost_fee: float = 0.0
    lost_count: int = 0
    recovered_value: float = 0.0
    recovered_fee: float = 0.0
    recovered_count: int = 0


@dataclass
class ReconciliationTotals:
    order_fees: dict[str, float] = field(default_factory=dict)
    disputes: DisputeTotals = field(default_factory=DisputeTotals)
    refunds: float = 0.0
    refund_count: int = 0
    transactions_seen: int = 0
    transactions_in_range: int = 0
    pages_fetched: int = 0
    truncated: bool = False
    available: bool = True


def normalize_type(raw: str | None) -> str:
    """'Dispute Reversal' / 'dispute-reversal' -> 'dispute_reversal'."""
    text = (raw or "").strip().lower()
    return text.replace("-", "_").replace(" ", "_")


def classify(tx: BalanceTransaction) -> str:
    """Bucket for one transaction."""
    kind = normalize_type(tx.type)
    is_dispute = kind == "reversal" or any(m in kind for m in _DISPUTE_MARKERS)
    is_refund = "refund" in kind

    if tx.source_order_id and not is_dispute and not is_refund:
        return ORDER_FEE
    if is_dispute:
        if any(m in kind for m in _RECOVERED_MARKERS):
            return RECOVERED_DISPUTE
        return LOST_DISPUTE
    if is_refund:
        return REFUND
    return IGNORED


def in_window(tx: BalanceTransaction, start_utc: datetime, end_utc: datetime) -> bool:
    """Whether processed_at falls in the (already offset-shifted) UTC window."""
    if tx.processed_at is None:
        return False
    return start_utc <= as_utc(tx.processed_at) <= end_utc


def accumulate(totals: ReconciliationTotals, tx: BalanceTransaction, eur_usd_rate: float) -> str:
    """Add one in-range transaction to the running totals; returns its bucket."""
    kind = classify(tx)
    amount = abs(to_usd(tx.amount, tx.currency, eur_usd_rate))
    fee = abs(to_usd(tx.fee, tx.currency, eur_usd_rate))

    if kind == ORDER_FEE:
        order_id = str(tx.source_order_id)
        totals.order_fees[order_id] = totals.order_fees.get(order_id, 0.0) + fee
    elif kind == LOST_DISPUTE:
        totals.disputes.lost_value += amount
        totals.disputes.lost_fee += fee
        totals.disputes.lost_count += 1
    elif kind == RECOVERED_DISPUTE:
        totals.disputes.recovered_value += amount
        totals.disputes.recovered_fee += fee
        totals.disputes.recovered_count += 1
    elif kind == REFUND:
        totals.refunds += amount
        totals.refund_count += 1
    return kind


def lost_dispute_totals(disputes: list[Dispute], eur_usd_rate: float) -> DisputeTotals:
    """Lost-dispute value from the dispute source (carries no fee information)."""
    totals = DisputeTotals()
    for dispute in disputes:
        totals.lost_value += abs(to_usd(dispute.amount, dispute.currency, eur_usd_rate))
        totals.lost_count += 1
    return totals


__all__ = [
    "IGNORED",
    "LOST_DISPUTE",
    "ORDER_FEE",
    "RECOVERED_DISPUTE",
    "REFUND",
    "DisputeTotals",
    "ReconciliationTotals",
    "accumulate",
    "classify",
    "in_window",
    "lost_dispute_totals",
    "normalize_type",
]
