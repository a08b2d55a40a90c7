"""Operational expense amortization.

Recurring expenses are counted by billing occurrence, not prorated: a monthly
$100 subscription started on the 15th contributes $100 for every 15th that
falls inside the queried period.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date

from storeprofit.domain.currency import to_usd

ONE_TIME = "one_time"
MONTHLY = "monthly"
YEARLY = "yearly"


@dataclass
class ExpenseRecord:
    type: str
    amount: float
    currency: str = "USD"
    expense_date: date | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = True
    title: str = ""


def add_months(d: date, months: int) -> date:
    """Same day-of-month `months` later, clamped to the month's last day."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def occurrences(expense: ExpenseRecord, d_from: date, d_to: date) -> Iterator[date]:
    """Billing dates of an expense inside [d_from, d_to]."""
    if expense.type == ONE_TIME:
        if expense.expense_date and d_from <= expense.expense_date <= d_to:
            yield expense.expense_date
        return

    if expense.type not in (MONTHLY, YEARLY) or expense.start_date is None:
        return

    step = 1 if expense.type == MONTHLY else 12
    n = 0
    while True:
        # Always offset from the start date so Jan 31 -> Feb 28 -> Mar 31
        occurrence = add_months(expense.start_date, n * step)
        if occurrence > d_to:
            return
        if expense.end_date is not None and occurrence > expense.end_date:
            return
        if occurrence >= d_from:
            yield occurrence
        n += 1


def operational_expenses_for_period(
    expenses: Iterable[ExpenseRecord],
    d_from: date,
    d_to: date,
    eur_usd_rate: float = 1.0,
) -> float:
    """Total USD operational expenses incurred in [d_from, d_to].

    Args:
        expenses: Expense records from the cost model
        d_from: First day of the period
        d_to: Last day of the period
        eur_usd_rate: Multiplier for EUR-denominated expenses

    Returns:
        Sum of full amounts, one per occurrence in range

    """
    total = 0.0
    for expense in expenses:
        if not expense.is_active:
            continue
        count = sum(1 for _ in occurrences(expense, d_from, d_to))
        if count:
            total += count * to_usd(expense.amount, expense.currency, eur_usd_rate)
    return total


__all__ = [
    "MONTHLY",
    "ONE_TIME",
    "YEARLY",
    "ExpenseRecord",
    "add_months",
    "occurrences",
    "operational_expenses_for_period",
]
