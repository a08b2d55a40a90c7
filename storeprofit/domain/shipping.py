"""Shipping cost resolution.

Shipping matrices are configured per product/variant as
country -> method -> quantity tier -> cost. Two stored shapes exist:

    legacy:   {"US": {"Standard": {"1": 5, "2": 8}}}                  (USD)
    wrapped:  {"currency": "EUR", "rates": {"EU": {"Standard": {...}}}}

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from storeprofit.domain.schemas import LineItem, lenient_float

USA = "USA"
CANADA = "CANADA"
EU = "EU"

STANDARD = "Standard"
EXPRESS = "Express"

_US_NAMES = {"US", "USA", "UNITED STATES", "UNITED STATES OF AMERICA"}
_CA_NAMES = {"CA", "CANADA"}
_EXPRESS_WORDS = ("express", "expedited", "priority")

# Matrix keys accepted for each normalized bucket (compared upper-cased)
_REGION_KEYS = {USA: ("USA", "US"), CANADA: ("CANADA", "CA"), EU: ("EU",)}
_METHOD_KEYS = {STANDARD: ("STANDARD", "FREE"), EXPRESS: ("EXPRESS",)}

TierTable = dict[int, float]


@dataclass
class ShippingMatrix:
    """Tier tables for one product, with the currency they are priced in."""

    currency: str = "USD"
    rates: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None) -> ShippingMatrix | None:
        """Detect legacy vs {currency, rates} shape."""
        if not isinstance(config, Mapping) or not config:
            return None
        if isinstance(config.get("rates"), Mapping):
            currency = str(config.get("currency") or "USD").upper()
            return cls(currency=currency, rates=dict(config["rates"]))
        return cls(currency="USD", rates=dict(config))

    def tiers(self, region: str, method: str) -> TierTable:
        """Tier table for a normalized region/method; empty when not configured."""
        by_method = _lookup(self.rates, _REGION_KEYS.get(region, (region.upper(),)))
        if not isinstance(by_method, Mapping):
            return {}
        table = _lookup(by_method, _METHOD_KEYS.get(method, (method.upper(),)))
        if not isinstance(table, Mapping):
            return {}

        tiers: TierTable = {}
        for qty, cost in table.items():
            try:
                q = int(qty)
            except (TypeError, ValueError):
                continue
            if q > 0:
                tiers[q] = lenient_float(cost)
        return tiers


def _lookup(mapping: Mapping[str, Any], candidates: tuple[str, ...]) -> Any:
    upper = {str(k).strip().upper(): v for k, v in mapping.items()}
    for key in candidates:
        if key in upper:
            return upper[key]
    return None


def normalize_region(country: str | None) -> str | None:
    """Coarse 3-way pricing bucket: USA, CANADA, everything else EU."""
    if not country:
        return None
    c = str(country).strip().upper()
    if not c:
        return None
    if c in _US_NAMES:
        return USA
    if c in _CA_NAMES:
        return CANADA
    return EU


def normalize_method(label: str | None) -> str:
    """Express if the label says express/expedited/priority, else Standard."""
    text = (label or "").lower()
    if any(word in text for word in _EXPRESS_WORDS):
        return EXPRESS
    return STANDARD


def tier_cost(tiers: TierTable, quantity: int) -> float:
    """Cost for `quantity` units from a tier table.

    Within the table range only the exact tier counts (absent -> 0). Above the
    largest tier the quantity is split greedily into the largest tiers that
    still fit, e.g. {1: 5, 2: 8, 3: 11} and 5 units -> 3 + 2 -> 19.
    """
    if quantity <= 0 or not tiers:
        return 0.0

    keys = sorted(tiers)
    if quantity <= keys[-1]:
        return tiers.get(quantity, 0.0)

    total = 0.0
    remaining = quantity
    while remaining > 0:
        fitting = [k for k in keys if k <= remaining]
        tier = fitting[-1] if fitting else keys[0]
        total += tiers[tier]
        remaining -= tier
    return total


def compute_shipping_for_line_item(
    item: LineItem,
    region: str | None,
    method: str,
    matrix: ShippingMatrix | None,
    eur_usd_rate: float,
) -> float:
    """USD shipping cost for one line item; unconfigured anything -> 0."""
    if matrix is None or region is None or item.quantity <= 0:
        return 0.0

    cost = tier_cost(matrix.tiers(region, method), item.quantity)
    if matrix.currency == "EUR":
        cost *= eur_usd_rate
    return cost


__all__ = [
    "CANADA",
    "EU",
    "EXPRESS",
    "STANDARD",
    "USA",
    "ShippingMatrix",
    "compute_shipping_for_line_item",
    "normalize_method",
    "normalize_region",
    "tier_cost",
]
