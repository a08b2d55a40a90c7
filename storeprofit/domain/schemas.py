"""Validated upstream payloads.

Shopify, Facebook and the exchange-rate provider return loosely typed JSON
(money as strings, ids as ints or strings, optional blocks). These models are
applied right at the client boundary; everything past the clients works with
typed records.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


def lenient_float(value: Any) -> float:
    """Parse money-ish values; anything unparseable is 0.0."""
    if value is None or value == "":
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def _optional_id(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class LineItem(_Payload):
    """Order line item."""

    variant_id: str | None = None
    product_id: str | None = None
    title: str | None = None
    name: str | None = None
    quantity: int = 0
    price: float = 0.0

    @field_validator("variant_id", "product_id", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> str | None:
        return _optional_id(value)

    @field_validator("price", mode="before")
    @classmethod
    def coerce_money(cls, value: Any) -> float:
        return lenient_float(value)

    @field_validator("quantity", mode="before")
    @classmethod
    def coerce_quantity(cls, value: Any) -> int:
        try:
            return int(value or 0)
        except (TypeError, ValueError):
            return 0

    @property
    def config_key(self) -> str | None:
        """Cost-model key: variant id, else product id, else title."""
        if self.variant_id is not None:
            return self.variant_id
        if self.product_id is not None:
            return self.product_id
        return self.title or self.name or None


class ShippingLine(_Payload):
    title: str = ""
    price: float = 0.0

    @field_validator("price", mode="before")
    @classmethod
    def coerce_money(cls, value: Any) -> float:
        return lenient_float(value)

    @field_validator("title", mode="before")
    @classmethod
    def coerce_title(cls, value: Any) -> str:
        return "" if value is None else str(value)


class Address(_Payload):
    country: str | None = None
    country_code: str | None = None


class Customer(_Payload):
    first_name: str | None = None
    last_name: str | None = None

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or "Guest"


class Order(_Payload):
    """Shopify order (subset of fields the engine uses)."""

    id: str
    order_number: int | None = None
    created_at: datetime | None = None
    total_price: float = 0.0
    currency: str = "USD"
    total_discounts: float = 0.0
    total_tip_received: float = 0.0
    line_items: list[LineItem] = []
    shipping_lines: list[ShippingLine] = []
    shipping_address: Address | None = None
    customer: Customer | None = None

    @field_validator("total_price", "total_discounts", "total_tip_received", mode="before")
    @classmethod
    def coerce_money(cls, value: Any) -> float:
        return lenient_float(value)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("line_items", "shipping_lines", mode="before")
    @classmethod
    def coerce_none_list(cls, value: Any) -> Any:
        return value or []

    @property
    def destination_country(self) -> str | None:
        if not self.shipping_address:
            return None
        return self.shipping_address.country_code or self.shipping_address.country

    @property
    def shipping_revenue(self) -> float:
        return sum(line.price for line in self.shipping_lines)


class Dispute(_Payload):
    id: str
    amount: float = 0.0
    currency: str = "USD"
    status: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_money(cls, value: Any) -> float:
        return lenient_float(value)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> str:
        return str(value)


class BalanceTransaction(_Payload):
    """Shopify Payments balance transaction (ledger record)."""

    id: str
    type: str = ""
    amount: float = 0.0
    fee: float = 0.0
    currency: str = "USD"
    source_order_id: str | None = None
    processed_at: datetime | None = None

    @field_validator("amount", "fee", mode="before")
    @classmethod
    def coerce_money(cls, value: Any) -> float:
        return lenient_float(value)

    @field_validator("source_order_id", mode="before")
    @classmethod
    def coerce_order(cls, value: Any) -> str | None:
        return _optional_id(value)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("type", "currency", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)


class ExchangeRatePayload(_Payload):
    result: str
    rates: dict[str, float] = {}
    time_next_update_unix: int | None = None


__all__ = [
    "Address",
    "BalanceTransaction",
    "Customer",
    "Dispute",
    "ExchangeRatePayload",
    "LineItem",
    "Order",
    "ShippingLine",
    "lenient_float",
]
