"""EUR/USD normalization. Every figure the engine reports is USD."""

from __future__ import annotations


def to_usd(amount: float, currency: str | None, eur_usd_rate: float) -> float:
    """Convert an amount to USD; only EUR is converted, anything else passes through."""
    if (currency or "USD").upper() == "EUR":
        return amount * eur_usd_rate
    return amount


__all__ = ["to_usd"]
