"""Exception hierarchy for the profit engine."""

from __future__ import annotations


class StoreProfitError(Exception):
    """Base class for all domain errors."""


class StoreAccessError(StoreProfitError):
    """Store does not exist or does not belong to the caller."""

    def __init__(self, store_id: int):
        super().__init__(f"Store {store_id} not found or access denied")
        self.store_id = store_id


class UpstreamHTTPError(StoreProfitError):
    """Upstream API answered with a non-2xx status."""

    def __init__(self, service: str, status: int, url: str, body: str = ""):
        super().__init__(f"{service} API error {status}: {body[:200]}")
        self.service = service
        self.status = status
        self.url = url
        self.body = body


class FeatureUnavailableError(StoreProfitError):
    """Optional upstream capability is not enabled for this merchant (403/404)."""

    def __init__(self, feature: str, status: int):
        super().__init__(f"{feature} unavailable (HTTP {status})")
        self.feature = feature
        self.status = status


class LedgerUnavailableError(FeatureUnavailableError):
    """Payments balance ledger is not enabled for this shop."""

    def __init__(self, status: int):
        super().__init__("balance_transactions", status)


__all__ = [
    "FeatureUnavailableError",
    "LedgerUnavailableError",
    "StoreAccessError",
    "StoreProfitError",
    "UpstreamHTTPError",
]
