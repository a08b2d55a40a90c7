"""Configuration management with pydantic-settings.

Provides type-safe configuration with environment variable validation.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Database ===
    database_url: str = Field(
        "sqlite:///./storeprofit.db",
        description="Database URL (SQLite for local runs, Postgres in production)",
    )

    # === Upstream API versions ===
    shopify_api_version: str = Field("2025-10", description="Shopify Admin API version")
    facebook_api_version: str = Field("v21.0", description="Facebook Graph API version")
    facebook_base_url: str = Field("https://graph.facebook.com", description="Graph API host")

    # === HTTP ===
    http_timeout_seconds: int = Field(30, description="HTTP request timeout in seconds")
    http_max_retries: int = Field(3, description="Maximum HTTP retry attempts")
    http_backoff_base: float = Field(0.75, description="HTTP retry backoff base delay")
    http_backoff_max: float = Field(8.0, description="HTTP retry backoff max delay")

    # === Rate limits (per host) ===
    shopify_rate_per_min: int = Field(120, description="Shopify REST calls per minute")
    shopify_rate_capacity: int = Field(40, description="Shopify leaky bucket size")
    facebook_rate_per_min: int = Field(60, description="Graph API calls per minute")

    # === Circuit breaker ===
    cb_fail_threshold: int = Field(5, description="Circuit breaker failure threshold")
    cb_reset_timeout: float = Field(30.0, description="Circuit breaker reset timeout in seconds")

    # === Exchange rate ===
    exchange_rate_url: str = Field(
        "https://open.er-api.com/v6/latest/USD", description="USD-based rate table endpoint"
    )
    exchange_rate_eur_usd: float = Field(
        1.08, description="Fallback EUR->USD rate when the provider is unreachable"
    )
    exchange_rate_ttl_hours: int = Field(24, description="Max lifetime of a fetched rate")

    # === Cost model defaults ===
    default_percent_fee: float = Field(0.028, description="Processing fee percent (0.028 = 2.8%)")
    default_fixed_fee: float = Field(0.29, description="Processing fee per order (USD)")
    default_timezone_offset: int = Field(-300, description="Store UTC offset in minutes")

    # === Pagination caps ===
    orders_page_limit: int = Field(250, description="Orders per page")
    orders_max_pages: int = Field(60, description="Hard cap on order pages per fetch")
    ledger_page_limit: int = Field(250, description="Balance transactions per page")
    ledger_max_pages: int = Field(10, description="Hard cap on ledger pages per reconciliation")

    # === Metrics cache ===
    cache_ttl_minutes: int = Field(60, description="Snapshot freshness window")
    cache_max_age_days: int = Field(90, description="Eligibility and eviction horizon")

    # === Scheduler ===
    scheduler_enabled: bool = Field(True, description="Start background jobs with the API")
    cache_refresh_minute: int = Field(0, description="Minute of each hour for cache refresh")
    cache_cleanup_hour: int = Field(3, description="Hour of day for cache eviction")

    # === Logging ===
    log_level: str = Field("INFO", description="Root log level")
    log_file_path: str | None = Field(
        "/var/log/storeprofit/app.jsonl", description="JSON log file (empty to disable)"
    )

    @property
    def cache_ttl_seconds(self) -> int:
        """Freshness window in seconds."""
        return self.cache_ttl_minutes * 60


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Raises:
        RuntimeError: If environment variables hold invalid values.

    """
    try:
        return Settings()
    except ValidationError as e:
        bad_fields = [str(error["loc"][0]).upper() for error in e.errors() if error.get("loc")]

        error_msg = (
            f"Configuration error: invalid environment variables: "
            f"{', '.join(bad_fields)}\n"
            f"Please fix them in .env file or the process environment."
        )
        raise RuntimeError(error_msg) from e


__all__ = ["Settings", "get_settings"]
