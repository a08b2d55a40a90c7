"""SQLAlchemy ORM models for the profit engine.

This module defines the database schema for:
- Stores and their upstream connections (Shopify, Facebook)
- The merchant cost model (COGS, shipping matrices, fees, operational expenses)
- Cached metrics snapshots

All timestamps are stored in UTC. Store-local dates only exist in the cost
model (expense dates) and in cache keys.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from storeprofit.core.clock import utc_now


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Stores & connections
# =============================================================================


class Store(Base):
    __tablename__ = "stores"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)  # owner
    name: Mapped[str] = mapped_column(String(255))
    platform: Mapped[str] = mapped_column(String(50), default="shopify")
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    timezone_offset: Mapped[int] = mapped_column(Integer, default=-300)  # minutes from UTC
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class ShopifyConnection(Base):
    __tablename__ = "shopify_connections"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id", ondelete="CASCADE"), unique=True)
    shop_domain: Mapped[str] = mapped_column(String(255))  # my-shop.myshopify.com
    access_token: Mapped[str] = mapped_column(Text)
    api_version: Mapped[str] = mapped_column(String(20), default="2025-10")
    connected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class FacebookConnection(Base):
    """Ad account linked to a store (a store may run several)."""

    __tablename__ = "facebook_connections"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id", ondelete="CASCADE"), index=True)
    ad_account_id: Mapped[str] = mapped_column(String(255))
    access_token: Mapped[str] = mapped_column(Text)
    api_version: Mapped[str] = mapped_column(String(20), default="v21.0")
    connected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


# =============================================================================
# Cost model
# =============================================================================


class CogsConfig(Base):
    __tablename__ = "cogs_config"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id", ondelete="CASCADE"), index=True)
    variant_id: Mapped[str] = mapped_column(String(255))  # cost-model key
    product_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    cogs_value: Mapped[float] = mapped_column(Float, default=0.0)  # per unit, USD
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    __table_args__ = (UniqueConstraint("store_id", "variant_id", name="uq_cogs_store_variant"),)


class ShippingConfig(Base):
    __tablename__ = "shipping_config"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id", ondelete="CASCADE"), index=True)
    variant_id: Mapped[str] = mapped_column(String(255))
    product_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    config_json: Mapped[str] = mapped_column(Text)  # legacy or {currency, rates} matrix

    __table_args__ = (
        UniqueConstraint("store_id", "variant_id", name="uq_shipping_store_variant"),
    )


class OperationalExpense(Base):
    __tablename__ = "operational_expenses"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(255))
    type: Mapped[str] = mapped_column(String(20))  # "one_time" | "monthly" | "yearly"
    amount: Mapped[float] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    expense_date: Mapped[date | None] = mapped_column(Date, nullable=True)  # one_time
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)  # recurring
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class ProcessingFeesConfig(Base):
    __tablename__ = "processing_fees_config"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), unique=True
    )
    percent_fee: Mapped[float] = mapped_column(Float, default=0.028)  # 0.028 = 2.8%
    fixed_fee: Mapped[float] = mapped_column(Float, default=0.29)
    currency: Mapped[str] = mapped_column(String(3), default="USD")


# =============================================================================
# Derived data
# =============================================================================


class CachedMetrics(Base):
    """Serialized MetricsReport for one (store, date range)."""

    __tablename__ = "cached_metrics"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id", ondelete="CASCADE"), index=True)
    cache_key: Mapped[str] = mapped_column(String(64))  # metrics_{from}_{to}
    date_from: Mapped[date] = mapped_column(Date)
    date_to: Mapped[date] = mapped_column(Date)
    metrics_json: Mapped[str] = mapped_column(Text)
    last_refreshed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    __table_args__ = (UniqueConstraint("store_id", "cache_key", name="uq_cache_store_key"),)


__all__ = [
    "Base",
    "CachedMetrics",
    "CogsConfig",
    "FacebookConnection",
    "OperationalExpense",
    "ProcessingFeesConfig",
    "ShippingConfig",
    "ShopifyConnection",
    "Store",
]
