"""Shared pytest fixtures and configuration."""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_FILE_PATH", "")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storeprofit.core.config import Settings
from storeprofit.db.models import Base, ShippingConfig, ShopifyConnection, Store
from tests.fakes import FakeRates, FakeShopifyClient


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across sessions of one test."""
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, future=True)


@pytest.fixture
def db(session_factory) -> Session:
    """Database session for one test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite:///:memory:", log_file_path=None, scheduler_enabled=False)


@pytest.fixture
def store(db) -> Store:
    """Store owned by user 1 with a Shopify connection."""
    s = Store(id=1, user_id=1, name="Test Store", timezone_offset=-300)
    db.add(s)
    db.add(ShopifyConnection(store_id=1, shop_domain="test-shop.myshopify.com", access_token="shpat_test"))
    db.commit()
    return s


@pytest.fixture
def shipping_row(db, store) -> ShippingConfig:
    row = ShippingConfig(
        store_id=store.id,
        variant_id="111",
        config_json='{"currency": "USD", "rates": {"US": {"Standard": {"1": 5, "2": 8, "3": 11}}}}',
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def rates() -> FakeRates:
    return FakeRates(1.1)


@pytest.fixture
def shopify() -> FakeShopifyClient:
    return FakeShopifyClient()
