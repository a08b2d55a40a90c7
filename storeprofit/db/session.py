"""Database session management.

This module provides SQLAlchemy engine and session factory configured
from storeprofit.core.config settings.
"""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storeprofit.core.config import get_settings

# Create engine from settings
_settings = get_settings()
engine = create_engine(
    _settings.database_url,
    pool_pre_ping=True,  # Verify connections before using
    future=True,
    echo=False,
)

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
)


def get_db():
    """Get database session (dependency injection for FastAPI/jobs)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
