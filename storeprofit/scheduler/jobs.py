"""Scheduled jobs for the metrics cache.

Jobs:
- refresh_recent_cache: hourly, recompute yesterday / last 7 / last 30 days for
  every store. All windows end yesterday, so they are always cacheable and
  today's partial day is never pre-cached.
- evict_expired_cache: daily at 03:00, delete snapshots older than the
  eligibility horizon.
- manual_refresh: on-demand recompute of one store and range.

Stores are processed sequentially; a failing store is logged and skipped.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import nullcontext

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import select
from sqlalchemy.orm import Session

from storeprofit.core.clock import Clock, store_today, utc_now
from storeprofit.core.config import Settings, get_settings
from storeprofit.core.logging import get_logger
from storeprofit.db.models import Store
from storeprofit.db.session import SessionLocal
from storeprofit.domain.dates import DateRange
from storeprofit.domain.profit import MetricsReport
from storeprofit.services.cache import clear_old_cache, get_or_compute, set_cached_metrics
from storeprofit.services.job_monitoring import monitor_job
from storeprofit.services.metrics_calculator import MetricsCalculator

log = get_logger("storeprofit.scheduler")

REFRESH_WINDOWS = (1, 7, 30)  # days, each ending yesterday

SessionFactory = Callable[[], Session]


async def refresh_recent_cache(
    calculator: MetricsCalculator,
    session_factory: SessionFactory = SessionLocal,
    settings: Settings | None = None,
    clock: Clock = utc_now,
) -> dict[str, int]:
    """Recompute and store the standard windows for every active store.

    Returns:
        Dict with stats (stores, refreshed, failed_stores)

    """
    s = settings or get_settings()
    stats = {"stores": 0, "refreshed": 0, "failed_stores": 0}

    with monitor_job("refresh_recent_cache") as run, session_factory() as db:
        stores = db.scalars(select(Store).where(Store.is_active.is_(True)).order_by(Store.id)).all()
        stats["stores"] = len(stores)

        for store in stores:
            offset = store.timezone_offset
            if offset is None:
                offset = s.default_timezone_offset
            today = store_today(clock, offset)

            try:
                for days in REFRESH_WINDOWS:
                    date_range = DateRange.last_days(today, days)
                    report = await calculator.calculate(db, store.id, date_range)
                    set_cached_metrics(db, store.id, date_range, report, clock)
                    stats["refreshed"] += 1
            except Exception as e:
                db.rollback()
                stats["failed_stores"] += 1
                log.error(
                    "cache_refresh_store_failed",
                    extra={"store_id": store.id, "error": str(e)},
                )

        run.update(stats)

    return stats


def evict_expired_cache(
    session_factory: SessionFactory = SessionLocal,
    settings: Settings | None = None,
    clock: Clock = utc_now,
) -> dict[str, int]:
    """Delete snapshots created more than cache_max_age_days ago."""
    s = settings or get_settings()
    with monitor_job("evict_expired_cache") as run, session_factory() as db:
        deleted = clear_old_cache(db, s.cache_max_age_days, clock)
        run["deleted"] = deleted
    return {"deleted": deleted}


async def manual_refresh(
    calculator: MetricsCalculator,
    store_id: int,
    date_range: DateRange,
    user_id: int | None = None,
    db: Session | None = None,
    session_factory: SessionFactory = SessionLocal,
    settings: Settings | None = None,
    clock: Clock = utc_now,
) -> MetricsReport:
    """Recompute one range now, bypassing a fresh snapshot; stored when cacheable.

    Runs on `db` when given (API requests), otherwise on a new session.
    """
    session = nullcontext(db) if db is not None else session_factory()
    with monitor_job("manual_refresh", {"store_id": store_id}), session as db:
        return await get_or_compute(
            db,
            calculator,
            store_id,
            date_range,
            user_id=user_id,
            force_refresh=True,
            settings=settings,
            clock=clock,
        )


def build_scheduler(
    calculator: MetricsCalculator,
    settings: Settings | None = None,
    session_factory: SessionFactory = SessionLocal,
) -> AsyncIOScheduler:
    """AsyncIOScheduler with the cache jobs registered (not started)."""
    s = settings or get_settings()
    scheduler = AsyncIOScheduler(timezone="UTC")

    scheduler.add_job(
        refresh_recent_cache,
        "cron",
        minute=s.cache_refresh_minute,
        kwargs={"calculator": calculator, "session_factory": session_factory, "settings": s},
        id="refresh_recent_cache",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        evict_expired_cache,
        "cron",
        hour=s.cache_cleanup_hour,
        minute=0,
        kwargs={"session_factory": session_factory, "settings": s},
        id="evict_expired_cache",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    log.info(
        "scheduler_configured",
        extra={
            "refresh_minute": s.cache_refresh_minute,
            "cleanup_hour": s.cache_cleanup_hour,
        },
    )
    return scheduler


__all__ = [
    "REFRESH_WINDOWS",
    "build_scheduler",
    "evict_expired_cache",
    "manual_refresh",
    "refresh_recent_cache",
]
