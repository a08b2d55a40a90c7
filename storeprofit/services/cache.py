"""Metrics snapshot cache.

Rules:
- Only closed ranges are cached: the range must end before the store's today
  and start no earlier than `max_age_days` ago.
- A snapshot is fresh for `ttl_seconds` after its last refresh; older ones
  are recomputed.
- One row per (store_id, cache_key), written with a single atomic upsert.
- The daily sweep deletes rows created more than `max_age_days` ago.
"""

from __future__ import annotations

from datetime import date, timedelta

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from storeprofit.core.clock import Clock, store_today, utc_now
from storeprofit.core.config import Settings, get_settings
from storeprofit.core.logging import get_logger
from storeprofit.core.metrics import metrics_cache_evicted_total, metrics_cache_requests_total
from storeprofit.db.models import CachedMetrics
from storeprofit.domain.dates import DateRange, as_utc
from storeprofit.domain.profit import MetricsReport
from storeprofit.services.metrics_calculator import MetricsCalculator, get_store_for_user

log = get_logger("storeprofit.cache")

HIT = "hit"
MISS = "miss"
STALE = "stale"
BYPASS = "bypass"


def is_cacheable(date_range: DateRange, today: date, max_age_days: int = 90) -> bool:
    """Whether a range may be served from / written to the cache."""
    if date_range.end >= today:
        return False
    return date_range.start >= today - timedelta(days=max_age_days)


def get_cached_metrics(
    db: Session,
    store_id: int,
    date_range: DateRange,
    ttl_seconds: int = 3600,
    clock: Clock = utc_now,
) -> MetricsReport | None:
    """Fresh snapshot for the range, or None (missing, stale or unreadable)."""
    row = db.scalar(
        select(CachedMetrics).where(
            CachedMetrics.store_id == store_id,
            CachedMetrics.cache_key == date_range.cache_key,
        )
    )
    if row is None:
        metrics_cache_requests_total.labels(result=MISS).inc()
        return None

    age = clock() - as_utc(row.last_refreshed_at)
    if age > timedelta(seconds=ttl_seconds):
        metrics_cache_requests_total.labels(result=STALE).inc()
        log.debug(
            "metrics_cache_stale",
            extra={"store_id": store_id, "cache_key": row.cache_key, "age_s": int(age.total_seconds())},
        )
        return None

    try:
        report = MetricsReport.model_validate_json(row.metrics_json)
    except ValidationError as e:
        metrics_cache_requests_total.labels(result=MISS).inc()
        log.warning(
            "metrics_cache_unreadable",
            extra={"store_id": store_id, "cache_key": row.cache_key, "error": str(e)},
        )
        return None

    metrics_cache_requests_total.labels(result=HIT).inc()
    return report


def set_cached_metrics(
    db: Session,
    store_id: int,
    date_range: DateRange,
    report: MetricsReport,
    clock: Clock = utc_now,
) -> None:
    """Insert or replace the snapshot for (store_id, cache_key) in one statement."""
    now = clock()
    values = dict(
        store_id=store_id,
        cache_key=date_range.cache_key,
        date_from=date_range.start,
        date_to=date_range.end,
        metrics_json=report.model_dump_json(),
        last_refreshed_at=now,
        created_at=now,
    )

    if db.bind.dialect.name == "postgresql":
        stmt = pg_insert(CachedMetrics).values(**values)
    else:
        stmt = sqlite_insert(CachedMetrics).values(**values)

    # created_at keeps its first value so the eviction sweep ages rows out
    stmt = stmt.on_conflict_do_update(
        index_elements=["store_id", "cache_key"],
        set_=dict(
            metrics_json=stmt.excluded.metrics_json,
            last_refreshed_at=stmt.excluded.last_refreshed_at,
        ),
    )
    db.execute(stmt)
    db.commit()

    log.info(
        "metrics_cache_written",
        extra={"store_id": store_id, "cache_key": date_range.cache_key},
    )


def clear_store_cache(db: Session, store_id: int) -> int:
    """Drop every snapshot of a store (cost model changed). Returns rows deleted."""
    result = db.execute(delete(CachedMetrics).where(CachedMetrics.store_id == store_id))
    db.commit()
    deleted = result.rowcount or 0
    log.info("metrics_cache_cleared", extra={"store_id": store_id, "deleted": deleted})
    return deleted


def clear_old_cache(db: Session, max_age_days: int = 90, clock: Clock = utc_now) -> int:
    """Delete snapshots created more than max_age_days ago. Returns rows deleted."""
    cutoff = clock() - timedelta(days=max_age_days)
    result = db.execute(delete(CachedMetrics).where(CachedMetrics.created_at < cutoff))
    db.commit()
    deleted = result.rowcount or 0
    metrics_cache_evicted_total.inc(deleted)
    log.info("metrics_cache_evicted", extra={"deleted": deleted, "cutoff": cutoff.isoformat()})
    return deleted


async def get_or_compute(
    db: Session,
    calculator: MetricsCalculator,
    store_id: int,
    date_range: DateRange,
    user_id: int | None = None,
    force_refresh: bool = False,
    settings: Settings | None = None,
    clock: Clock = utc_now,
) -> MetricsReport:
    """Serve a fresh snapshot or compute (and store, when cacheable) a new report.

    Ownership is checked before anything is read from the cache.

    Raises:
        StoreAccessError: Store missing or not owned by user_id
        UpstreamHTTPError: Orders could not be fetched

    """
    s = settings or get_settings()
    store = get_store_for_user(db, store_id, user_id)
    offset = store.timezone_offset
    if offset is None:
        offset = s.default_timezone_offset
    today = store_today(clock, offset)

    if not is_cacheable(date_range, today, s.cache_max_age_days):
        metrics_cache_requests_total.labels(result=BYPASS).inc()
        return await calculator.calculate(db, store_id, date_range, user_id=user_id)

    if not force_refresh:
        cached = get_cached_metrics(db, store_id, date_range, s.cache_ttl_seconds, clock)
        if cached is not None:
            return cached

    report = await calculator.calculate(db, store_id, date_range, user_id=user_id)
    set_cached_metrics(db, store_id, date_range, report, clock)
    return report


__all__ = [
    "clear_old_cache",
    "clear_store_cache",
    "get_cached_metrics",
    "get_or_compute",
    "is_cacheable",
    "set_cached_metrics",
]
