"""Tests for scheduled cache jobs."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest
from sqlalchemy import func, select

from storeprofit.core.clock import FrozenClock
from storeprofit.db.models import CachedMetrics, Store
from storeprofit.domain.dates import DateRange
from storeprofit.domain.profit import MetricsReport
from storeprofit.scheduler.jobs import (
    build_scheduler,
    evict_expired_cache,
    manual_refresh,
    refresh_recent_cache,
)
from storeprofit.services.cache import set_cached_metrics


class _RecordingCalculator:
    def __init__(self, failing_stores=()):
        self.failing_stores = set(failing_stores)
        self.calls: list[tuple[int, DateRange]] = []

    async def calculate(self, db, store_id, date_range, user_id=None):
        self.calls.append((store_id, date_range))
        if store_id in self.failing_stores:
            raise RuntimeError("shop token revoked")
        return MetricsReport(store_id=store_id, date_from=date_range.start, date_to=date_range.end)


@pytest.mark.asyncio
async def test_refresh_windows_end_yesterday_and_failures_are_skipped(db, store, session_factory, settings):
    db.add(Store(id=2, user_id=2, name="Broken", timezone_offset=0))
    db.add(Store(id=3, user_id=3, name="Paused", is_active=False))
    db.commit()
    # 02:00 UTC: still Apr 9 for store 1 (UTC-5), Apr 10 for store 2 (UTC)
    clock = FrozenClock(datetime(2025, 4, 10, 2, 0, tzinfo=UTC))
    calc = _RecordingCalculator(failing_stores={2})

    stats = await refresh_recent_cache(calc, session_factory, settings, clock)

    assert stats == {"stores": 2, "refreshed": 3, "failed_stores": 1}
    store_1_ranges = [r for sid, r in calc.calls if sid == 1]
    assert store_1_ranges == [
        DateRange(date(2025, 4, 8), date(2025, 4, 8)),
        DateRange(date(2025, 4, 2), date(2025, 4, 8)),
        DateRange(date(2025, 3, 10), date(2025, 4, 8)),
    ]
    assert [r.end for sid, r in calc.calls if sid == 2] == [date(2025, 4, 9)]
    assert db.scalar(select(func.count()).select_from(CachedMetrics)) == 3


def test_evict_expired_cache(db, store, session_factory, settings):
    clock = FrozenClock(datetime(2025, 1, 1, tzinfo=UTC))
    set_cached_metrics(
        db,
        1,
        DateRange(date(2024, 12, 1), date(2024, 12, 1)),
        MetricsReport(store_id=1, date_from=date(2024, 12, 1), date_to=date(2024, 12, 1)),
        clock,
    )
    clock.advance(days=91)

    assert evict_expired_cache(session_factory, settings, clock) == {"deleted": 1}


@pytest.mark.asyncio
async def test_manual_refresh_stores_cacheable_range(db, store, session_factory, settings):
    clock = FrozenClock(datetime(2025, 4, 10, 12, 0, tzinfo=UTC))
    calc = _RecordingCalculator()
    date_range = DateRange(date(2025, 4, 1), date(2025, 4, 7))

    report = await manual_refresh(
        calc, 1, date_range, user_id=1, session_factory=session_factory, settings=settings, clock=clock
    )

    assert report.store_id == 1
    assert len(calc.calls) == 1
    assert db.scalar(select(func.count()).select_from(CachedMetrics)) == 1


def test_build_scheduler_registers_jobs(settings):
    scheduler = build_scheduler(_RecordingCalculator(), settings)

    assert {job.id for job in scheduler.get_jobs()} == {"refresh_recent_cache", "evict_expired_cache"}
    assert not scheduler.running


@pytest.mark.asyncio
async def test_manual_refresh_runs_on_given_session(db, store, settings):
    clock = FrozenClock(datetime(2025, 4, 10, 12, 0, tzinfo=UTC))
    date_range = DateRange(date(2025, 4, 1), date(2025, 4, 7))

    def no_new_sessions():
        raise AssertionError("a session was passed in")

    await manual_refresh(
        _RecordingCalculator(),
        1,
        date_range,
        user_id=1,
        db=db,
        session_factory=no_new_sessions,
        settings=settings,
        clock=clock,
    )

    assert db.scalar(select(func.count()).select_from(CachedMetrics)) == 1
