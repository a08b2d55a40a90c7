"""Profit metrics API endpoints."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, HTTPException, Query, status

from storeprofit.domain.dates import DateRange
from storeprofit.domain.profit import MetricsReport
from storeprofit.scheduler.jobs import manual_refresh
from storeprofit.services.cache import clear_store_cache, get_or_compute
from storeprofit.services.metrics_calculator import get_store_for_user
from storeprofit.web.deps import Calculator, DBSession, UserId

router = APIRouter(prefix="/api/v1/stores")


def _date_range(date_from: date, date_to: date) -> DateRange:
    try:
        return DateRange(date_from, date_to)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.get("/{store_id}/metrics", response_model=MetricsReport)
async def get_metrics(
    store_id: int,
    db: DBSession,
    user_id: UserId,
    calculator: Calculator,
    date_from: date = Query(..., description="First store-local day (YYYY-MM-DD)"),
    date_to: date = Query(..., description="Last store-local day (YYYY-MM-DD)"),
):
    """Profit report for a date range (served from cache when eligible)."""
    date_range = _date_range(date_from, date_to)
    return await get_or_compute(db, calculator, store_id, date_range, user_id=user_id)


@router.post("/{store_id}/metrics/refresh", response_model=MetricsReport)
async def refresh_metrics(
    store_id: int,
    db: DBSession,
    user_id: UserId,
    calculator: Calculator,
    date_from: date = Query(...),
    date_to: date = Query(...),
):
    """Recompute now, ignoring a fresh snapshot."""
    return await manual_refresh(
        calculator, store_id, _date_range(date_from, date_to), user_id=user_id, db=db
    )


@router.post("/{store_id}/cache/invalidate")
def invalidate_cache(store_id: int, db: DBSession, user_id: UserId):
    """Drop all snapshots of a store (after cost model edits)."""
    get_store_for_user(db, store_id, user_id)
    deleted = clear_store_cache(db, store_id)
    return {"store_id": store_id, "deleted": deleted}
