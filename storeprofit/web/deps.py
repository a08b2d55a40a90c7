"""FastAPI dependencies for caller identity, database and services."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from storeprofit.db.session import get_db
from storeprofit.services.metrics_calculator import MetricsCalculator


def current_user_id(x_user_id: Annotated[str | None, Header()] = None) -> int:
    """Caller id from the X-User-Id header (set by the authenticating proxy).

    Raises:
        HTTPException: 401 if the header is missing or not an integer

    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header"
        )
    try:
        return int(x_user_id)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid X-User-Id header"
        ) from e


def get_calculator(request: Request) -> MetricsCalculator:
    """MetricsCalculator created in the application lifespan."""
    calculator = getattr(request.app.state, "calculator", None)
    if calculator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting"
        )
    return calculator


DBSession = Annotated[Session, Depends(get_db)]
UserId = Annotated[int, Depends(current_user_id)]
Calculator = Annotated[MetricsCalculator, Depends(get_calculator)]


__all__ = ["Calculator", "DBSession", "UserId", "current_user_id", "get_calculator"]
