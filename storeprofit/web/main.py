"""FastAPI application for the store profit service."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from storeprofit.core.config import get_settings
from storeprofit.core.logging import get_logger, set_request_id, setup_logging
from storeprofit.errors import StoreAccessError, UpstreamHTTPError
from storeprofit.scheduler.jobs import build_scheduler
from storeprofit.services.exchange_rate import ExchangeRateService
from storeprofit.services.metrics_calculator import MetricsCalculator
from storeprofit.web.routers import metrics

log = get_logger("storeprofit.web")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the exchange-rate service and scheduler; stop them on shutdown."""
    settings = get_settings()
    setup_logging(settings)

    rates = ExchangeRateService(settings=settings)
    await rates.start()
    calculator = MetricsCalculator(rates, settings=settings)
    app.state.rates = rates
    app.state.calculator = calculator

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = build_scheduler(calculator, settings)
        scheduler.start()
        log.info("scheduler_started")

    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        calculator.guards.clear()
        await rates.close()
        log.info("app_shutdown")


app = FastAPI(
    title="Store Profit API",
    version="0.1.0",
    description="Net profit reporting for Shopify stores",
    lifespan=lifespan,
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Correlate log lines of one request."""
    request_id = set_request_id(request.headers.get("X-Request-Id"))
    response = await call_next(request)
    response.headers["X-Request-Id"] = request_id
    return response


@app.exception_handler(StoreAccessError)
async def store_access_handler(request: Request, exc: StoreAccessError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "store_not_found", "detail": str(exc)},
    )


@app.exception_handler(UpstreamHTTPError)
async def upstream_error_handler(request: Request, exc: UpstreamHTTPError):
    log.error(
        "upstream_error",
        extra={"path": str(request.url.path), "service": exc.service, "status": exc.status},
    )
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"error": "upstream_error", "service": exc.service, "status": exc.status},
    )


# Global exception handler for unhandled errors (500)
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions with proper logging and response."""
    request_id = str(uuid.uuid4())

    log.error(
        "unhandled_exception",
        extra={
            "request_id": request_id,
            "path": str(request.url.path),
            "method": request.method,
            "error": str(exc),
            "error_type": type(exc).__name__,
        },
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_server_error",
            "request_id": request_id,
        },
    )


app.include_router(metrics.router, tags=["Metrics"])


@app.get("/health")
def health():
    """Basic health check for monitoring."""
    return {"status": "healthy"}


@app.get("/metrics")
def prometheus_metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
