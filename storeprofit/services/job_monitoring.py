"""Scheduler job monitoring."""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from storeprofit.core.logging import get_logger
from storeprofit.core.metrics import scheduler_job_duration_seconds, scheduler_jobs_total

log = get_logger("storeprofit.jobs")


@contextmanager
def monitor_job(job_name: str, metadata: dict[str, Any] | None = None) -> Iterator[dict[str, Any]]:
    """Context manager to monitor scheduled job execution.

    Logs job start/finish, tracks duration and updates Prometheus metrics.
    The yielded dict is logged on completion, so jobs can put their stats in it.

    Usage:
        with monitor_job("refresh_recent_cache") as run:
            run["refreshed"] = 3

    """
    run: dict[str, Any] = dict(metadata or {})
    start_time = time.time()
    log.info("job_started", extra={"job_name": job_name})

    try:
        yield run
    except Exception as e:
        duration = time.time() - start_time
        scheduler_jobs_total.labels(job_name=job_name, status="failed").inc()
        scheduler_job_duration_seconds.labels(job_name=job_name).observe(duration)
        log.error(
            "job_failed",
            extra={"job_name": job_name, "duration_s": round(duration, 3), "error": str(e)[:500]},
        )
        raise

    duration = time.time() - start_time
    scheduler_jobs_total.labels(job_name=job_name, status="success").inc()
    scheduler_job_duration_seconds.labels(job_name=job_name).observe(duration)
    log.info(
        "job_finished",
        extra={"job_name": job_name, "duration_s": round(duration, 3), "stats": run},
    )


__all__ = ["monitor_job"]
