"""Prometheus metrics for monitoring."""

from __future__ import annotations

from prometheus_client import Counter, Histogram, Summary

# External API metrics
external_api_requests_total = Counter(
    "external_api_requests_total",
    "Total external API requests",
    ["service", "status"],  # service: shopify, facebook, exchange_rate
)

external_api_duration_seconds = Histogram(
    "external_api_duration_seconds",
    "External API request duration",
    ["service"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Metrics cache
metrics_cache_requests_total = Counter(
    "metrics_cache_requests_total",
    "Metrics snapshot lookups",
    ["result"],  # hit, miss, stale, bypass
)

metrics_cache_evicted_total = Counter(
    "metrics_cache_evicted_total",
    "Snapshots removed by the eviction sweep",
)

# Reconciliation
reconciliation_fallback_total = Counter(
    "reconciliation_fallback_total",
    "Metrics computed with formula fees instead of ledger fees",
    ["reason"],  # unavailable, error
)

reconciliation_pages_fetched = Histogram(
    "reconciliation_pages_fetched",
    "Ledger pages fetched per reconciliation",
    buckets=[1, 2, 3, 5, 8, 10],
)

# Metrics computation
metrics_compute_duration_seconds = Histogram(
    "metrics_compute_duration_seconds",
    "Wall time of one profit report computation",
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0],
)

# Scheduler Job metrics
scheduler_jobs_total = Counter(
    "scheduler_jobs_total",
    "Total scheduled jobs executed",
    ["job_name", "status"],  # status: success, failed
)

scheduler_job_duration_seconds = Summary(
    "scheduler_job_duration_seconds",
    "Scheduler job execution duration",
    ["job_name"],
)
