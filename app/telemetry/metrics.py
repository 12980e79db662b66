"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)

ANALYSIS_JOBS = Counter(
    "analysis_jobs_total",
    "Analysis jobs that reached a terminal outcome",
    ("provider", "outcome"),
)

ANALYSIS_JOB_DURATION = Histogram(
    "analysis_job_duration_seconds",
    "Wall time from submission to terminal outcome",
    ("provider",),
    buckets=(1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0),
)

ANALYSIS_POLLS = Counter(
    "analysis_job_polls_total",
    "Status checks issued against analysis providers",
    ("provider",),
)

SESSION_FINALIZATIONS = Counter(
    "session_finalizations_total",
    "Finalize calls by session kind and whether the finalizer actually ran",
    ("kind", "outcome"),
)

RETRIEVAL_SEARCHES = Counter(
    "retrieval_searches_total",
    "Similarity searches by purpose and whether any match cleared the threshold",
    ("purpose", "result"),
)


def observe_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record metrics for a completed HTTP request."""

    safe_route = route or "unknown"
    safe_method = method or "UNKNOWN"
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=str(status_code),
    ).inc()
    REQUEST_LATENCY.labels(method=safe_method, route=safe_route).observe(
        observed_duration
    )

    if status_code >= 500:
        ERROR_COUNTER.labels(method=safe_method, route=safe_route).inc()


def observe_job(provider: str, outcome: str, duration_seconds: float) -> None:
    """Record a terminal analysis job outcome."""

    ANALYSIS_JOBS.labels(provider=provider, outcome=outcome).inc()
    ANALYSIS_JOB_DURATION.labels(provider=provider).observe(max(duration_seconds, 0))


def increment_poll(provider: str) -> None:
    ANALYSIS_POLLS.labels(provider=provider).inc()


def increment_finalization(kind: str, outcome: str) -> None:
    SESSION_FINALIZATIONS.labels(kind=kind, outcome=outcome).inc()


def increment_retrieval_search(purpose: str, hit: bool) -> None:
    RETRIEVAL_SEARCHES.labels(purpose=purpose, result="hit" if hit else "miss").inc()
