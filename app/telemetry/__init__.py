"""Telemetry helpers and metrics."""

from .metrics import (
    ANALYSIS_JOB_DURATION,
    ANALYSIS_JOBS,
    ANALYSIS_POLLS,
    ERROR_COUNTER,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    RETRIEVAL_SEARCHES,
    SESSION_FINALIZATIONS,
    increment_finalization,
    increment_poll,
    increment_retrieval_search,
    observe_job,
    observe_request,
)

__all__ = [
    "ANALYSIS_JOB_DURATION",
    "ANALYSIS_JOBS",
    "ANALYSIS_POLLS",
    "ERROR_COUNTER",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "RETRIEVAL_SEARCHES",
    "SESSION_FINALIZATIONS",
    "increment_finalization",
    "increment_poll",
    "increment_retrieval_search",
    "observe_job",
    "observe_request",
]
