"""Prometheus metrics endpoint for monitoring the keeper."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Response
from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

from brokex_core.models import PassResult

router = APIRouter(tags=["monitoring"])

# Pass metrics
passes_total = Counter(
    "brokex_passes_total",
    "Reconciliation passes",
    ["result"],  # completed, aborted, rejected
)

pass_duration_seconds = Histogram(
    "brokex_pass_duration_seconds",
    "Duration of completed reconciliation passes",
    buckets=(0.5, 1, 2.5, 5, 10, 30, 60, 120, 300, 600),
)

# Item metrics
close_outcomes_total = Counter(
    "brokex_close_outcomes_total",
    "Close request outcomes",
    ["status"],  # closed, failed, skipped
)

submission_attempts_total = Counter(
    "brokex_submission_attempts_total",
    "Close confirmation submissions, retries included",
)


def record_pass(result: PassResult) -> None:
    """Record metrics for a completed pass."""
    passes_total.labels(result="completed").inc()
    if result.duration_seconds is not None:
        pass_duration_seconds.observe(result.duration_seconds)

    for status, count in result.counts().items():
        if count:
            close_outcomes_total.labels(status=status).inc(count)

    attempts = sum(o.attempts for o in result)
    if attempts:
        submission_attempts_total.inc(attempts)


def record_pass_failure(reason: Optional[str] = None) -> None:
    """Record a pass that aborted or was rejected before running."""
    passes_total.labels(result=reason or "aborted").inc()


@router.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus metrics endpoint.

    Returns metrics in Prometheus text exposition format.
    """
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
    )
