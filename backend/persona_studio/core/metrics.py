"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

REQUEST_COUNT = Counter(
    "pstu_requests_total",
    "Total HTTP requests",
    labelnames=("endpoint", "method", "status"),
    registry=REGISTRY,
)

UPLOAD_COUNT = Counter(
    "pstu_uploads_total",
    "Uploaded files by terminal status",
    labelnames=("status",),
    registry=REGISTRY,
)

UPLOAD_BYTES = Counter(
    "pstu_upload_bytes_total",
    "Bytes written to the object store",
    registry=REGISTRY,
)

TRAINING_RUNS = Counter(
    "pstu_training_runs_total",
    "Training runs by outcome",
    labelnames=("outcome",),
    registry=REGISTRY,
)

TRAINING_DURATION = Histogram(
    "pstu_training_duration_seconds",
    "Training pipeline duration",
    registry=REGISTRY,
)

MESSAGE_COUNT = Counter(
    "pstu_messages_total",
    "Conversation messages by sender",
    labelnames=("sender",),
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "REQUEST_COUNT",
    "UPLOAD_COUNT",
    "UPLOAD_BYTES",
    "TRAINING_RUNS",
    "TRAINING_DURATION",
    "MESSAGE_COUNT",
    "metrics_response",
]
