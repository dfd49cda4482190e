"""Observability utilities (metrics, logging)."""

from .metrics import (
    REQUEST_COUNT,
    REQUEST_LATENCY,
    EVENTS_PUBLISHED_TOTAL,
    EVENT_PUBLISH_FAILURES_TOTAL,
    EVENT_PUBLISH_DURATION,
    EVENT_HANDLER_FAILURES_TOTAL,
    EVENT_HANDLER_RETRIES_TOTAL,
    EVENT_DEAD_LETTERS_TOTAL,
    EVENT_SUBSCRIBERS,
    render_metrics,
    METRICS_CONTENT_TYPE,
)
from .structured_logging import configure_structlog
from .middleware import ObservabilityMiddleware

__all__ = [
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "EVENTS_PUBLISHED_TOTAL",
    "EVENT_PUBLISH_FAILURES_TOTAL",
    "EVENT_PUBLISH_DURATION",
    "EVENT_HANDLER_FAILURES_TOTAL",
    "EVENT_HANDLER_RETRIES_TOTAL",
    "EVENT_DEAD_LETTERS_TOTAL",
    "EVENT_SUBSCRIBERS",
    "render_metrics",
    "METRICS_CONTENT_TYPE",
    "configure_structlog",
    "ObservabilityMiddleware",
]
