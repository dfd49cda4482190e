"""Prometheus metrics definitions."""
from __future__ import annotations

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST


REQUEST_COUNT = Counter(
    "orderhub_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "orderhub_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10],
)

EVENTS_PUBLISHED_TOTAL = Counter(
    "orderhub_events_published_total",
    "Events persisted and handed to delivery",
    ["event_type"],
)

EVENT_PUBLISH_FAILURES_TOTAL = Counter(
    "orderhub_event_publish_failures_total",
    "Publish failures by stage",
    ["event_type", "stage"],
)

EVENT_PUBLISH_DURATION = Histogram(
    "orderhub_event_publish_duration_seconds",
    "Time spent in EventBus.publish",
    ["event_type"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2],
)

EVENT_HANDLER_FAILURES_TOTAL = Counter(
    "orderhub_event_handler_failures_total",
    "Handler invocations that raised",
    ["event_type"],
)

EVENT_HANDLER_RETRIES_TOTAL = Counter(
    "orderhub_event_handler_retries_total",
    "Handler retry attempts",
    ["event_type"],
)

EVENT_DEAD_LETTERS_TOTAL = Counter(
    "orderhub_event_dead_letters_total",
    "Handler invocations that exhausted their retries",
    ["event_type"],
)

EVENT_SUBSCRIBERS = Gauge(
    "orderhub_event_subscribers",
    "Active local subscriptions",
)


def render_metrics() -> bytes:
    return generate_latest()


METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST
