"""
Prometheus metrics for the messaging API.

This module provides:
- HTTP request counter (method, path, status)
- Contact submission outcome counter (result)
- Queue publish failure counter
- Request latency histogram (method, path)

Metrics are stored in-memory using prometheus-client.
"""

import re

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

# result: created, spam, validation_error, error
contact_submissions_total = Counter(
    "contact_submissions_total",
    "Total contact form submission outcomes",
    labelnames=["result"]
)

queue_publish_failures_total = Counter(
    "queue_publish_failures_total",
    "Contact message events that could not be published to the queue"
)

# Using default buckets: .005, .01, .025, .05, .075, .1, .25, .5, .75, 1.0, 2.5, 5.0, 7.5, 10.0
request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)

_ID_SEGMENT = re.compile(r"/[^/]+$")
_ITEM_PATHS = ("/api/v1/messages/", "/api/v1/recipients/")


# =============================================================================
# Helper Functions
# =============================================================================

def normalize_path(path: str) -> str:
    """
    Collapse per-resource paths to avoid high-cardinality labels
    (e.g., /api/v1/recipients/42 -> /api/v1/recipients/{id}).
    """
    path = path.split("?")[0]
    for prefix in _ITEM_PATHS:
        if path.startswith(prefix) and len(path) > len(prefix):
            return _ID_SEGMENT.sub("/{id}", path)
    return path


def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    normalized_path = normalize_path(path)

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_contact_outcome(result: str) -> None:
    """
    Record a contact submission outcome.

    Args:
        result: Processing result - one of:
            - "created": Message stored
            - "spam": Honeypot filled, message discarded
            - "validation_error": Request body validation failed
            - "error": Message could not be stored
    """
    contact_submissions_total.labels(result=result).inc()


def record_publish_failure() -> None:
    queue_publish_failures_total.inc()


def get_metrics() -> bytes:
    """
    Generate Prometheus exposition format metrics.

    Returns:
        Metrics in Prometheus text format as bytes
    """
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
