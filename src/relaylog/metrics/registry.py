"""
Prometheus metrics for the delivery pipeline.

Registered on the default prometheus_client REGISTRY at import time; expose
them with ``prometheus_client.start_http_server`` or any ASGI/WSGI exporter.
"""

from prometheus_client import Counter, Gauge, Histogram


# --- Delivery Metrics ---

DELIVERIES_TOTAL = Counter(
    "relaylog_deliveries_total",
    "Entries resolved by the scheduler",
    ["scheduler", "outcome"],
)

DELIVERY_RETRIES_TOTAL = Counter(
    "relaylog_delivery_retries_total",
    "Retries scheduled after a transient sink failure",
    ["scheduler", "reason"],
)

DELIVERY_LATENCY_MS = Histogram(
    "relaylog_delivery_latency_ms",
    "Time from dispatch pickup to resolution, retries included",
    ["scheduler"],
    buckets=[5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000],
)

QUEUE_DEPTH = Gauge(
    "relaylog_queue_depth",
    "Entries waiting for dispatch",
    ["scheduler"],
)


# --- Overflow Metrics ---

OVERFLOW_UPLOADS_TOTAL = Counter(
    "relaylog_overflow_uploads_total",
    "Oversized fields sent to the overflow store",
    ["field", "outcome"],
)


class MetricsRegistry:
    """Centralized access to relaylog metrics."""

    deliveries_total = DELIVERIES_TOTAL
    delivery_retries_total = DELIVERY_RETRIES_TOTAL
    delivery_latency_ms = DELIVERY_LATENCY_MS
    queue_depth = QUEUE_DEPTH
    overflow_uploads_total = OVERFLOW_UPLOADS_TOTAL


# Shared by every scheduler/router; label values keep instances apart
metrics_registry = MetricsRegistry()
