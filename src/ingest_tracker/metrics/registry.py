"""
Tracker metrics, registered in the Prometheus global REGISTRY on import.
"""

from prometheus_client import Counter, Gauge, Histogram


TRACKER_EVENTS_TRACKED = Counter(
    "ingest_tracker_events_tracked_total",
    "Events admitted into the backlog",
    ["stream"],
)

TRACKER_ADMISSION_REJECTED = Counter(
    "ingest_tracker_admission_rejected_total",
    "track() calls that timed out waiting for admission",
    ["stream"],
)

TRACKER_SENDS_TOTAL = Counter(
    "ingest_tracker_sends_total",
    "Batch send attempts by outcome",
    ["stream", "outcome"],
)

TRACKER_SEND_LATENCY_MS = Histogram(
    "ingest_tracker_send_latency_ms",
    "Latency of a single Transport.post call in milliseconds",
    ["stream"],
    buckets=[1, 2.5, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000],
)

TRACKER_IN_FLIGHT = Gauge(
    "ingest_tracker_in_flight",
    "Batch sends started but not yet terminated",
)

TRACKER_BACKLOG_DEPTH = Gauge(
    "ingest_tracker_backlog_depth",
    "Events buffered per stream",
    ["stream"],
)


class MetricsRegistry:
    """Centralized access to tracker metrics."""

    events_tracked = TRACKER_EVENTS_TRACKED
    admission_rejected = TRACKER_ADMISSION_REJECTED
    sends_total = TRACKER_SENDS_TOTAL
    send_latency_ms = TRACKER_SEND_LATENCY_MS
    in_flight = TRACKER_IN_FLIGHT
    backlog_depth = TRACKER_BACKLOG_DEPTH


# Singleton instance
metrics_registry = MetricsRegistry()
