"""Prometheus metrics for itinerary sync."""

from prometheus_client import Counter, Gauge, Histogram

sync_latency_ms = Histogram(
    "sync_latency_ms",
    "Persistence call latency in milliseconds",
    ["operation", "outcome"],
    buckets=[10, 50, 100, 200, 500, 1000, 2000, 5000, 10000, 30000],
)

sync_errors_total = Counter(
    "sync_errors_total",
    "Total failed persistence calls",
    ["operation", "reason"],
)

trip_refetch_total = Counter(
    "trip_refetch_total",
    "Total full trip refetches",
    ["reason"],
)

sync_pending_calls = Gauge(
    "sync_pending_calls",
    "Awaited persistence calls currently in flight",
)


class PrometheusSyncMetrics:
    """Prometheus-based sync metrics implementation."""

    def record_latency(self, operation: str, outcome: str, latency_ms: float) -> None:
        """Record persistence call latency."""
        sync_latency_ms.labels(operation=operation, outcome=outcome).observe(latency_ms)

    def inc_error(self, operation: str, reason: str) -> None:
        """Increment error counter."""
        sync_errors_total.labels(operation=operation, reason=reason).inc()

    def inc_refetch(self, reason: str) -> None:
        """Increment refetch counter."""
        trip_refetch_total.labels(reason=reason).inc()

    def change_pending(self, delta: int) -> None:
        """Track in-flight calls across all open trips."""
        sync_pending_calls.inc(delta)
