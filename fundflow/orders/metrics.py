"""
Prometheus Metrics for order locks.

Tracks:
- Lock acquisitions and releases
- Busy rejections (retried or exhausted)
- Locks force-cleared by the expired-lock sweep
- How long locks are held
"""

from prometheus_client import Counter, Histogram

# Singleton metrics instance
_metrics: "OrderLockMetrics | None" = None


class OrderLockMetrics:
    def __init__(self):
        self.acquisitions_total = Counter(
            "fundflow_order_lock_acquisitions_total",
            "Total successful order lock acquisitions",
        )

        self.busy_total = Counter(
            "fundflow_order_lock_busy_total",
            "Order lock attempts that found the order already locked",
            ["outcome"],  # retry, exhausted
        )

        self.releases_total = Counter(
            "fundflow_order_lock_releases_total",
            "Order lock releases",
            ["status"],  # released, lost, error
        )

        self.expired_cleared_total = Counter(
            "fundflow_order_lock_expired_cleared_total",
            "Expired order locks cleared by the sweep",
        )

        self.hold_duration_seconds = Histogram(
            "fundflow_order_lock_hold_duration_seconds",
            "Time an order lock was held",
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, 120.0, 600.0],
        )

    def track_acquired(self) -> None:
        self.acquisitions_total.inc()

    def track_busy(self, *, will_retry: bool) -> None:
        self.busy_total.labels(outcome="retry" if will_retry else "exhausted").inc()

    def track_released(self, *, status: str, held_seconds: float) -> None:
        self.releases_total.labels(status=status).inc()
        self.hold_duration_seconds.observe(held_seconds)

    def track_expired_cleared(self, count: int) -> None:
        if count > 0:
            self.expired_cleared_total.inc(count)


def get_lock_metrics() -> OrderLockMetrics:
    """Get or create the singleton metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = OrderLockMetrics()
    return _metrics
