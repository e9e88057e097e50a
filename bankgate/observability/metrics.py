"""
Metrics Collection with Prometheus.

Counts remote bank calls, their latency, payment outcomes and reversals.
"""

import time
from typing import Callable

from prometheus_client import Counter, Histogram, Info

from bankgate.config import settings


class MetricLabels:
    """Standard metric label names."""

    DRIVER = "driver"
    OPERATION = "operation"
    OUTCOME = "outcome"
    PHASE = "phase"


class GatewayMetrics:
    """
    Centralized metrics for bank gateway drivers.

    - Remote calls (rate, duration, outcome)
    - Payment phases (purchase/verify success and failure)
    - Reversals (compensation attempts and whether they went through)
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        self.service_info = Info(
            "bankgate_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # Remote Call Metrics
        # ====================================================================
        self.remote_calls_total = Counter(
            "bankgate_remote_calls_total",
            "Total remote bank operations invoked",
            [MetricLabels.DRIVER, MetricLabels.OPERATION, MetricLabels.OUTCOME],
        )

        self.remote_call_duration_seconds = Histogram(
            "bankgate_remote_call_duration_seconds",
            "Remote bank operation duration in seconds",
            [MetricLabels.DRIVER, MetricLabels.OPERATION],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        # ====================================================================
        # Payment Metrics
        # ====================================================================
        self.payments_total = Counter(
            "bankgate_payments_total",
            "Payment phases by outcome",
            [MetricLabels.DRIVER, MetricLabels.PHASE, "success"],
        )

        self.reversals_total = Counter(
            "bankgate_reversals_total",
            "Reversal (compensation) attempts",
            [MetricLabels.DRIVER, "success"],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_remote_call(
        self, driver: str, operation: str, outcome: str, duration: float
    ) -> None:
        """Record remote call metrics."""
        if not settings.metrics_enabled:
            return
        self.remote_calls_total.labels(
            driver=driver, operation=operation, outcome=outcome
        ).inc()
        self.remote_call_duration_seconds.labels(driver=driver, operation=operation).observe(
            duration
        )

    def record_payment(self, driver: str, phase: str, success: bool) -> None:
        """Record a purchase/verify outcome."""
        if not settings.metrics_enabled:
            return
        self.payments_total.labels(driver=driver, phase=phase, success=str(success)).inc()

    def record_reversal(self, driver: str, success: bool) -> None:
        """Record a reversal attempt."""
        if not settings.metrics_enabled:
            return
        self.reversals_total.labels(driver=driver, success=str(success)).inc()


# Global metrics instance
metrics = GatewayMetrics()


class track_remote_call:
    """
    Context manager for timing a remote bank operation.

    Usage:
        with track_remote_call("sadad", "bpVerifyRequest") as tracker:
            response = await transport.call("bpVerifyRequest", payload)
            tracker.set_outcome("ok")
    """

    def __init__(self, driver: str, operation: str) -> None:
        self.driver = driver
        self.operation = operation
        self.outcome = "ok"
        self.start_time: float = 0.0

    def set_outcome(self, outcome: str) -> None:
        """Override the recorded outcome."""
        self.outcome = outcome

    def __enter__(self) -> "track_remote_call":
        """Start tracking."""
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Record metrics."""
        duration = time.perf_counter() - self.start_time
        if exc_type is not None and self.outcome == "ok":
            self.outcome = "error"
        metrics.record_remote_call(self.driver, self.operation, self.outcome, duration)


def get_metrics_handler() -> Callable[[], bytes]:
    """
    Get Prometheus metrics handler for the hosting application.

    Usage:
        handler = get_metrics_handler()
        body = handler()
    """
    from prometheus_client import REGISTRY, generate_latest

    def metrics_endpoint() -> bytes:
        return generate_latest(REGISTRY)

    return metrics_endpoint
