"""
Prometheus metrics module for the auto-école backend.

Service operations are recorded by the ``@BaseService.measure_operation``
decorator; domain counters cover the booking, payment, sweep and outbox
flows. Everything lives in a private registry exposed at ``/metrics``.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "autoecole_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "autoecole_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "autoecole_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

hours_ledger_moves_total = Counter(
    "autoecole_hours_ledger_moves_total",
    "Hours balance movements by reason",
    ["reason"],  # reservation | cancellation_refund | purchase
    registry=REGISTRY,
)

payment_reconciliations_total = Counter(
    "autoecole_payment_reconciliations_total",
    "Checkout events by reconciliation outcome",
    ["status"],  # reconciled | duplicate | dropped
    registry=REGISTRY,
)

slots_swept_total = Counter(
    "autoecole_slots_swept_total",
    "Reserved slots flipped to passed by the sweep",
    registry=REGISTRY,
)

sweep_trigger_attempts_total = Counter(
    "autoecole_sweep_trigger_attempts_total",
    "HTTP calls made by the sweep trigger",
    ["outcome"],  # success | failure
    registry=REGISTRY,
)

outbox_relay_total = Counter(
    "autoecole_outbox_relay_total",
    "Outbox events by relay outcome",
    ["status", "event_type"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'SlotService')
            operation: Operation name (e.g., 'reserve_slot')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._invalidate_cache()

    # Domain helpers
    @staticmethod
    def inc_hours_move(reason: str) -> None:
        hours_ledger_moves_total.labels(reason=reason).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_reconciliation(status: str) -> None:
        payment_reconciliations_total.labels(status=status).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_slots_swept(count: int) -> None:
        if count > 0:
            slots_swept_total.inc(count)
            PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_sweep_trigger_attempt(outcome: str) -> None:
        sweep_trigger_attempts_total.labels(outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_outbox_outcome(event_type: str, status: str) -> None:
        """Record terminal outcome for outbox delivery."""
        outbox_relay_total.labels(status=status, event_type=event_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format (cached for a second)."""
        now = monotonic()
        with PrometheusMetrics._cache_lock:
            payload = PrometheusMetrics._cache_payload
            ts = PrometheusMetrics._cache_ts
            if payload is None or ts is None or (now - ts) > PrometheusMetrics._cache_ttl_seconds:
                payload = cast(bytes, generate_latest(REGISTRY))
                PrometheusMetrics._cache_payload = payload
                PrometheusMetrics._cache_ts = now
        return payload

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        """Invalidate cached metrics so next scrape refreshes."""
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None


# Singleton instance
prometheus_metrics = PrometheusMetrics()
