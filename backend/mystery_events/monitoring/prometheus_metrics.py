"""
Prometheus metrics for the Mystery Events backend.

Service timings come from ``@BaseService.measure_operation``; domain counters
are incremented by the booking and voucher services.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "mystery_events_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "mystery_events_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "mystery_events_errors_total",
    "Total number of service errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

bookings_created_total = Counter(
    "mystery_events_bookings_created_total",
    "Bookings created at checkout",
    ["payment_method"],
    registry=REGISTRY,
)

voucher_redemptions_total = Counter(
    "mystery_events_voucher_redemptions_total",
    "Voucher redemptions applied to bookings",
    registry=REGISTRY,
)

notifications_total = Counter(
    "mystery_events_notifications_total",
    "Notification email outcomes",
    ["kind", "status"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade so callers don't touch metric objects directly."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(duration)
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def inc_booking_created(payment_method: str) -> None:
        bookings_created_total.labels(payment_method=payment_method).inc()

    @staticmethod
    def inc_voucher_redemption() -> None:
        voucher_redemptions_total.inc()

    @staticmethod
    def record_notification(kind: str, sent: bool) -> None:
        notifications_total.labels(kind=kind, status="sent" if sent else "failed").inc()

    @staticmethod
    def get_metrics() -> bytes:
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
