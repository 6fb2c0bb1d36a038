"""
Prometheus metrics module for Charterbook.

Service timings come from the @measure_operation decorator; domain counters
are incremented by the services that own the events.
"""

from typing import Optional

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
    "charterbook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "charterbook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "charterbook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_transitions_total = Counter(
    "charterbook_booking_transitions_total",
    "Booking status transitions by source and target status",
    ["from_status", "to_status"],
    registry=REGISTRY,
)

bookings_expired_total = Counter(
    "charterbook_bookings_expired_total",
    "Bookings expired by the sweeper",
    registry=REGISTRY,
)

notifications_total = Counter(
    "charterbook_notifications_total",
    "Notification delivery attempts by template and outcome",
    ["template", "status"],  # sent | failed
    registry=REGISTRY,
)

job_lock_total = Counter(
    "charterbook_job_lock_total",
    "Scheduled job lock operations",
    ["action", "outcome"],
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
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'create_booking')
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

    @staticmethod
    def record_transition(from_status: str, to_status: str) -> None:
        booking_transitions_total.labels(from_status=from_status, to_status=to_status).inc()

    @staticmethod
    def record_expired(count: int) -> None:
        if count:
            bookings_expired_total.inc(count)

    @staticmethod
    def record_notification(template: str, status: str) -> None:
        notifications_total.labels(template=template, status=status).inc()

    @staticmethod
    def record_job_lock(action: str, outcome: str) -> None:
        job_lock_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def get_metrics() -> bytes:
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
