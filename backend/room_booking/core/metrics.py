"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

availability_checks = Counter(
    'availability_checks_total',
    'Availability checks against a single resource',
    ['result']  # available, conflict
)

booking_writes = Counter(
    'booking_writes_total',
    'Booking write attempts',
    ['operation', 'outcome']  # single/series/update/bulk_update/bulk_delete/cancel, success/conflict/error
)

recurrence_generation_latency = Histogram(
    'recurrence_generation_seconds',
    'Time spent expanding a recurrence pattern',
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05]
)

occurrences_generated = Counter(
    'recurrence_occurrences_generated_total',
    'Occurrences emitted by the recurrence generator'
)

series_created = Counter(
    'recurring_series_created_total',
    'Recurring series persisted'
)

notification_dispatches = Counter(
    'notification_dispatches_total',
    'Consolidated notification dispatches',
    ['result']  # sent, skipped, failed
)

cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_availability_check(available: bool):
    availability_checks.labels(result="available" if available else "conflict").inc()


def record_booking_write(operation: str, outcome: str):
    """Record booking write. Outcome: success, conflict, error"""
    booking_writes.labels(operation=operation, outcome=outcome).inc()


def record_notification(result: str):
    """Record notification dispatch. Result: sent, skipped, failed"""
    notification_dispatches.labels(result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
