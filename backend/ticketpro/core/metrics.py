"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking creation attempts',
    ['status']  # success, conflict, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking creation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_transitions = Counter(
    'booking_transitions_total',
    'Booking status transition attempts',
    ['target', 'result']  # confirmed/cancelled/expired, applied/invalid/expired/not_found
)

# Sweep metrics
sweep_runs = Counter(
    'expiry_sweep_runs_total',
    'Expiry sweep executions'
)

sweep_expired = Counter(
    'expiry_sweep_expired_total',
    'Bookings moved to expired by the sweep'
)

sweep_duration = Histogram(
    'expiry_sweep_duration_seconds',
    'Expiry sweep duration',
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

# Side-effect metrics
email_dispatch = Counter(
    'email_dispatch_total',
    'Outbound email dispatch attempts',
    ['template', 'result']  # sent, failed
)

notifications_delivered = Counter(
    'notifications_delivered_total',
    'In-app notifications delivered',
    ['type']
)

commission_credited = Counter(
    'commission_credited_total',
    'Commission records created on confirmation'
)

backup_runs = Counter(
    'backup_runs_total',
    'Backup export runs',
    ['status']  # completed, failed
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
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

# Convenience functions for instrumentation
def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, conflict, error"""
    booking_attempts.labels(status=status).inc()

def record_transition(target: str, result: str):
    """Record a status transition attempt."""
    booking_transitions.labels(target=target, result=result).inc()

def record_email_dispatch(template: str, sent: bool):
    result = "sent" if sent else "failed"
    email_dispatch.labels(template=template, result=result).inc()

def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
