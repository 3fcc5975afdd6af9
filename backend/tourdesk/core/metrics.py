"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Booking lifecycle metrics
booking_mutations = Counter(
    'booking_mutations_total',
    'Successful booking mutations',
    ['action']  # created, status_changed, assigned, tour_started, tour_completed, ...
)

booking_rejections = Counter(
    'booking_rejections_total',
    'Rejected booking mutations',
    ['operation', 'reason']  # reason: invalid_transition, conflict, validation, ...
)

# Payout metrics
payout_operations = Counter(
    'payout_operations_total',
    'Payout ledger operations',
    ['operation', 'result']  # create/mark_paid, success/duplicate/limit/conflict
)

payout_amount = Counter(
    'payout_amount_paid_total',
    'Total amount settled to guides'
)

# Revenue metrics
revenue_report_latency = Histogram(
    'revenue_report_latency_seconds',
    'Revenue report computation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_mutation(action: str):
    booking_mutations.labels(action=action).inc()


def record_booking_rejection(operation: str, reason: str):
    booking_rejections.labels(operation=operation, reason=reason).inc()


def record_payout_operation(operation: str, result: str):
    payout_operations.labels(operation=operation, result=result).inc()
