"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking creation attempts',
    ['status']  # success, conflict, invalid, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking creation latency',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

booking_transitions = Counter(
    'booking_transitions_total',
    'Booking lifecycle transitions',
    ['target', 'result']  # result: applied, rejected
)

# Payment metrics
payment_settlements = Counter(
    'payment_settlements_total',
    'Payment settlement attempts',
    ['channel', 'outcome']  # channel: webhook, bank_transfer; outcome: succeeded, failed, noop, conflict
)

webhook_events = Counter(
    'webhook_events_total',
    'Payment gateway webhook deliveries',
    ['event_type', 'result']  # result: processed, ignored, rejected
)

# Audit metrics
audit_write_failures = Counter(
    'audit_write_failures_total',
    'Audit log entries that could not be written'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, conflict, invalid, error"""
    booking_attempts.labels(status=status).inc()


def record_transition(target: str, applied: bool):
    booking_transitions.labels(target=target, result="applied" if applied else "rejected").inc()


def record_settlement(channel: str, outcome: str):
    payment_settlements.labels(channel=channel, outcome=outcome).inc()


def record_webhook(event_type: str, result: str):
    webhook_events.labels(event_type=event_type, result=result).inc()


def record_audit_failure():
    audit_write_failures.inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
