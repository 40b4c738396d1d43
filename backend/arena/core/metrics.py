"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, conflict, retry, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Order metrics
orders_created = Counter(
    'orders_created_total',
    'Orders committed',
    ['payment_method']
)

order_rollbacks = Counter(
    'order_rollbacks_total',
    'Order transactions rolled back',
    ['reason']  # validation, transaction
)

# Payment metrics
checkouts_created = Counter(
    'checkouts_created_total',
    'Checkout sessions / payment intents created',
    ['flow', 'entity_type']
)

gateway_errors = Counter(
    'payment_gateway_errors_total',
    'Payment provider errors by category',
    ['category']
)

webhook_events = Counter(
    'webhook_events_total',
    'Webhook events received',
    ['event_type', 'result']  # applied, noop, duplicate, ignored, error
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
    """Record booking attempt. Status: success, conflict, retry, error"""
    booking_attempts.labels(status=status).inc()


def record_checkout(flow: str, entity_type: str):
    checkouts_created.labels(flow=flow, entity_type=entity_type).inc()


def record_gateway_error(category: str):
    gateway_errors.labels(category=category).inc()


def record_webhook(event_type: str, result: str):
    webhook_events.labels(event_type=event_type, result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
