"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Purchase metrics
ticket_purchases = Counter(
    'ticket_purchases_total',
    'Total ticket purchase attempts',
    ['status']  # success, sold_out, error
)

tickets_sold = Counter(
    'tickets_sold_total',
    'Tickets sold, by ticket type',
    ['ticket_type']
)

purchase_latency = Histogram(
    'ticket_purchase_latency_seconds',
    'Ticket purchase latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Gate metrics
ticket_validations = Counter(
    'ticket_validations_total',
    'Ticket scans processed at the gates',
    ['validation_type', 'result']  # accepted, rejected
)

# Database metrics
db_retries = Counter(
    'db_retry_attempts_total',
    'Database retry attempts due to version conflicts'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

refunds_processed = Counter(
    'refunds_processed_total',
    'Refunds processed',
    ['source', 'result']  # ticket/finance, approved/rejected/refunded
)

# Staff operations metrics
incidents_reported = Counter(
    'incidents_reported_total',
    'Incidents reported by staff',
    ['severity']
)

shifts_closed = Counter(
    'staff_shifts_closed_total',
    'Shifts closed out',
    ['status']  # completed, no_show, cancelled
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


def record_purchase(status: str):
    """Record purchase attempt. Status: success, sold_out, error"""
    ticket_purchases.labels(status=status).inc()


def record_validation(validation_type: str, accepted: bool):
    result = "accepted" if accepted else "rejected"
    ticket_validations.labels(validation_type=validation_type, result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
