"""
Prometheus metrics for order and payment monitoring.

Tracks:
- Orders created and cleared
- Payment dispatches to the gateway
- Webhook callbacks received by the backend
- Payment retries
- Gateway settlements and their delivery outcome
- Stale pending orders swept by reconciliation
- HTTP request duration
"""
import time

from prometheus_client import Counter, Gauge, Histogram

# Order metrics
orders_created_total = Counter(
    "orders_created_total",
    "Total number of orders created",
)

orders_cleared_total = Counter(
    "orders_cleared_total",
    "Total number of orders removed by bulk clear",
)

order_total_amount = Histogram(
    "order_total_amount",
    "Order totals in currency units",
    buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000),
)

# Dispatch metrics
payment_dispatch_total = Counter(
    "payment_dispatch_total",
    "Payment submissions from the backend to the gateway",
    ["outcome"],  # accepted, failed
)

payment_dispatch_duration_seconds = Histogram(
    "payment_dispatch_duration_seconds",
    "Duration of the backend -> gateway payment submission",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

payment_retries_total = Counter(
    "payment_retries_total",
    "Manual payment retries accepted",
)

# Webhook metrics
webhook_events_processed_total = Counter(
    "webhook_events_processed_total",
    "Payment webhooks processed by the backend",
    ["status", "result"],  # result: applied, ignored, missing_order, invalid
)

# Gateway metrics
gateway_payments_accepted_total = Counter(
    "gateway_payments_accepted_total",
    "Payment requests accepted by the gateway simulator",
)

gateway_settlements_total = Counter(
    "gateway_settlements_total",
    "Settlements attempted by the gateway simulator",
    ["status", "delivery"],  # delivery: delivered, delivered_fallback, abandoned
)

# Reconciliation metrics
stale_orders_swept_total = Counter(
    "stale_orders_swept_total",
    "Pending orders moved to error by the reconciliation sweep",
)

reconciliation_last_run_timestamp = Gauge(
    "reconciliation_last_run_timestamp",
    "Timestamp of last reconciliation sweep",
)

# Push channel metrics
live_connections = Gauge(
    "live_connections",
    "Connected push channel observers",
)

# HTTP metrics
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "status"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_order_created(total: float) -> None:
        """Record a newly created order."""
        orders_created_total.inc()
        order_total_amount.observe(total)

    @staticmethod
    def record_orders_cleared(count: int) -> None:
        """Record a bulk clear."""
        orders_cleared_total.inc(count)

    @staticmethod
    def record_payment_dispatch(outcome: str, duration_seconds: float) -> None:
        """Record a payment submission to the gateway."""
        payment_dispatch_total.labels(outcome=outcome).inc()
        payment_dispatch_duration_seconds.observe(duration_seconds)

    @staticmethod
    def record_payment_retry() -> None:
        """Record an accepted payment retry."""
        payment_retries_total.inc()

    @staticmethod
    def record_webhook_event(status: str, result: str) -> None:
        """Record webhook event processing."""
        webhook_events_processed_total.labels(status=status, result=result).inc()

    @staticmethod
    def record_gateway_payment_accepted() -> None:
        """Record a payment accepted by the gateway."""
        gateway_payments_accepted_total.inc()

    @staticmethod
    def record_gateway_settlement(status: str, delivery: str) -> None:
        """Record a gateway settlement attempt."""
        gateway_settlements_total.labels(status=status, delivery=delivery).inc()

    @staticmethod
    def record_reconciliation_sweep(swept: int) -> None:
        """Record a reconciliation sweep."""
        if swept:
            stale_orders_swept_total.inc(swept)
        reconciliation_last_run_timestamp.set(time.time())

    @staticmethod
    def set_live_connections(count: int) -> None:
        """Set the number of connected observers."""
        live_connections.set(count)

    @staticmethod
    def record_http_request(method: str, status: int, duration_seconds: float) -> None:
        """Record an HTTP request."""
        http_request_duration_seconds.labels(method=method, status=str(status)).observe(
            duration_seconds
        )


# Export singleton instance
metrics = MetricsCollector()
