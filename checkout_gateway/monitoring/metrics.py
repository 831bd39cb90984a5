"""
Prometheus metrics for checkout gateway monitoring.

Tracks:
- PayPal API calls by operation and outcome
- PayPal API call duration
- Access token exchanges and cache hits
- Pricing quotes by currency and delivery tier
"""
from prometheus_client import Counter, Histogram

# PayPal API metrics
paypal_api_requests_total = Counter(
    "paypal_api_requests_total",
    "Total PayPal API requests",
    ["operation", "status"],  # operation: create_order, capture_order, order_status
)

paypal_api_errors_total = Counter(
    "paypal_api_errors_total",
    "Total PayPal API errors",
    ["operation", "error_code"],
)

paypal_api_duration_seconds = Histogram(
    "paypal_api_duration_seconds",
    "PayPal API call duration in seconds",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
)

# Token metrics
access_token_requests_total = Counter(
    "access_token_requests_total",
    "Access token lookups",
    ["source"],  # cache, exchange, failed
)

# Pricing metrics
pricing_quotes_total = Counter(
    "pricing_quotes_total",
    "Total pricing quotes computed",
    ["currency", "delivery_tier"],
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_paypal_api_call(operation: str, status: str, duration_seconds: float) -> None:
        """Record PayPal API call."""
        paypal_api_requests_total.labels(operation=operation, status=status).inc()
        paypal_api_duration_seconds.labels(operation=operation).observe(duration_seconds)

    @staticmethod
    def record_paypal_api_error(operation: str, error_code: str) -> None:
        """Record PayPal API error."""
        paypal_api_errors_total.labels(operation=operation, error_code=error_code).inc()

    @staticmethod
    def record_token_lookup(source: str) -> None:
        """Record where an access token came from."""
        access_token_requests_total.labels(source=source).inc()

    @staticmethod
    def record_pricing_quote(currency: str, delivery_tier: str) -> None:
        """Record a pricing quote."""
        pricing_quotes_total.labels(currency=currency, delivery_tier=delivery_tier).inc()


# Export singleton instance
metrics = MetricsCollector()
