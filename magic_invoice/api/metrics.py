"""Prometheus metrics for the invoice parser API.

Exposes key metrics for monitoring:
- Request counts by endpoint and status
- Request duration histograms
- Parse outcomes (model draft, fallback draft, recovered with warning, errors)
- Rate-limit denials

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST

# Request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Parse metrics
invoice_parse_requests_total = Counter(
    "invoice_parse_requests_total",
    "Total invoice parse requests",
    ["outcome"],  # model, fallback, warning, or the error class name
)

invoice_parse_duration_seconds = Histogram(
    "invoice_parse_duration_seconds",
    "Invoice parse duration in seconds (including the model call)",
    buckets=(0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
)

rate_limited_requests_total = Counter(
    "rate_limited_requests_total",
    "Total requests rejected by the rate limiter",
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
