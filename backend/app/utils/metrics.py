"""Prometheus metrics for dispatched API requests."""

from prometheus_client import Counter, Histogram

# Request dispatch metrics
api_request_latency_ms = Histogram(
    "api_request_latency_ms",
    "API request latency in milliseconds",
    ["endpoint", "method"],
    buckets=[5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000],
)

api_requests_total = Counter(
    "api_requests_total",
    "Total dispatched API requests",
    ["endpoint", "method", "status"],
)

api_errors_total = Counter(
    "api_errors_total",
    "Total API requests answered with an error envelope",
    ["endpoint", "code"],
)


class PrometheusRequestMetrics:
    """Prometheus-based request metrics implementation."""

    def record_latency(self, endpoint: str, method: str, latency_ms: float) -> None:
        """Record request latency."""
        api_request_latency_ms.labels(endpoint=endpoint, method=method).observe(latency_ms)

    def inc_request(self, endpoint: str, method: str, status_code: int) -> None:
        """Increment request counter."""
        api_requests_total.labels(endpoint=endpoint, method=method, status=str(status_code)).inc()

    def inc_error(self, endpoint: str, code: str) -> None:
        """Increment error counter."""
        api_errors_total.labels(endpoint=endpoint, code=code).inc()
