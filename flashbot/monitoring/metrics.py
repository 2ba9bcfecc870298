"""Prometheus metrics for monitoring engine health and performance"""

from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST, start_http_server

# Detection Metrics
detection_cycles = Counter(
    'detection_cycles_total',
    'Total number of detection cycles by outcome',
    ['outcome']
)

detection_cycle_latency = Histogram(
    'detection_cycle_latency_seconds',
    'Detection cycle latency in seconds',
    buckets=(0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0)
)

opportunities_detected = Counter(
    'opportunities_detected_total',
    'Total number of opportunities detected',
    ['pair']
)

invalid_quotes = Counter(
    'invalid_quotes_total',
    'Total number of quotes rejected as invalid',
    ['venue']
)

quote_source_errors = Counter(
    'quote_source_errors_total',
    'Total number of quote source failures',
    ['error_type']
)

active_opportunities = Gauge(
    'active_opportunities',
    'Number of non-expired opportunities in the store'
)

opportunities_expired = Counter(
    'opportunities_expired_total',
    'Total number of opportunities removed by retention'
)

# Execution Metrics
executions_total = Counter(
    'executions_total',
    'Total number of paper executions by status',
    ['status']
)

# API Performance Metrics
api_requests_total = Counter(
    'api_requests_total',
    'Total number of API requests',
    ['endpoint', 'method', 'status']
)

api_request_latency = Histogram(
    'api_request_latency_seconds',
    'API request latency in seconds',
    ['endpoint', 'method'],
    buckets=(0.01, 0.05, 0.1, 0.2, 0.5, 1.0, 2.0)
)

api_errors = Counter(
    'api_errors_total',
    'Total number of API errors',
    ['endpoint', 'error_type']
)


def get_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format.

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest()


def get_content_type() -> str:
    """
    Get the content type for Prometheus metrics.

    Returns:
        Content type string
    """
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: int = 9090) -> None:
    """
    Start Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default 9090)
    """
    start_http_server(port)
