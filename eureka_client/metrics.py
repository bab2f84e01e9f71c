"""
Prometheus metrics for Eureka client operations.
"""

from prometheus_client import Counter, Gauge, Histogram, REGISTRY


def _get_or_create_counter(name: str, description: str, labelnames=None):
    """Get existing counter or create new one to avoid duplicate registration errors"""
    try:
        return Counter(name, description, labelnames or [])
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


def _get_or_create_gauge(name: str, description: str, labelnames=None):
    """Get existing gauge or create new one to avoid duplicate registration errors"""
    try:
        return Gauge(name, description, labelnames or [])
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


def _get_or_create_histogram(name: str, description: str, labelnames=None, buckets=None):
    """Get existing histogram or create new one to avoid duplicate registration errors"""
    try:
        if buckets:
            return Histogram(name, description, labelnames or [], buckets=buckets)
        return Histogram(name, description, labelnames or [])
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


registry_calls = _get_or_create_counter(
    "eureka_client_registry_calls_total",
    "Total Eureka REST calls",
    ["operation", "status"],
)

registry_call_duration = _get_or_create_histogram(
    "eureka_client_registry_call_duration_seconds",
    "Eureka REST call latency",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

heartbeats_total = _get_or_create_counter(
    "eureka_client_heartbeats_total",
    "Heartbeats sent to Eureka by result",
    ["result"],
)

cached_applications = _get_or_create_gauge(
    "eureka_client_cached_applications",
    "Applications present in the local registry cache",
)
