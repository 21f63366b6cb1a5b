"""
Prometheus metrics for the Experience Aggregator.

Covers source call latency and failures plus cache effectiveness.
"""

from prometheus_client import (
    Counter,
    Histogram,
    REGISTRY,
)

metrics_registry = REGISTRY

# Source call metrics (one series per source and operation)
source_call_duration_seconds = Histogram(
    "source_call_duration_seconds",
    "Experience source call duration in seconds",
    ["source", "operation"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=metrics_registry,
)

source_errors_total = Counter(
    "source_errors_total",
    "Total experience source failures",
    ["source", "operation", "error_type"],  # error_type: error, timeout
    registry=metrics_registry,
)

source_results_count = Histogram(
    "source_results_count",
    "Number of experiences returned by a source listing",
    ["source"],
    buckets=[0, 1, 5, 10, 20, 50, 100],
    registry=metrics_registry,
)

# Cache metrics
experience_cache_requests_total = Counter(
    "experience_cache_requests_total",
    "Cache lookups by cache name and outcome",
    ["cache", "outcome"],  # outcome: hit, miss
    registry=metrics_registry,
)
