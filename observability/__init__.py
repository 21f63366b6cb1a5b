"""
Observability infrastructure for the Experience Aggregator.

Provides:
- Structured logging with correlation IDs
- Prometheus metrics for source calls and caches
"""

from .logging import correlation_id_context, get_correlation_id, setup_logging
from .metrics import (
    metrics_registry,
    source_call_duration_seconds,
    source_errors_total,
    source_results_count,
    experience_cache_requests_total,
)

__all__ = [
    "correlation_id_context",
    "get_correlation_id",
    "setup_logging",
    "metrics_registry",
    "source_call_duration_seconds",
    "source_errors_total",
    "source_results_count",
    "experience_cache_requests_total",
]
