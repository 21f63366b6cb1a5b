"""Aggregation observability.

One structured summary log line per fan-out, plus prometheus counters for each
source outcome. Tracked per aggregation:
- sources called / succeeded / failed / skipped
- merged result count and whether it came from the cache
- end-to-end and per-source latency
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Optional

from observability.metrics import source_results_count

logger = logging.getLogger("experiences.metrics")


@dataclass
class SourceMetrics:
    """Metrics for a single source call."""
    source: str
    status: str  # ok, error, timeout, skipped
    result_count: int
    latency_ms: float
    error_message: Optional[str] = None


@dataclass
class AggregationMetrics:
    """Aggregated metrics for one fan-out."""
    operation: str = "list"
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    total_results: int = 0
    local_results: int = 0
    sources_called: int = 0
    sources_succeeded: int = 0
    sources_failed: int = 0
    sources_skipped: int = 0
    from_cache: bool = False
    total_latency_ms: float = 0.0
    source_metrics: List[SourceMetrics] = field(default_factory=list)

    def success_rate(self) -> float:
        if self.sources_called == 0:
            return 0.0
        return self.sources_succeeded / self.sources_called


class AggregationMetricsCollector:
    """Collects one AggregationMetrics per ``track_aggregation`` block.

    Each block gets its own metrics object, so concurrent aggregations on the
    same collector do not interfere.
    """

    @contextmanager
    def track_aggregation(self, operation: str = "list", start_date=None, end_date=None):
        metrics = AggregationMetrics(
            operation=operation,
            start_date=str(start_date) if start_date is not None else None,
            end_date=str(end_date) if end_date is not None else None,
        )
        started = time.time()
        try:
            yield metrics
        finally:
            metrics.total_latency_ms = (time.time() - started) * 1000
            self._log_metrics(metrics)

    def record_source(self, metrics: AggregationMetrics, source: str, status: str,
                      result_count: int, latency_ms: Optional[float],
                      error_message: Optional[str] = None):
        metrics.source_metrics.append(SourceMetrics(
            source=source,
            status=status,
            result_count=result_count,
            latency_ms=latency_ms or 0.0,
            error_message=error_message,
        ))
        if status == "skipped":
            metrics.sources_skipped += 1
            return
        metrics.sources_called += 1
        if status == "ok":
            metrics.sources_succeeded += 1
            source_results_count.labels(source=source).observe(result_count)
        else:
            metrics.sources_failed += 1

    def record_results(self, metrics: AggregationMetrics, total: int, local: int):
        metrics.total_results = total
        metrics.local_results = local

    def _log_metrics(self, m: AggregationMetrics):
        """Log the collected metrics in structured format."""
        log_data = {
            "event": "aggregation_complete",
            "operation": m.operation,
            "start_date": m.start_date,
            "end_date": m.end_date,
            "from_cache": m.from_cache,
            "results": {"total": m.total_results, "local": m.local_results},
            "sources": {
                "called": m.sources_called,
                "succeeded": m.sources_succeeded,
                "failed": m.sources_failed,
                "skipped": m.sources_skipped,
                "success_rate": round(m.success_rate(), 2),
                "details": [
                    {
                        "id": sm.source,
                        "status": sm.status,
                        "results": sm.result_count,
                        "latency_ms": round(sm.latency_ms, 1),
                    }
                    for sm in m.source_metrics
                ],
            },
            "latency_ms": round(m.total_latency_ms, 1),
        }

        if m.from_cache:
            logger.debug("Aggregation served from cache", extra=log_data)
        elif m.sources_failed == m.sources_called and m.sources_called > 0:
            logger.error("Aggregation failed - all sources failed", extra=log_data)
        elif m.sources_failed > 0:
            logger.warning("Aggregation completed with source failures", extra=log_data)
        else:
            logger.info("Aggregation completed successfully", extra=log_data)


_metrics_collector = AggregationMetricsCollector()


def get_metrics_collector() -> AggregationMetricsCollector:
    """Get the global metrics collector instance."""
    return _metrics_collector


def log_source_result(source: str, operation: str, status: str, result_count: int,
                      latency_ms: Optional[float] = None):
    """Log one source's outcome outside of a tracked aggregation."""
    log_data = {
        "event": "source_result",
        "source": source,
        "operation": operation,
        "status": status,
        "result_count": result_count,
        "latency_ms": round(latency_ms, 1) if latency_ms is not None else None,
    }
    if status == "ok":
        logger.debug(f"Source {source} {operation} ok", extra=log_data)
    else:
        logger.warning(f"Source {source} {operation} {status}", extra=log_data)
