"""Source executors with status instrumentation."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Sized, Tuple, TypeVar

from exceptions import CatalogUnavailableError
from experiences.models import SourceStatusSnapshot
from observability.metrics import source_call_duration_seconds, source_errors_total
from utils.security import redact_secrets_from_text

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _result_count(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, Sized):
        return len(value)
    return 1


async def run_source_with_status(
    source: str,
    operation: str,
    call: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: Optional[float] = 30.0,
    default: Any = None,
) -> Tuple[Any, SourceStatusSnapshot]:
    """Run one source call and report how it went.

    Never raises for ordinary failures: a timeout or any exception yields
    ``default`` together with a ``timeout``/``error`` snapshot. A
    ``CatalogUnavailableError`` propagates, since the local catalog is the
    system of record.
    """
    started = time.monotonic()
    try:
        result = await asyncio.wait_for(call(), timeout=timeout_seconds)
        elapsed = time.monotonic() - started
        source_call_duration_seconds.labels(source=source, operation=operation).observe(elapsed)
        status = SourceStatusSnapshot(
            source=source,
            operation=operation,
            status="ok",
            result_count=_result_count(result),
            latency_ms=int(elapsed * 1000),
        )
        return result, status
    except CatalogUnavailableError:
        raise
    except asyncio.TimeoutError:
        elapsed = time.monotonic() - started
        source_call_duration_seconds.labels(source=source, operation=operation).observe(elapsed)
        source_errors_total.labels(source=source, operation=operation, error_type="timeout").inc()
        logger.warning(
            f"[{source}] {operation} timed out after {timeout_seconds}s",
            extra={"source": source, "operation": operation, "latency_ms": int(elapsed * 1000)},
        )
        status = SourceStatusSnapshot(
            source=source,
            operation=operation,
            status="timeout",
            latency_ms=int(elapsed * 1000),
            message=f"{operation} timed out",
        )
        return default, status
    except Exception as e:
        elapsed = time.monotonic() - started
        error_msg = redact_secrets_from_text(str(e))
        source_call_duration_seconds.labels(source=source, operation=operation).observe(elapsed)
        source_errors_total.labels(
            source=source, operation=operation, error_type=type(e).__name__
        ).inc()
        logger.error(
            f"[{source}] {operation} error: {type(e).__name__}: {error_msg}",
            extra={"source": source, "operation": operation, "latency_ms": int(elapsed * 1000)},
        )
        status = SourceStatusSnapshot(
            source=source,
            operation=operation,
            status="error",
            latency_ms=int(elapsed * 1000),
            message=f"{operation} failed: {error_msg[:100]}",
        )
        return default, status


def skipped_status(source: str, operation: str, message: str = "Source unhealthy") -> SourceStatusSnapshot:
    return SourceStatusSnapshot(source=source, operation=operation, status="skipped", message=message)

