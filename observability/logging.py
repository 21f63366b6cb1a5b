"""
Structured logging for the aggregator: correlation IDs, secret redaction and
an optional JSON format.

Source calls log with ``extra={"source": ..., "operation": ...}``; the JSON
formatter lifts those onto every record so one request can be followed across
the local catalog and each provider.
"""

import logging
import os
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

from pythonjsonlogger import jsonlogger

from utils.security import SENSITIVE_KEYS, redact_secrets_from_text, redact_sensitive

SERVICE_NAME = "experience-aggregator"

# Fields set through ``extra`` by adapters, executors and the aggregator
SOURCE_FIELDS = ("source", "operation", "status", "latency_ms", "result_count")

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "aiosqlite")

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


@contextmanager
def correlation_id_context(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation ID (generated when not given) for the enclosed block."""
    correlation_id = correlation_id or f"req-{uuid.uuid4().hex[:16]}"
    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)


class CorrelationIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "none"
        return True


class SensitiveDataFilter(logging.Filter):
    """Redacts credentials before a record is formatted.

    Covers dict-style args, sensitive attributes passed through ``extra`` and
    credentials echoed in the message text by upstream errors.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, dict):
            record.args = redact_sensitive(record.args)

        for key in list(record.__dict__):
            if key.lower() in SENSITIVE_KEYS:
                setattr(record, key, "[REDACTED]")

        if isinstance(record.msg, str):
            record.msg = redact_secrets_from_text(record.msg)

        return True


class ExperienceJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["correlation_id"] = getattr(record, "correlation_id", "none")
        log_record["service"] = SERVICE_NAME
        log_record["environment"] = os.getenv("ENVIRONMENT", "development")

        for field in SOURCE_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_record[field] = value

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return ExperienceJsonFormatter(
            "%(timestamp)s %(level)s %(logger)s %(correlation_id)s %(message)s",
            rename_fields={"timestamp": "@timestamp"},
        )
    return logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def setup_logging() -> None:
    """
    Install one stream handler on the root logger.

    Environment variables:
    - LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default INFO)
    - LOG_FORMAT: json or text (default json when ENVIRONMENT=production)
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    default_format = "json" if os.getenv("ENVIRONMENT") == "production" else "text"
    log_format = os.getenv("LOG_FORMAT", default_format).lower()

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(build_formatter(log_format))
    handler.addFilter(CorrelationIDFilter())
    handler.addFilter(SensitiveDataFilter())

    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
