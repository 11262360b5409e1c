"""
Structured logging for dbproxy.

Thin structlog setup shared by every module. Library code only calls
``get_logger(__name__)``; applications call ``configure_logging()`` once at
startup to pick JSON (log aggregation) or colored console output.

Events emitted by the package:

    database_connected               info     target, driver
    database_connect_failed          error    target, driver, error
    proxy_created                    debug    target, driver
    connection_discarded_after_fork  info     target, owner, current
    statement_executed               debug    query, rowcount
    transaction_retry                warning  attempt, delay_us, code
    transaction_retry_exhausted      error    attempts, code

Examples:
    >>> from dbproxy.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.info("event_happened", key="value")

Tags:
    logging, structlog, observability, dbproxy

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Store service name for metadata
_SERVICE_NAME = "dbproxy"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _elasticsearch_compatible(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Make field names Elasticsearch/ECS compatible."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "dbproxy",
    add_timestamp: bool = True,
    stream: Any = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
        stream: File object to write to (stdout when omitted)
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(_elasticsearch_compatible)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name)


__all__ = [
    "configure_logging",
    "get_logger",
]
