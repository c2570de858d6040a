"""Structured logging for the query engine.

Events are snake_case names with key/value context. Loggers returned by
``query_logger`` carry a short ``query_id`` so that every event of one query
(failure, partition scheduling, result) can be correlated.
"""

from __future__ import annotations

import logging
import sys
import uuid
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

MAX_SQL_LENGTH = 500


def _truncate_sql(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    sql = event_dict.get("sql")
    if isinstance(sql, str) and len(sql) > MAX_SQL_LENGTH:
        event_dict["sql"] = sql[:MAX_SQL_LENGTH] + "..."
    return event_dict


def setup_logging(level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure structlog for the engine.

    Logs go to stderr so that result output on stdout stays clean.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: 'json' for machine-readable lines, 'console' for humans
    """
    log_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)

    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _truncate_sql,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None, **initial_context: Any) -> Any:
    """Get a structlog logger, optionally bound to ``initial_context``."""
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


def new_query_id() -> str:
    return uuid.uuid4().hex[:12]


def query_logger(logger: Any, query_id: str | None = None) -> Any:
    """Bind a query id (a fresh one unless given) onto ``logger``."""
    return logger.bind(query_id=query_id or new_query_id())
