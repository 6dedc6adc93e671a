"""
Logging setup for the billing services.

structlog renders every event. Standard library logging is only the sink,
so SQLAlchemy and other library loggers end up in the same stream. Logs go
to stderr; stdout is reserved for the CLI's reports.
"""

import logging
import sys
from typing import Any

import structlog

SERVICE_NAME = "insurance-billing"

# Chatty at INFO once a root level is set
_QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def _add_service_name(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _processor_chain(json_output: bool, include_timestamp: bool) -> list[Any]:
    chain: list[Any] = [structlog.contextvars.merge_contextvars]
    if include_timestamp:
        chain.append(structlog.processors.TimeStamper(fmt="iso", utc=True))

    chain += [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        # Amounts are Decimal and ids are UUID; render both as plain strings
        chain += [_add_service_name, structlog.processors.JSONRenderer(default=str)]
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return chain


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    include_timestamp: bool = True,
) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render one JSON object per event instead of console lines
        include_timestamp: Prefix events with a UTC ISO timestamp

    Raises:
        ValueError: If the level name is unknown
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=_processor_chain(json_output, include_timestamp),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None, **context: Any) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, optionally bound to initial context values."""
    return structlog.get_logger(name, **context)
