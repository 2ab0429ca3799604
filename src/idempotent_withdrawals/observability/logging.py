"""structlog setup for the withdrawals service and its client.

Events use dotted names, grouped by the side that emits them:

- ``withdrawal.*``: the server handlers (created, duplicate, rejected,
  not_found, dangling_key, server_error)
- ``idempotency.cleanup.*``: the binding expiry sweep
- ``withdraw_client.*``: the HTTP client, request state machine and
  snapshot persistence

Server events carry the idempotency ``key`` and ``withdrawal_id`` so a
duplicate can be traced back to the request that first bound the key.
Amounts and destinations are never logged.

Examples:
    Configure logging::

        from idempotent_withdrawals.observability.logging import configure_logging

        configure_logging(level="INFO", json_output=True)

    A duplicate POST then logs::

        {
            "event": "withdrawal.duplicate",
            "key": "7f1c...",
            "withdrawal_id": "0f8b...",
            "timestamp": "2024-01-01T00:00:00.000000Z",
            "level": "info"
        }
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
) -> None:
    """Configure structured logging for the application.

    This should be called once at application startup.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, emit JSON logs; if False, use console format
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )

    processors: list[object] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,  # type: ignore[arg-type]
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper())),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ from the calling module)

    Returns:
        A structlog logger instance
    """
    return structlog.get_logger(name)
