"""Observability utilities for the withdrawals service.

This package provides:
- Prometheus metrics for creation, lookup, cleanup and client outcomes
- Structured logging with contextual information
"""

from idempotent_withdrawals.observability.logging import configure_logging, get_logger
from idempotent_withdrawals.observability.metrics import (
    record_cleanup,
    record_client_submission,
    record_create_duration,
    record_created,
    record_lookup,
    record_rejection,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "record_cleanup",
    "record_client_submission",
    "record_create_duration",
    "record_created",
    "record_lookup",
    "record_rejection",
]
