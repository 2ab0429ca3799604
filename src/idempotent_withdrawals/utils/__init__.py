"""Utility modules for the withdrawals service."""

from .headers import IDEMPOTENCY_HEADER, get_header_value, get_idempotency_key

__all__ = [
    "IDEMPOTENCY_HEADER",
    "get_header_value",
    "get_idempotency_key",
]
