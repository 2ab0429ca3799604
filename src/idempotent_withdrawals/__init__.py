"""
Idempotent withdrawal requests.

This package provides a withdrawals service that creates each withdrawal at
most once per idempotency key, and a client-side request state machine that
reuses keys on retry so a lost response never leads to a duplicate.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
