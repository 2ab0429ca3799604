"""Framework adapters for the withdrawals core.

- http.py: FastAPI application exposing create and lookup over HTTP
"""

from idempotent_withdrawals.adapters.http import create_app

__all__ = ["create_app"]
