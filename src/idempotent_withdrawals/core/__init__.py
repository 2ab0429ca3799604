"""Server-side core of the idempotent withdrawals service.

- Creation: validation and at-most-once creation per idempotency key
- Lookup: read-only access to withdrawals
- Cleanup: TTL-based eviction of idempotency bindings

The core is framework-agnostic; adapters.http exposes it over HTTP.
"""

from idempotent_withdrawals.core.creation import CreationHandler, validate_create_input
from idempotent_withdrawals.core.lookup import LookupHandler

__all__ = ["CreationHandler", "LookupHandler", "validate_create_input"]
