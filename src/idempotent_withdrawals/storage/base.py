"""Storage protocols for withdrawal records and idempotency bindings.

This module defines the two interfaces the creation and lookup handlers
depend on. Both are passed into the handlers explicitly, so a deployment can
swap the in-memory implementations for durable ones without touching the
handlers.

Examples:
    Implementing a custom record store::

        from idempotent_withdrawals.models import Withdrawal

        class RedisRecordStore:
            async def put(self, record: Withdrawal) -> None:
                await self.redis.set(f"withdrawal:{record.id}", record.model_dump_json())

            async def get(self, withdrawal_id: str) -> Withdrawal | None:
                data = await self.redis.get(f"withdrawal:{withdrawal_id}")
                if data is None:
                    return None
                return Withdrawal.model_validate_json(data)

            async def count(self) -> int:
                ...

Atomicity Requirements:
    IdempotencyIndex implementations MUST guarantee:

    1. **Per-key exclusion**: while a coroutine holds key_lock(key), no other
       caller may hold key_lock for the same key. Lookup-create-bind for one
       key runs inside this lock.

    2. **Bind once**: bind() must refuse to overwrite a live binding and
       raise KeyAlreadyBoundError instead.

    3. **Compare-and-bind**: rebind() replaces a binding only if it still
       points at the expected withdrawal.

    4. **Expiration handling**: bindings past their expires_at are treated as
       unbound by lookup() and bind().
"""

from contextlib import AbstractAsyncContextManager
from typing import Protocol, runtime_checkable

from idempotent_withdrawals.models import IndexEntry, Withdrawal


@runtime_checkable
class RecordStore(Protocol):
    """Keyed storage of withdrawal records.

    put() overwrites only when the same id is written again, which a
    well-behaved identifier generator never causes for new records. There is
    no deletion.
    """

    async def put(self, record: Withdrawal) -> None:
        """Store a record under its id."""
        ...

    async def get(self, withdrawal_id: str) -> Withdrawal | None:
        """Return the record for ``withdrawal_id``, or None if unknown."""
        ...

    async def count(self) -> int:
        """Return the number of stored records."""
        ...


@runtime_checkable
class IdempotencyIndex(Protocol):
    """Mapping from idempotency key to the id of the withdrawal it produced.

    A key maps to at most one withdrawal. Bindings are never overwritten by
    bind(); they leave the index only through expiry, when a TTL is set.
    """

    async def lookup(self, key: str) -> str | None:
        """Return the withdrawal id bound to ``key``, or None if unbound."""
        ...

    async def bind(
        self,
        key: str,
        withdrawal_id: str,
        ttl_seconds: int | None = None,
    ) -> IndexEntry:
        """Bind ``key`` to ``withdrawal_id``.

        Raises:
            KeyAlreadyBoundError: If ``key`` already holds a live binding.
        """
        ...

    async def rebind(
        self,
        key: str,
        expected_id: str,
        withdrawal_id: str,
        ttl_seconds: int | None = None,
    ) -> IndexEntry:
        """Replace the binding of ``key`` if it currently points at ``expected_id``.

        Raises:
            KeyAlreadyBoundError: If ``key`` is bound to anything else.
        """
        ...

    def key_lock(self, key: str) -> AbstractAsyncContextManager[None]:
        """Return an async context manager holding exclusive access to ``key``."""
        ...

    async def cleanup_expired(self) -> int:
        """Remove expired bindings and return how many were removed."""
        ...
