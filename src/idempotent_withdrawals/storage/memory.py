"""In-memory record store and idempotency index with asyncio concurrency control.

The memory implementations are suitable for:
    - Single-process deployments
    - Development and testing

Their lifetime is the lifetime of the object: nothing is shared through
module globals, and nothing survives a restart.

The one exception is the process-wide idempotency_bindings_active gauge.
Every change to an index sets it to that index's size, so it is only
meaningful with one MemoryIdempotencyIndex per process (create_app builds one
per application).

Thread Safety:
    - Each idempotency key gets its own asyncio.Lock while in use
    - A global lock protects the lock table
    - Lock entries are reference counted and dropped once no coroutine
      holds or waits on them

Examples:
    Serializing creation per key::

        index = MemoryIdempotencyIndex()
        records = MemoryRecordStore()

        async with index.key_lock("key-123"):
            if await index.lookup("key-123") is None:
                await records.put(withdrawal)
                await index.bind("key-123", withdrawal.id)
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from idempotent_withdrawals.exceptions import KeyAlreadyBoundError
from idempotent_withdrawals.models import IndexEntry, Withdrawal, utc_now
from idempotent_withdrawals.observability.metrics import set_active_bindings
from idempotent_withdrawals.storage.base import IdempotencyIndex, RecordStore


class MemoryRecordStore(RecordStore):
    """Dictionary-backed withdrawal record store."""

    def __init__(self) -> None:
        self._records: dict[str, Withdrawal] = {}

    async def put(self, record: Withdrawal) -> None:
        self._records[record.id] = record

    async def get(self, withdrawal_id: str) -> Withdrawal | None:
        return self._records.get(withdrawal_id)

    async def count(self) -> int:
        return len(self._records)


class _KeyLock:
    """A per-key lock plus the number of coroutines using it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class MemoryIdempotencyIndex(IdempotencyIndex):
    """In-memory idempotency index with per-key locks.

    Attributes:
        _entries: Dictionary mapping keys to IndexEntry objects.
        _locks: Dictionary mapping keys to their in-use lock entries.
        _global_lock: Lock protecting the _locks dictionary.
        _clock: Source of the current UTC time.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._entries: dict[str, IndexEntry] = {}
        self._locks: dict[str, _KeyLock] = {}
        self._global_lock = asyncio.Lock()
        self._clock = clock

    def _live_entry(self, key: str) -> IndexEntry | None:
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry

    def _new_entry(self, key: str, withdrawal_id: str, ttl_seconds: int | None) -> IndexEntry:
        now = self._clock()
        expires_at = now + timedelta(seconds=ttl_seconds) if ttl_seconds is not None else None
        return IndexEntry(
            key=key,
            withdrawal_id=withdrawal_id,
            bound_at=now,
            expires_at=expires_at,
        )

    async def lookup(self, key: str) -> str | None:
        entry = self._live_entry(key)
        return entry.withdrawal_id if entry is not None else None

    async def bind(
        self,
        key: str,
        withdrawal_id: str,
        ttl_seconds: int | None = None,
    ) -> IndexEntry:
        """Bind a key that is unbound (or whose binding has expired).

        Raises:
            KeyAlreadyBoundError: If the key holds a live binding.
        """
        existing = self._live_entry(key)
        if existing is not None:
            raise KeyAlreadyBoundError(key=key, withdrawal_id=existing.withdrawal_id)

        entry = self._new_entry(key, withdrawal_id, ttl_seconds)
        self._entries[key] = entry
        set_active_bindings(len(self._entries))
        return entry

    async def rebind(
        self,
        key: str,
        expected_id: str,
        withdrawal_id: str,
        ttl_seconds: int | None = None,
    ) -> IndexEntry:
        """Swap a binding from ``expected_id`` to ``withdrawal_id``.

        Raises:
            KeyAlreadyBoundError: If the key is unbound or bound elsewhere.
        """
        existing = self._live_entry(key)
        if existing is None or existing.withdrawal_id != expected_id:
            raise KeyAlreadyBoundError(
                key=key,
                withdrawal_id=existing.withdrawal_id if existing is not None else "",
            )

        entry = self._new_entry(key, withdrawal_id, ttl_seconds)
        self._entries[key] = entry
        set_active_bindings(len(self._entries))
        return entry

    @asynccontextmanager
    async def key_lock(self, key: str) -> AsyncIterator[None]:
        """Hold exclusive access to ``key`` for the duration of the block."""
        async with self._global_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyLock()
            entry.users += 1

        try:
            async with entry.lock:
                yield
        finally:
            async with self._global_lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]

    async def cleanup_expired(self) -> int:
        """Remove bindings whose expires_at has passed.

        Keys currently locked are skipped; they are being worked on and will
        be collected by a later run.

        Returns:
            The number of bindings removed.
        """
        now = self._clock()
        removed = 0
        async with self._global_lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                if key in self._locks:
                    continue
                del self._entries[key]
                removed += 1

        set_active_bindings(len(self._entries))
        return removed
