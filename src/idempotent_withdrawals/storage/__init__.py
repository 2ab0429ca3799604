"""Storage backends for withdrawal records and idempotency bindings.

Available implementations:
    - MemoryRecordStore: in-memory withdrawal records
    - MemoryIdempotencyIndex: in-memory key bindings with per-key asyncio locks
"""

from idempotent_withdrawals.storage.base import IdempotencyIndex, RecordStore
from idempotent_withdrawals.storage.memory import MemoryIdempotencyIndex, MemoryRecordStore

__all__ = [
    "IdempotencyIndex",
    "RecordStore",
    "MemoryIdempotencyIndex",
    "MemoryRecordStore",
]
