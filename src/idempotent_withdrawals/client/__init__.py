"""Client side of the idempotent request protocol.

- api: httpx client for the create and lookup operations
- machine: request state machine owning the idempotency key
- snapshot: single-slot, TTL-aware persistence of in-flight state
"""

from idempotent_withdrawals.client.api import WithdrawalsApiClient
from idempotent_withdrawals.client.machine import WithdrawalRequestMachine
from idempotent_withdrawals.client.snapshot import (
    FileKeyValueStorage,
    KeyValueStorage,
    MemoryKeyValueStorage,
    SnapshotPersistence,
)

__all__ = [
    "FileKeyValueStorage",
    "KeyValueStorage",
    "MemoryKeyValueStorage",
    "SnapshotPersistence",
    "WithdrawalRequestMachine",
    "WithdrawalsApiClient",
]
