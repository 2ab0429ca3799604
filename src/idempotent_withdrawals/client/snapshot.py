"""Snapshot persistence for the client request state machine.

After every transition the client writes its resumable state (draft fields,
last withdrawal, idempotency key, request time) to one fixed storage slot.
On start it restores the snapshot if it is younger than the TTL, so a reload
or a dropped connection resumes with the same idempotency key instead of
minting a new one.

Unreadable or corrupt snapshots are treated as absent. Storage failures are
logged and never raised: losing a snapshot must not block the user.

Examples:
    File-backed snapshots::

        from idempotent_withdrawals.client.snapshot import (
            FileKeyValueStorage,
            SnapshotPersistence,
        )

        snapshots = SnapshotPersistence(FileKeyValueStorage("/var/lib/withdraw"))
        snapshots.save(state)
        snapshot = snapshots.load()  # None if missing, stale or corrupt
"""

import re
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from idempotent_withdrawals.config import ClientConfig
from idempotent_withdrawals.models import WithdrawSnapshot, WithdrawState, utc_now
from idempotent_withdrawals.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SLOT = "withdraw:last"
DEFAULT_TTL_SECONDS = 300


@runtime_checkable
class KeyValueStorage(Protocol):
    """Minimal string key-value storage, like a browser's session storage."""

    def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""
        ...

    def remove(self, key: str) -> None:
        """Remove ``key`` if present."""
        ...


class MemoryKeyValueStorage(KeyValueStorage):
    """Dictionary-backed key-value storage."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStorage(KeyValueStorage):
    """Key-value storage keeping one file per key under a directory.

    Key names are sanitized into file names; writes go through a temporary
    file and a rename so a crash never leaves a half-written value.
    """

    _UNSAFE = re.compile(r"[^A-Za-z0-9._-]")

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{self._UNSAFE.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class SnapshotPersistence:
    """Single-slot, TTL-aware snapshot store for client state.

    Attributes:
        storage: Backing key-value storage
        slot: Storage key of the snapshot
        ttl: Maximum snapshot age for it to be restored
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        slot: str = DEFAULT_SLOT,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.storage = storage
        self.slot = slot
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        clock: Callable[[], datetime] = utc_now,
    ) -> "SnapshotPersistence":
        """Build persistence from client configuration.

        Uses file storage when ``snapshot_dir`` is set, memory otherwise.
        """
        storage: KeyValueStorage
        if config.snapshot_dir:
            storage = FileKeyValueStorage(config.snapshot_dir)
        else:
            storage = MemoryKeyValueStorage()
        return cls(
            storage,
            slot=config.snapshot_slot,
            ttl_seconds=config.snapshot_ttl_seconds,
            clock=clock,
        )

    def save(self, state: WithdrawState) -> None:
        """Write the resumable part of ``state`` to the slot."""
        payload = WithdrawSnapshot.from_state(state).model_dump_json(by_alias=True)
        try:
            self.storage.set(self.slot, payload)
        except OSError as e:
            logger.warning("withdraw_client.snapshot.save_failed", slot=self.slot, error=str(e))

    def load(self) -> WithdrawSnapshot | None:
        """Return the stored snapshot if it is present, readable and fresh.

        Stale and corrupt snapshots are removed from the slot.
        """
        try:
            raw = self.storage.get(self.slot)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("withdraw_client.snapshot.load_failed", slot=self.slot, error=str(e))
            return None
        if raw is None:
            return None

        try:
            snapshot = WithdrawSnapshot.model_validate_json(raw)
        except ValidationError:
            logger.info("withdraw_client.snapshot.discarded", slot=self.slot, reason="corrupt")
            self.clear()
            return None

        if snapshot.last_request_at is None:
            self.clear()
            return None

        last_request_at = snapshot.last_request_at
        if last_request_at.tzinfo is None:
            last_request_at = last_request_at.replace(tzinfo=UTC)
        age = self._clock() - last_request_at
        if age > self.ttl:
            logger.info(
                "withdraw_client.snapshot.discarded",
                slot=self.slot,
                reason="expired",
                age_seconds=int(age.total_seconds()),
            )
            self.clear()
            return None

        return snapshot

    def clear(self) -> None:
        """Remove the snapshot slot."""
        try:
            self.storage.remove(self.slot)
        except OSError as e:
            logger.warning("withdraw_client.snapshot.clear_failed", slot=self.slot, error=str(e))
