"""Creation handler for idempotent withdrawals.

The handler validates input, consults the idempotency index and either
creates a new withdrawal or rejects the request. For one idempotency key the
sequence

    lookup -> create record -> bind key

runs under the index's per-key lock, so concurrent requests bearing the same
key produce exactly one withdrawal; the losers observe the binding and get
DuplicateRequestError.

Examples:
    Creating a withdrawal::

        from idempotent_withdrawals.core.creation import CreationHandler
        from idempotent_withdrawals.storage.memory import (
            MemoryIdempotencyIndex,
            MemoryRecordStore,
        )

        handler = CreationHandler(MemoryRecordStore(), MemoryIdempotencyIndex())
        withdrawal = await handler.create("key-123", 100.0, "acc-42")

    Retrying with the same key::

        try:
            await handler.create("key-123", 100.0, "acc-42")
        except DuplicateRequestError as e:
            existing_id = e.withdrawal_id
"""

import math
import time
import uuid
from collections.abc import Callable
from datetime import datetime

from idempotent_withdrawals.config import WithdrawalsConfig
from idempotent_withdrawals.exceptions import (
    DuplicateRequestError,
    InvalidAmountError,
    InvalidDestinationError,
    InvalidIdempotencyKeyError,
    MissingIdempotencyKeyError,
    StoreInconsistencyError,
    WithdrawalError,
)
from idempotent_withdrawals.models import Withdrawal, WithdrawalStatus, utc_now
from idempotent_withdrawals.observability.logging import get_logger
from idempotent_withdrawals.observability.metrics import (
    record_create_duration,
    record_created,
    record_rejection,
)
from idempotent_withdrawals.storage.base import IdempotencyIndex, RecordStore

logger = get_logger(__name__)


def new_withdrawal_id() -> str:
    """Generate a fresh withdrawal identifier (random UUID4)."""
    return str(uuid.uuid4())


def validate_create_input(
    idempotency_key: str | None,
    amount: float,
    destination: str | None,
    max_key_length: int = 255,
) -> tuple[str, float, str]:
    """Validate create input in order; the first failing check wins.

    Checks:
        1. Key present and non-empty, and not longer than ``max_key_length``
        2. Amount finite and greater than zero
        3. Destination non-empty after trimming

    Args:
        idempotency_key: Caller-supplied idempotency key
        amount: Requested amount
        destination: Requested destination
        max_key_length: Longest accepted key

    Returns:
        The stripped key, the amount as float, and the trimmed destination.

    Raises:
        MissingIdempotencyKeyError: Key absent or blank
        InvalidIdempotencyKeyError: Key too long
        InvalidAmountError: Amount not finite or not positive
        InvalidDestinationError: Destination blank
    """
    key = (idempotency_key or "").strip()
    if not key:
        raise MissingIdempotencyKeyError()
    if len(key) > max_key_length:
        raise InvalidIdempotencyKeyError(
            f"Idempotency key exceeds maximum length of {max_key_length} characters."
        )

    try:
        value = float(amount)
    except (TypeError, ValueError, OverflowError):
        raise InvalidAmountError() from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidAmountError()

    trimmed = (destination or "").strip()
    if not trimmed:
        raise InvalidDestinationError()

    return key, value, trimmed


class CreationHandler:
    """Creates withdrawals at most once per idempotency key.

    Attributes:
        records: Record store the withdrawals are written to
        index: Idempotency index binding keys to withdrawal ids
        config: Service configuration
    """

    def __init__(
        self,
        records: RecordStore,
        index: IdempotencyIndex,
        config: WithdrawalsConfig | None = None,
        id_factory: Callable[[], str] = new_withdrawal_id,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.records = records
        self.index = index
        self.config = config or WithdrawalsConfig()
        self._id_factory = id_factory
        self._clock = clock

    async def create(
        self,
        idempotency_key: str | None,
        amount: float,
        destination: str | None,
    ) -> Withdrawal:
        """Create a withdrawal for a new idempotency key.

        Args:
            idempotency_key: Caller-supplied key identifying the intent
            amount: Amount to withdraw
            destination: Where the funds go

        Returns:
            The created withdrawal, in PENDING status.

        Raises:
            MissingIdempotencyKeyError: Key absent or blank
            InvalidIdempotencyKeyError: Key too long
            InvalidAmountError: Amount not finite or not positive
            InvalidDestinationError: Destination blank
            DuplicateRequestError: Key already produced a withdrawal
            StoreInconsistencyError: Key bound to a missing withdrawal and
                the dangling key policy is "reject"
        """
        start_time = time.perf_counter()
        try:
            key, value, trimmed = validate_create_input(
                idempotency_key,
                amount,
                destination,
                max_key_length=self.config.max_key_length,
            )
            async with self.index.key_lock(key):
                return await self._create_locked(key, value, trimmed)
        except WithdrawalError as e:
            record_rejection(type(e).__name__)
            logger.info(
                "withdrawal.rejected",
                key=idempotency_key,
                reason=type(e).__name__,
            )
            raise
        finally:
            record_create_duration(time.perf_counter() - start_time)

    async def _create_locked(self, key: str, amount: float, destination: str) -> Withdrawal:
        """Lookup, create and bind; caller holds the key lock."""
        stale_id: str | None = None
        existing_id = await self.index.lookup(key)
        if existing_id is not None:
            if await self.records.get(existing_id) is not None:
                logger.info("withdrawal.duplicate", key=key, withdrawal_id=existing_id)
                raise DuplicateRequestError(key=key, withdrawal_id=existing_id)

            if self.config.dangling_key_policy == "reject":
                logger.error("withdrawal.dangling_key", key=key, withdrawal_id=existing_id)
                raise StoreInconsistencyError(key=key, withdrawal_id=existing_id)

            logger.warning(
                "withdrawal.dangling_key",
                key=key,
                withdrawal_id=existing_id,
                action="recreate",
            )
            stale_id = existing_id

        withdrawal = Withdrawal(
            id=self._id_factory(),
            amount=amount,
            destination=destination,
            status=WithdrawalStatus.PENDING,
            created_at=self._clock(),
        )
        await self.records.put(withdrawal)

        ttl = self.config.idempotency_ttl_seconds
        if stale_id is None:
            await self.index.bind(key, withdrawal.id, ttl_seconds=ttl)
        else:
            await self.index.rebind(key, stale_id, withdrawal.id, ttl_seconds=ttl)

        record_created()
        logger.info("withdrawal.created", key=key, withdrawal_id=withdrawal.id)
        return withdrawal
