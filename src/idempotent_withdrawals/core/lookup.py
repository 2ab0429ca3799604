"""Lookup handler for withdrawals.

A pure read against the record store: no locks, no mutation.
"""

from idempotent_withdrawals.exceptions import NotFoundError
from idempotent_withdrawals.models import Withdrawal
from idempotent_withdrawals.observability.logging import get_logger
from idempotent_withdrawals.observability.metrics import record_lookup
from idempotent_withdrawals.storage.base import RecordStore

logger = get_logger(__name__)


class LookupHandler:
    """Fetches withdrawals by identifier."""

    def __init__(self, records: RecordStore) -> None:
        self.records = records

    async def get(self, withdrawal_id: str) -> Withdrawal:
        """Return the withdrawal for ``withdrawal_id``.

        Raises:
            NotFoundError: If no withdrawal has this identifier.
        """
        withdrawal = await self.records.get(withdrawal_id)
        if withdrawal is None:
            record_lookup("not_found")
            logger.info("withdrawal.not_found", withdrawal_id=withdrawal_id)
            raise NotFoundError(withdrawal_id)

        record_lookup("found")
        return withdrawal
