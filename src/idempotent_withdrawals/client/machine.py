"""Client request state machine for withdrawal submissions.

One machine instance backs one withdrawal form session. It owns the
idempotency key of the logical request and decides when a key is reused and
when a new one is minted:

    idle --submit--> loading --ok--> success
                         |
                         +--NetworkError--> error/network  (key kept, retry allowed)
                         +--ApiError------> error/api      (key kept)

    error   --submit/retry--> loading   (same key)
    error   --clear_status--> idle      (key kept)
    success --refresh_status--> loading --> success

- A successful submit clears the key: the next submit is a new intent.
- A failed submit keeps the key: resubmitting the same intent can never
  create a second withdrawal.
- While loading, submit/retry/refresh are no-ops, so one machine has at most
  one request in flight.

Every transition is mirrored to snapshot persistence, when configured.

Examples:
    Submitting and retrying after a network failure::

        machine = WithdrawalRequestMachine(api, snapshots=snapshots)
        machine.resume()
        machine.set_amount("100")
        machine.set_destination("acc-42")
        machine.set_confirm(True)

        await machine.submit()
        if machine.state.error_kind is ErrorKind.NETWORK:
            await machine.retry()
"""

import math
import uuid
from collections.abc import Callable
from datetime import datetime

from idempotent_withdrawals.client.api import WithdrawalsApiClient
from idempotent_withdrawals.client.snapshot import SnapshotPersistence
from idempotent_withdrawals.exceptions import ApiError, NetworkError
from idempotent_withdrawals.models import (
    ErrorKind,
    RequestStatus,
    Withdrawal,
    WithdrawState,
    utc_now,
)
from idempotent_withdrawals.observability.logging import get_logger
from idempotent_withdrawals.observability.metrics import record_client_submission

logger = get_logger(__name__)


def new_idempotency_key() -> str:
    """Mint a fresh idempotency key (random UUID4)."""
    return str(uuid.uuid4())


def parse_amount(value: str) -> float | None:
    """Parse a draft amount; None unless it is a finite number > 0."""
    try:
        amount = float(value.strip())
    except ValueError:
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def is_form_valid(state: WithdrawState) -> bool:
    """Whether the draft in ``state`` may be submitted."""
    if parse_amount(state.amount) is None:
        return False
    if not state.destination.strip():
        return False
    return state.confirm


class WithdrawalRequestMachine:
    """Submission lifecycle and idempotency-key ownership for one form.

    Attributes:
        api: Client for the withdrawals service
        snapshots: Snapshot persistence, or None to keep state in memory only
    """

    def __init__(
        self,
        api: WithdrawalsApiClient,
        snapshots: SnapshotPersistence | None = None,
        key_factory: Callable[[], str] = new_idempotency_key,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.api = api
        self.snapshots = snapshots
        self._key_factory = key_factory
        self._clock = clock
        self._state = WithdrawState()

    @property
    def state(self) -> WithdrawState:
        """A copy of the current state."""
        return self._state.model_copy()

    @property
    def is_loading(self) -> bool:
        return self._state.status is RequestStatus.LOADING

    def is_form_valid(self) -> bool:
        return is_form_valid(self._state)

    def _transition(self, event: str, **changes: object) -> None:
        """Apply ``changes`` to the state, log, and persist a snapshot."""
        previous = self._state.status
        for name, value in changes.items():
            setattr(self._state, name, value)

        logger.debug(
            "withdraw_client.transition",
            transition=event,
            from_status=previous.value,
            to_status=self._state.status.value,
            error_kind=self._state.error_kind.value,
            key=self._state.last_idempotency_key,
        )
        if self.snapshots is not None:
            self.snapshots.save(self._state)

    # Draft fields

    def set_amount(self, value: str) -> None:
        if self.is_loading:
            return
        self._transition("set_amount", amount=value)

    def set_destination(self, value: str) -> None:
        if self.is_loading:
            return
        self._transition("set_destination", destination=value)

    def set_confirm(self, value: bool) -> None:
        if self.is_loading:
            return
        self._transition("set_confirm", confirm=value)

    # Lifecycle

    def resume(self) -> bool:
        """Restore the last resumable attempt from snapshot persistence.

        Returns:
            True if a fresh snapshot was restored.
        """
        if self.snapshots is None:
            return False
        snapshot = self.snapshots.load()
        if snapshot is None:
            return False

        self._state = WithdrawState(
            amount=snapshot.amount,
            destination=snapshot.destination,
            confirm=snapshot.confirm,
            last_withdrawal=snapshot.last_withdrawal,
            last_idempotency_key=snapshot.last_idempotency_key,
            last_request_at=snapshot.last_request_at,
        )
        logger.info(
            "withdraw_client.resumed",
            key=snapshot.last_idempotency_key,
            has_withdrawal=snapshot.last_withdrawal is not None,
        )
        return True

    async def submit(self) -> bool:
        """Submit the draft, reusing the retained key if there is one.

        Does nothing while a request is in flight or when the draft is
        invalid; no network call is made in either case.

        Returns:
            True if a request was sent.
        """
        if self.is_loading:
            record_client_submission("ignored")
            return False
        amount = parse_amount(self._state.amount)
        if amount is None or not self.is_form_valid():
            record_client_submission("invalid")
            return False

        key = self._state.last_idempotency_key or self._key_factory()
        await self._send(key, amount, self._state.destination.strip())
        return True

    async def retry(self) -> bool:
        """Resend the failed attempt with the same key.

        Only offered after a network failure, when the server state is
        unknown.

        Returns:
            True if a request was sent.
        """
        if self.is_loading:
            record_client_submission("ignored")
            return False
        key = self._state.last_idempotency_key
        if (
            self._state.status is not RequestStatus.ERROR
            or self._state.error_kind is not ErrorKind.NETWORK
            or key is None
        ):
            return False
        amount = parse_amount(self._state.amount)
        if amount is None or not self.is_form_valid():
            record_client_submission("invalid")
            return False

        await self._send(key, amount, self._state.destination.strip())
        return True

    async def _send(self, key: str, amount: float, destination: str) -> None:
        # Enter loading before the first await: a second submit scheduled
        # on the same loop must observe it.
        self._transition(
            "start",
            status=RequestStatus.LOADING,
            error_message=None,
            error_kind=ErrorKind.NONE,
            last_idempotency_key=key,
            last_request_at=self._clock(),
        )

        try:
            withdrawal = await self.api.create_withdrawal(amount, destination, key)
        except NetworkError as e:
            record_client_submission("network_error")
            self._fail(ErrorKind.NETWORK, e.message)
            return
        except ApiError as e:
            record_client_submission("api_error")
            self._fail(ErrorKind.API, e.message)
            return

        record_client_submission("success")
        self._succeed(withdrawal)

    async def refresh_status(self) -> bool:
        """Re-query the last known withdrawal.

        On success the cached withdrawal is replaced and the machine is in
        ``success``, unless a failed attempt still holds a key: then only the
        cached withdrawal changes. On failure the previous status and error
        kind are kept and only ``error_message`` changes.

        Returns:
            True if the withdrawal was refreshed.
        """
        withdrawal = self._state.last_withdrawal
        if withdrawal is None or self.is_loading:
            return False

        previous_status = self._state.status
        previous_kind = self._state.error_kind
        self._transition("refresh", status=RequestStatus.LOADING)

        try:
            updated = await self.api.get_withdrawal(withdrawal.id)
        except (NetworkError, ApiError) as e:
            self._transition(
                "refresh_failed",
                status=previous_status,
                error_kind=previous_kind,
                error_message=e.message,
            )
            return False

        if self._state.last_idempotency_key is not None:
            # A failed intent is still pending; keep its key and status.
            self._transition(
                "refresh_record",
                status=previous_status,
                error_kind=previous_kind,
                last_withdrawal=updated,
            )
        else:
            self._succeed(updated)
        return True

    def _succeed(self, withdrawal: Withdrawal) -> None:
        self._transition(
            "success",
            status=RequestStatus.SUCCESS,
            last_withdrawal=withdrawal,
            error_message=None,
            error_kind=ErrorKind.NONE,
            last_idempotency_key=None,
            last_request_at=None,
        )

    def _fail(self, kind: ErrorKind, message: str) -> None:
        self._transition(
            "failure",
            status=RequestStatus.ERROR,
            error_kind=kind,
            error_message=message,
        )

    def clear_status(self) -> None:
        """Abandon an error and go back to idle; the key is retained."""
        if self.is_loading:
            return
        self._transition(
            "clear",
            status=RequestStatus.IDLE,
            error_message=None,
            error_kind=ErrorKind.NONE,
        )

    def reset(self) -> None:
        """Discard all state, including the retained key and the snapshot."""
        self._state = WithdrawState()
        if self.snapshots is not None:
            self.snapshots.clear()
        logger.debug("withdraw_client.reset")
