"""Core type definitions and models for idempotent withdrawals.

This module provides the data structures shared by the server-side core
(withdrawal records, idempotency index entries, request bodies) and the
client-side request state machine (request state and persisted snapshots).

Examples:
    Creating a withdrawal record::

        from datetime import UTC, datetime
        from idempotent_withdrawals.models import Withdrawal, WithdrawalStatus

        withdrawal = Withdrawal(
            id="0f8b1c1e-2f0a-4a47-9a57-0d3c0f6a5c11",
            amount=100.0,
            destination="acc-42",
            status=WithdrawalStatus.PENDING,
            created_at=datetime.now(UTC),
        )

    Serializing for the wire::

        withdrawal.to_wire()
        # {'id': '...', 'amount': 100.0, 'destination': 'acc-42',
        #  'status': 'pending', 'createdAt': '2024-01-01T00:00:00Z'}
"""

import math
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


class WithdrawalStatus(str, Enum):
    """Lifecycle status of a withdrawal.

    Only PENDING is ever assigned by this service. The remaining transitions
    belong to the process that executes transfers.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class RequestStatus(str, Enum):
    """Submission lifecycle of the client request state machine."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Classification of the last client-side failure.

    Attributes:
        NONE: No failure recorded.
        API: The server answered with an error (including duplicates).
        NETWORK: The request or its response was lost in transit.
    """

    NONE = "none"
    API = "api"
    NETWORK = "network"


class Withdrawal(BaseModel):
    """A withdrawal record as stored by the server and returned to clients.

    Records are immutable. Status changes made by an external process are
    written back as a new record under the same ``id``.

    Attributes:
        id: Opaque server-generated identifier.
        amount: Positive, finite withdrawal amount.
        destination: Trimmed, non-empty destination.
        status: Current lifecycle status.
        created_at: Creation timestamp, serialized as ``createdAt``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Server-generated identifier")
    amount: float = Field(..., gt=0, allow_inf_nan=False, description="Withdrawal amount")
    destination: str = Field(..., min_length=1, description="Withdrawal destination")
    status: WithdrawalStatus = Field(
        default=WithdrawalStatus.PENDING,
        description="Lifecycle status",
    )
    created_at: datetime = Field(
        ...,
        alias="createdAt",
        description="Timestamp when the withdrawal was created",
        examples=["2024-01-01T10:30:00Z"],
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON shape used on the wire."""
        return self.model_dump(mode="json", by_alias=True)


class IndexEntry(BaseModel):
    """Binding of an idempotency key to the withdrawal it produced.

    Attributes:
        key: The idempotency key supplied by the caller.
        withdrawal_id: Identifier of the withdrawal created for the key.
        bound_at: When the binding was made.
        expires_at: When the binding may be evicted, or None to keep it forever.
    """

    key: str = Field(..., min_length=1)
    withdrawal_id: str = Field(..., min_length=1)
    bound_at: datetime
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """Return True if the binding has a deadline and it has passed."""
        return self.expires_at is not None and self.expires_at <= now


class CreateWithdrawalBody(BaseModel):
    """Body of a create-withdrawal request.

    Field values are coerced rather than rejected so that value validation
    stays with the creation handler and maps to 422 responses. Only a body
    that is not an object at all fails to parse.
    """

    amount: float = math.nan
    destination: str = ""

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> float:
        """Coerce the amount to a float, using NaN for anything non-numeric.

        Example:
            >>> CreateWithdrawalBody(amount="12.5").amount
            12.5
            >>> math.isnan(CreateWithdrawalBody(amount=True).amount)
            True
        """
        if isinstance(v, bool) or v is None:
            return math.nan
        if isinstance(v, (int, float)):
            try:
                return float(v)
            except OverflowError:
                # Integers beyond float range
                return math.inf if v > 0 else -math.inf
        if isinstance(v, str):
            try:
                return float(v.strip()) if v.strip() else math.nan
            except ValueError:
                return math.nan
        return math.nan

    @field_validator("destination", mode="before")
    @classmethod
    def coerce_destination(cls, v: Any) -> str:
        """Coerce the destination to a string; missing or null becomes empty."""
        if v is None:
            return ""
        if isinstance(v, str):
            return v
        if isinstance(v, (dict, list)):
            return ""
        return str(v)


class WithdrawState(BaseModel):
    """State held by one client request state machine.

    Attributes:
        amount: Draft amount as typed by the user.
        destination: Draft destination as typed by the user.
        confirm: Whether the user ticked the confirmation box.
        status: Submission lifecycle status.
        error_message: Message of the last failure, if any.
        error_kind: Classification of the last failure.
        last_withdrawal: Last withdrawal observed from the server.
        last_idempotency_key: Key of the in-flight or last failed attempt.
        last_request_at: When the last attempt started.
    """

    model_config = ConfigDict(validate_assignment=True)

    amount: str = ""
    destination: str = ""
    confirm: bool = False
    status: RequestStatus = RequestStatus.IDLE
    error_message: str | None = None
    error_kind: ErrorKind = ErrorKind.NONE
    last_withdrawal: Withdrawal | None = None
    last_idempotency_key: str | None = None
    last_request_at: datetime | None = None


class WithdrawSnapshot(BaseModel):
    """Persisted copy of the resumable part of the client state."""

    amount: str = ""
    destination: str = ""
    confirm: bool = False
    last_withdrawal: Withdrawal | None = None
    last_idempotency_key: str | None = None
    last_request_at: datetime | None = None

    @classmethod
    def from_state(cls, state: WithdrawState) -> "WithdrawSnapshot":
        """Capture the resumable fields of a client state."""
        return cls(
            amount=state.amount,
            destination=state.destination,
            confirm=state.confirm,
            last_withdrawal=state.last_withdrawal,
            last_idempotency_key=state.last_idempotency_key,
            last_request_at=state.last_request_at,
        )
