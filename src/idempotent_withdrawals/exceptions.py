"""Custom exceptions for the idempotent withdrawals service.

This module defines the exception hierarchy used on both sides of the
idempotent request protocol. Server-side errors carry the HTTP status code
they map to, so the HTTP adapter can turn any of them into a
``{"message": ...}`` response with a single exception handler. Client-side
errors separate transport failures from server-reported rejections, because
only the former may be retried with the same idempotency key.

Examples:
    Handling a duplicate request::

        from idempotent_withdrawals.exceptions import DuplicateRequestError

        try:
            withdrawal = await handler.create(key, amount, destination)
        except DuplicateRequestError as e:
            logger.info("withdrawal.duplicate", key=e.key)
            return JSONResponse(status_code=e.status_code, content={"message": e.message})

    Classifying a client failure::

        from idempotent_withdrawals.exceptions import ApiError, NetworkError

        try:
            withdrawal = await api.create_withdrawal(100.0, "acc-1", key)
        except NetworkError:
            # Server state unknown, retry with the same key
            ...
        except ApiError as e:
            # Server answered, do not mint a new key
            ...
"""


class WithdrawalError(Exception):
    """Base exception for all server-side withdrawal errors.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code this error maps to.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class MissingIdempotencyKeyError(WithdrawalError):
    """The request carried no idempotency key, or an empty one."""

    status_code = 400

    def __init__(self, message: str = "Missing Idempotency-Key header.") -> None:
        super().__init__(message)


class InvalidIdempotencyKeyError(WithdrawalError):
    """The idempotency key is present but unusable (e.g. too long)."""

    status_code = 400


class MalformedBodyError(WithdrawalError):
    """The request body is missing, not JSON, or not a JSON object."""

    status_code = 400

    def __init__(self, message: str = "Malformed request body.") -> None:
        super().__init__(message)


class InvalidAmountError(WithdrawalError):
    """The amount is not a finite number greater than zero."""

    status_code = 422

    def __init__(self, message: str = "Amount must be a number greater than 0.") -> None:
        super().__init__(message)


class InvalidDestinationError(WithdrawalError):
    """The destination is empty after trimming."""

    status_code = 422

    def __init__(self, message: str = "Destination is required.") -> None:
        super().__init__(message)


class DuplicateRequestError(WithdrawalError):
    """The idempotency key is already bound to an existing withdrawal.

    The caller must not resubmit. It should poll the existing withdrawal
    through the lookup operation instead.

    Attributes:
        message: Human-readable error description.
        key: The idempotency key that was reused.
        withdrawal_id: Identifier of the withdrawal the key is bound to.
    """

    status_code = 409

    def __init__(self, key: str, withdrawal_id: str, message: str | None = None) -> None:
        """Initialize the duplicate request error.

        Args:
            key: The idempotency key that was reused.
            withdrawal_id: Identifier of the withdrawal the key is bound to.
            message: Optional override for the default message.
        """
        super().__init__(
            message
            or "A withdrawal with this idempotency key was already created. "
            "Refresh its status instead of submitting again."
        )
        self.key = key
        self.withdrawal_id = withdrawal_id


class NotFoundError(WithdrawalError):
    """No withdrawal exists for the requested identifier."""

    status_code = 404

    def __init__(self, withdrawal_id: str) -> None:
        super().__init__("Withdrawal not found.")
        self.withdrawal_id = withdrawal_id


class StoreInconsistencyError(WithdrawalError):
    """An idempotency binding points at a withdrawal the record store lacks.

    Raised only when the service is configured to reject dangling bindings
    instead of recreating the withdrawal.

    Attributes:
        key: The idempotency key with the dangling binding.
        withdrawal_id: The identifier the binding points at.
    """

    status_code = 500

    def __init__(self, key: str, withdrawal_id: str) -> None:
        super().__init__(
            "Idempotency key is bound to a withdrawal that no longer exists."
        )
        self.key = key
        self.withdrawal_id = withdrawal_id


class KeyAlreadyBoundError(WithdrawalError):
    """A caller tried to bind an idempotency key that already holds a binding.

    This is a programming error: the creation handler binds each key exactly
    once, under the key's lock, right after writing the record.

    Attributes:
        key: The idempotency key.
        withdrawal_id: The identifier the key is currently bound to.
    """

    status_code = 500

    def __init__(self, key: str, withdrawal_id: str) -> None:
        super().__init__(f"Idempotency key {key!r} is already bound")
        self.key = key
        self.withdrawal_id = withdrawal_id


class ClientError(Exception):
    """Base exception for errors observed by the withdrawals client.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NetworkError(ClientError):
    """The request did not reach the server, or no response came back.

    The server state is unknown, so this is the only failure that may be
    retried with the same idempotency key.

    Attributes:
        message: Human-readable error description.
        cause: The underlying transport exception.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ApiError(ClientError):
    """The server answered with an error response.

    Attributes:
        message: Message reported by the server (or a default).
        status_code: HTTP status code of the response.
    """

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_duplicate(self) -> bool:
        """Whether the server rejected the request as a duplicate."""
        return self.status_code == 409
