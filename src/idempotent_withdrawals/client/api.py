"""HTTP client for the withdrawals service.

Failures are classified into two kinds:

- NetworkError: any httpx transport failure (connect, read, write, timeout).
  The request may or may not have reached the server.
- ApiError: the server answered with a non-2xx status, or a 2xx whose body
  is not a withdrawal.

Examples:
    Talking to a running service::

        from idempotent_withdrawals.client.api import WithdrawalsApiClient
        from idempotent_withdrawals.config import ClientConfig

        async with WithdrawalsApiClient.from_config(ClientConfig()) as api:
            withdrawal = await api.create_withdrawal(100.0, "acc-42", "key-123")
            withdrawal = await api.get_withdrawal(withdrawal.id)

    Talking to an in-process app (tests)::

        import httpx

        transport = httpx.ASGITransport(app=app)
        http = httpx.AsyncClient(transport=transport, base_url="http://testserver")
        api = WithdrawalsApiClient(http)
"""

from types import TracebackType
from typing import Any

import httpx
from pydantic import ValidationError

from idempotent_withdrawals.config import ClientConfig
from idempotent_withdrawals.exceptions import ApiError, NetworkError
from idempotent_withdrawals.models import Withdrawal
from idempotent_withdrawals.observability.logging import get_logger
from idempotent_withdrawals.utils.headers import IDEMPOTENCY_HEADER

logger = get_logger(__name__)

DEFAULT_CREATE_ERROR = "Could not create the withdrawal."
DEFAULT_DUPLICATE_ERROR = (
    "A withdrawal with this idempotency key was already created. "
    "Please check the status of the last operation."
)
DEFAULT_LOOKUP_ERROR = "Could not fetch the withdrawal status."
NETWORK_ERROR_MESSAGE = "Network error. Check your connection and try again."


def _error_message(response: httpx.Response, default: str) -> str:
    """Extract ``message`` from an error body, falling back to ``default``."""
    try:
        data: Any = response.json()
    except ValueError:
        return default
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return default


def _parse_withdrawal(response: httpx.Response, default: str) -> Withdrawal:
    """Parse a ``{"withdrawal": {...}}`` success body.

    Raises:
        ApiError: The body is not JSON or does not hold a valid withdrawal
    """
    try:
        return Withdrawal.model_validate(response.json()["withdrawal"])
    except (ValueError, KeyError, TypeError, ValidationError) as e:
        logger.warning(
            "withdraw_client.malformed_response",
            status_code=response.status_code,
            error_type=type(e).__name__,
        )
        raise ApiError(default, response.status_code) from e


class WithdrawalsApiClient:
    """Async client for the create and lookup operations.

    Attributes:
        http: The underlying httpx client
        route_prefix: Path prefix the service mounts its routes under
    """

    def __init__(self, http: httpx.AsyncClient, route_prefix: str = "") -> None:
        self.http = http
        self.route_prefix = route_prefix

    @classmethod
    def from_config(cls, config: ClientConfig) -> "WithdrawalsApiClient":
        """Build a client with its own httpx.AsyncClient from configuration."""
        http = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.request_timeout_seconds,
        )
        return cls(http, route_prefix=config.route_prefix)

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self.http.request(method, f"{self.route_prefix}{path}", **kwargs)
        except httpx.TransportError as e:
            logger.warning(
                "withdraw_client.transport_error",
                method=method,
                path=path,
                error_type=type(e).__name__,
            )
            raise NetworkError(NETWORK_ERROR_MESSAGE, cause=e) from e

    async def create_withdrawal(
        self,
        amount: float,
        destination: str,
        idempotency_key: str,
    ) -> Withdrawal:
        """POST a new withdrawal under ``idempotency_key``.

        Raises:
            NetworkError: The request or its response was lost
            ApiError: The server rejected the request (409 for duplicates)
                or answered 2xx with an unreadable body
        """
        response = await self._send(
            "POST",
            "/withdrawals",
            json={"amount": amount, "destination": destination},
            headers={IDEMPOTENCY_HEADER: idempotency_key},
        )
        if response.status_code == 409:
            raise ApiError(_error_message(response, DEFAULT_DUPLICATE_ERROR), 409)
        if not response.is_success:
            raise ApiError(
                _error_message(response, DEFAULT_CREATE_ERROR),
                response.status_code,
            )
        return _parse_withdrawal(response, DEFAULT_CREATE_ERROR)

    async def get_withdrawal(self, withdrawal_id: str) -> Withdrawal:
        """GET the current state of a withdrawal.

        Raises:
            NetworkError: The request or its response was lost
            ApiError: The server answered with an error (404 if unknown)
        """
        response = await self._send("GET", f"/withdrawals/{withdrawal_id}")
        if not response.is_success:
            raise ApiError(
                _error_message(response, DEFAULT_LOOKUP_ERROR),
                response.status_code,
            )
        return _parse_withdrawal(response, DEFAULT_LOOKUP_ERROR)

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> "WithdrawalsApiClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
