"""FastAPI application exposing the withdrawal operations over HTTP.

Routes (under ``config.route_prefix``):

    POST /withdrawals        Idempotency-Key header + {"amount", "destination"}
                             201 {"withdrawal": {...}}
                             400 missing key / malformed body
                             422 invalid amount / destination
                             409 key already used
    GET  /withdrawals/{id}   200 {"withdrawal": {...}} or 404

Every error body is ``{"message": "..."}``.

Examples:
    Serving with explicit stores::

        from idempotent_withdrawals.adapters.http import create_app
        from idempotent_withdrawals.config import WithdrawalsConfig
        from idempotent_withdrawals.storage.memory import (
            MemoryIdempotencyIndex,
            MemoryRecordStore,
        )

        app = create_app(
            records=MemoryRecordStore(),
            index=MemoryIdempotencyIndex(),
            config=WithdrawalsConfig(route_prefix="/api/v1"),
        )
"""

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from idempotent_withdrawals.config import WithdrawalsConfig
from idempotent_withdrawals.core.cleanup import start_cleanup_task, stop_cleanup_task
from idempotent_withdrawals.core.creation import CreationHandler
from idempotent_withdrawals.core.lookup import LookupHandler
from idempotent_withdrawals.exceptions import (
    MalformedBodyError,
    MissingIdempotencyKeyError,
    WithdrawalError,
)
from idempotent_withdrawals.models import CreateWithdrawalBody
from idempotent_withdrawals.observability.logging import get_logger
from idempotent_withdrawals.observability.metrics import record_rejection
from idempotent_withdrawals.storage.base import IdempotencyIndex, RecordStore
from idempotent_withdrawals.storage.memory import MemoryIdempotencyIndex, MemoryRecordStore
from idempotent_withdrawals.utils.headers import get_idempotency_key

logger = get_logger(__name__)


async def parse_create_body(request: Request) -> CreateWithdrawalBody:
    """Parse the create request body.

    Raises:
        MalformedBodyError: If the body is empty, not JSON, or not an object.
    """
    raw = await request.body()
    if not raw:
        raise MalformedBodyError()

    try:
        payload: Any = json.loads(raw)
    except ValueError:
        raise MalformedBodyError() from None

    if not isinstance(payload, dict):
        raise MalformedBodyError()

    try:
        return CreateWithdrawalBody.model_validate(payload)
    except ValidationError:
        raise MalformedBodyError() from None


async def withdrawal_error_handler(request: Request, exc: WithdrawalError) -> JSONResponse:
    """Render a WithdrawalError as ``{"message": ...}`` with its status code."""
    if exc.status_code >= 500:
        logger.error(
            "withdrawal.server_error",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


def create_app(
    records: RecordStore | None = None,
    index: IdempotencyIndex | None = None,
    config: WithdrawalsConfig | None = None,
) -> FastAPI:
    """Build the withdrawals application around explicit stores.

    Args:
        records: Record store (a fresh MemoryRecordStore if omitted)
        index: Idempotency index (a fresh MemoryIdempotencyIndex if omitted)
        config: Service configuration (defaults if omitted)

    Returns:
        A FastAPI application. Its lifespan runs the binding cleanup task
        when ``config.idempotency_ttl_seconds`` is set.
    """
    config = config or WithdrawalsConfig()
    records = records if records is not None else MemoryRecordStore()
    index = index if index is not None else MemoryIdempotencyIndex()

    creation = CreationHandler(records, index, config)
    lookup = LookupHandler(records)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        task = None
        if config.idempotency_ttl_seconds is not None:
            task = await start_cleanup_task(index, config.cleanup_interval_seconds)
        try:
            yield
        finally:
            if task is not None:
                await stop_cleanup_task(task)

    app = FastAPI(
        title="Idempotent Withdrawals",
        description="Create withdrawals at most once per Idempotency-Key and poll their status",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.records = records
    app.state.index = index
    app.state.config = config
    app.add_exception_handler(WithdrawalError, withdrawal_error_handler)  # type: ignore[arg-type]

    router = APIRouter(prefix=config.route_prefix)

    @router.post("/withdrawals", status_code=201)
    async def create_withdrawal(request: Request) -> JSONResponse:
        """Create a withdrawal (idempotent per Idempotency-Key)."""
        key = get_idempotency_key(request.headers)
        try:
            if key is None:
                raise MissingIdempotencyKeyError()
            body = await parse_create_body(request)
        except WithdrawalError as e:
            record_rejection(type(e).__name__)
            logger.info("withdrawal.rejected", key=key, reason=type(e).__name__)
            raise

        withdrawal = await creation.create(key, body.amount, body.destination)
        return JSONResponse(status_code=201, content={"withdrawal": withdrawal.to_wire()})

    @router.get("/withdrawals/{withdrawal_id}")
    async def get_withdrawal(withdrawal_id: str) -> JSONResponse:
        """Return the current state of a withdrawal."""
        withdrawal = await lookup.get(withdrawal_id)
        return JSONResponse(status_code=200, content={"withdrawal": withdrawal.to_wire()})

    app.include_router(router)
    return app
