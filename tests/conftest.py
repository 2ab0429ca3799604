"""
Pytest configuration and shared fixtures for idempotent_withdrawals tests.
"""

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from idempotent_withdrawals.adapters.http import create_app
from idempotent_withdrawals.config import WithdrawalsConfig
from idempotent_withdrawals.core.creation import CreationHandler
from idempotent_withdrawals.storage.memory import MemoryIdempotencyIndex, MemoryRecordStore


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()


@pytest.fixture
def records() -> MemoryRecordStore:
    """Create a fresh record store for each test."""
    return MemoryRecordStore()


@pytest.fixture
def index() -> MemoryIdempotencyIndex:
    """Create a fresh idempotency index for each test."""
    return MemoryIdempotencyIndex()


@pytest.fixture
def handler(records: MemoryRecordStore, index: MemoryIdempotencyIndex) -> CreationHandler:
    """Create a creation handler over the fresh stores."""
    return CreationHandler(records, index, WithdrawalsConfig())


@pytest.fixture
def app(records: MemoryRecordStore, index: MemoryIdempotencyIndex) -> FastAPI:
    """Create the withdrawals application over the fresh stores."""
    return create_app(records=records, index=index, config=WithdrawalsConfig())


@pytest_asyncio.fixture
async def http_client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    """Provide an httpx client talking to the app in-process."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


class FlakyTransport(httpx.AsyncBaseTransport):
    """Wraps a transport and loses the next N requests or responses."""

    def __init__(self, inner: httpx.AsyncBaseTransport) -> None:
        self.inner = inner
        self.drop_requests = 0
        self.drop_responses = 0
        self.calls = 0

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.drop_requests:
            self.drop_requests -= 1
            raise httpx.ConnectError("connection refused", request=request)
        response = await self.inner.handle_async_request(request)
        if self.drop_responses:
            self.drop_responses -= 1
            await response.aread()
            raise httpx.ReadError("connection reset", request=request)
        return response


@pytest.fixture
def flaky_transport(app: FastAPI) -> FlakyTransport:
    """Provide a transport to the app that can simulate network failures."""
    return FlakyTransport(httpx.ASGITransport(app=app))
