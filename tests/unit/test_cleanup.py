"""Unit tests for the binding cleanup background task."""

import asyncio

import pytest

from idempotent_withdrawals.core.cleanup import (
    cleanup_loop,
    start_cleanup_task,
    stop_cleanup_task,
)
from idempotent_withdrawals.storage.memory import MemoryIdempotencyIndex


class CountingIndex(MemoryIdempotencyIndex):
    """Index that counts cleanup runs and can be made to fail."""

    def __init__(self, fail: bool = False) -> None:
        super().__init__()
        self.runs = 0
        self.fail = fail

    async def cleanup_expired(self) -> int:
        self.runs += 1
        if self.fail:
            raise RuntimeError("storage unavailable")
        return await super().cleanup_expired()


@pytest.mark.asyncio
async def test_loop_exits_when_stop_event_set_before_start():
    index = CountingIndex()
    stop_event = asyncio.Event()
    stop_event.set()

    await asyncio.wait_for(cleanup_loop(index, interval_seconds=1, stop_event=stop_event), 1.0)

    assert index.runs == 0


@pytest.mark.asyncio
async def test_task_runs_cleanup_and_stops():
    index = CountingIndex()
    task = await start_cleanup_task(index, interval_seconds=1)

    for _ in range(50):
        if index.runs:
            break
        await asyncio.sleep(0.01)

    await stop_cleanup_task(task)

    assert index.runs >= 1
    assert task.done()


@pytest.mark.asyncio
async def test_removes_expired_bindings(clock):
    index = MemoryIdempotencyIndex(clock=clock)
    await index.bind("key-1", "wd-1", ttl_seconds=1)
    clock.advance(5)

    task = await start_cleanup_task(index, interval_seconds=1)
    for _ in range(50):
        if "key-1" not in index._entries:
            break
        await asyncio.sleep(0.01)
    await stop_cleanup_task(task)

    assert "key-1" not in index._entries


@pytest.mark.asyncio
async def test_failed_run_does_not_stop_the_loop():
    index = CountingIndex(fail=True)
    task = await start_cleanup_task(index, interval_seconds=1)

    for _ in range(50):
        if index.runs:
            break
        await asyncio.sleep(0.01)

    assert not task.done()
    await stop_cleanup_task(task)
    assert index.runs >= 1
