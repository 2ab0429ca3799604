"""Expiry sweep for idempotency keys that were bound with a TTL.

Withdrawal keys are bound forever by default, so a retried request is
rejected as a duplicate no matter how late it arrives. When
``WithdrawalsConfig.idempotency_ttl_seconds`` is set, each binding carries
an ``expires_at`` and ``create_app``'s lifespan starts this sweep every
``cleanup_interval_seconds``. Without a TTL the lifespan never starts it.

An expired key already reads as unbound on lookup; the sweep only drops the
stale IndexEntry objects so the index stops growing. Either way, a request
that reuses an evicted key creates a second withdrawal. Keys whose lock is
held by an in-flight creation are left for the next run.

A failed run is logged as ``idempotency.cleanup.failed`` and the loop
carries on. Each run that removes bindings increments
``idempotency_cleanup_bindings_removed_total``.

Examples:
    Running the sweep outside the HTTP app::

        from idempotent_withdrawals.core.cleanup import start_cleanup_task, stop_cleanup_task
        from idempotent_withdrawals.storage.memory import MemoryIdempotencyIndex

        index = MemoryIdempotencyIndex()
        task = await start_cleanup_task(index=index, interval_seconds=300)
        ...
        await stop_cleanup_task(task)
"""

import asyncio

from idempotent_withdrawals.observability.logging import get_logger
from idempotent_withdrawals.observability.metrics import record_cleanup
from idempotent_withdrawals.storage.base import IdempotencyIndex

logger = get_logger(__name__)


async def cleanup_loop(
    index: IdempotencyIndex,
    interval_seconds: int = 300,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Periodically remove expired bindings until ``stop_event`` is set.

    Args:
        index: Idempotency index to clean up
        interval_seconds: Time between cleanup runs (default 300s = 5 minutes)
        stop_event: Event to signal the loop to stop (optional)
    """
    if stop_event is None:
        stop_event = asyncio.Event()

    logger.info(
        "idempotency.cleanup.started",
        interval_seconds=interval_seconds,
    )

    while not stop_event.is_set():
        try:
            count = await index.cleanup_expired()
            record_cleanup(count)

            if count > 0:
                logger.info("idempotency.cleanup.completed", bindings_removed=count)
            else:
                logger.debug("idempotency.cleanup.completed", bindings_removed=0)

        except Exception as e:
            logger.error(
                "idempotency.cleanup.failed",
                error=str(e),
                error_type=type(e).__name__,
            )

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue

    logger.info("idempotency.cleanup.stopped")


async def start_cleanup_task(
    index: IdempotencyIndex,
    interval_seconds: int = 300,
) -> asyncio.Task[None]:
    """Start the cleanup loop as an asyncio Task.

    Args:
        index: Idempotency index to clean up
        interval_seconds: Time between cleanup runs

    Returns:
        The asyncio Task running the cleanup loop
    """
    stop_event = asyncio.Event()

    task = asyncio.create_task(
        cleanup_loop(
            index=index,
            interval_seconds=interval_seconds,
            stop_event=stop_event,
        )
    )

    task._stop_event = stop_event  # type: ignore[attr-defined]

    return task


async def stop_cleanup_task(task: asyncio.Task[None]) -> None:
    """Signal a cleanup task to stop and wait for it.

    Args:
        task: The cleanup task to stop (returned from start_cleanup_task)
    """
    stop_event: asyncio.Event | None = getattr(task, "_stop_event", None)

    if stop_event:
        stop_event.set()

    try:
        await asyncio.wait_for(task, timeout=5.0)
    except asyncio.TimeoutError:
        logger.warning("idempotency.cleanup.stop_timeout", message="Cleanup task did not stop in time")
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("idempotency.cleanup.cancelled")
