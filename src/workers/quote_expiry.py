"""
Background Quote-Expiry Worker
==============================

Runs every ``QUOTE_SWEEP_INTERVAL_SECONDS`` (default 1 h).

Quotes are valid for seven days.  Expiry is enforced at read time when a
quote is converted to a booking; this worker only reclaims storage by
deleting expired quotes that no booking references.

Concurrency safety
------------------
* **Redis distributed lock** ensures only one instance sweeps per interval
  across multiple API processes.
* The delete is a single statement, so a quote booked concurrently is either
  referenced (and kept) or already gone.
"""

from __future__ import annotations

import asyncio
import logging

from src.config import settings
from src.domain.entities import utcnow
from src.infrastructure.database import async_session_factory
from src.infrastructure.locks import DistributedLock
from src.infrastructure.redis_client import get_redis
from src.infrastructure.repositories import QuoteRepository

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_expiry_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Quote expiry worker started (interval=%ds)",
        settings.quote_sweep_interval_seconds,
    )


async def stop_expiry_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Quote expiry worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: sweep, then sleep until the next interval or stop."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_expiry_cycle()
        except Exception:
            logger.exception("Unhandled error in quote expiry cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.quote_sweep_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass


async def run_expiry_cycle() -> int:
    """Execute one sweep.  Returns the number of quotes deleted."""
    redis = await get_redis()
    lock = DistributedLock(
        redis, "quote_expiry", ttl_seconds=max(60, settings.quote_sweep_interval_seconds)
    )

    if not await lock.acquire():
        logger.debug("Lock held by another worker - skipping sweep")
        return 0

    try:
        async with async_session_factory() as session:
            deleted = await QuoteRepository(session).delete_expired(utcnow())
            await session.commit()
    finally:
        await lock.release()

    if deleted:
        logger.info("Quote expiry sweep: %d expired quotes deleted", deleted)
    return deleted
