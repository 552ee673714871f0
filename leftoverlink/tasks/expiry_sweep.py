# leftoverlink/tasks/expiry_sweep.py
"""Persist "expired" for available listings whose expiry time has passed."""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from leftoverlink.repos.base import ListingStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def run_sweep_once(store: ListingStore, now: Optional[datetime] = None) -> int:
    # idempotent: already-expired listings no longer match
    n = await store.expire_due(now or _utcnow())
    if n:
        logger.info("expiry sweep: %d listing(s) expired", n)
    return n


async def run_sweep_loop(store: ListingStore, interval_seconds: float,
                         clock: Callable[[], datetime] = _utcnow) -> None:
    while True:
        try:
            await run_sweep_once(store, clock())
        except Exception:
            # transient store failure; the next run retries
            logger.exception("expiry sweep failed; retrying in %ss", interval_seconds)
        await asyncio.sleep(interval_seconds)
