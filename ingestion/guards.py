"""
Cross-process guards around a sync run: the per-source rate limiter and the
per-source mutual exclusion lock. Both delegate the actual atomic operation
to the persistent store; no in-process state is relied upon.
"""

import hashlib
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from core.config import settings
from core.exceptions import AlreadyRunning, RateLimitExceeded
from ingestion.store.base import PersistentStore
from schemas.normalized import RateLimitDecision
import logging

logger = logging.getLogger(__name__)

LOCK_NAMESPACE = "grant_sync"


def lock_id_for(source: str) -> int:
    """Stable, process-independent 63-bit advisory lock id for a source."""
    digest = hashlib.sha256(f"{LOCK_NAMESPACE}:{source}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") & 0x7FFFFFFFFFFFFFFF


class RateLimiter:
    """
    Fixed-window request budget per source.

    Attributes:
        window_seconds: Window length (default: RATE_LIMIT_WINDOW_SECONDS)
        burst: Extra requests allowed above the limit (default: RATE_LIMIT_BURST)
        default_limit: Requests per window for sources without their own limit
    """

    def __init__(
        self,
        store: PersistentStore,
        window_seconds: Optional[int] = None,
        burst: Optional[int] = None,
        default_limit: Optional[int] = None
    ):
        self.store = store
        self.window_seconds = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS
        self.burst = burst if burst is not None else settings.RATE_LIMIT_BURST
        self.default_limit = default_limit or settings.RATE_LIMIT_DEFAULT_REQUESTS

    async def check_and_increment(self, source: str, limit: Optional[int] = None) -> RateLimitDecision:
        decision = await self.store.rate_limit_check_and_increment(
            source,
            self.window_seconds,
            limit or self.default_limit,
            self.burst
        )
        if not decision.allowed:
            logger.warning(
                f"Rate limit reached for {source}: {decision.requests_used} requests used, "
                f"retry after {decision.retry_after_seconds}s"
            )
        return decision

    async def acquire(self, source: str, limit: Optional[int] = None) -> RateLimitDecision:
        """Like check_and_increment, but raises RateLimitExceeded when denied."""
        decision = await self.check_and_increment(source, limit)
        if not decision.allowed:
            raise RateLimitExceeded(
                f"Rate limit exceeded for {source}",
                context={"source": source, "requests_used": decision.requests_used},
                retry_after_seconds=decision.retry_after_seconds
            )
        return decision


class MutualExclusionGuard:
    """
    At most one active sync per source across every worker process.

    Backed by a session-scoped advisory lock, so a crashed holder releases
    it when its database session ends.
    """

    def __init__(self, store: PersistentStore, timeout: Optional[float] = None):
        self.store = store
        self.timeout = timeout if timeout is not None else settings.SYNC_LOCK_TIMEOUT_SECONDS

    async def try_acquire(self, source: str, timeout: Optional[float] = None) -> bool:
        wait = self.timeout if timeout is None else timeout
        acquired = await self.store.try_advisory_lock(lock_id_for(source), wait)
        if acquired:
            logger.debug(f"Acquired sync lock for {source}")
        else:
            logger.info(f"Sync lock for {source} is held by another run")
        return acquired

    async def release(self, source: str) -> None:
        await self.store.unlock(lock_id_for(source))
        logger.debug(f"Released sync lock for {source}")

    @asynccontextmanager
    async def hold(self, source: str, timeout: Optional[float] = None) -> AsyncIterator[None]:
        """
        Hold the lock for the body of the block.

        Raises:
            AlreadyRunning: The lock could not be acquired within the timeout
        """
        if not await self.try_acquire(source, timeout):
            raise AlreadyRunning(
                f"A sync for {source} is already running",
                context={"source": source}
            )
        try:
            yield
        finally:
            await self.release(source)
