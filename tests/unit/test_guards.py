"""
Unit tests for the rate limiter and the per-source lock
"""

import asyncio
import time
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from core.exceptions import AlreadyRunning, RateLimitExceeded
from ingestion.guards import MutualExclusionGuard, RateLimiter, lock_id_for
from ingestion.store.postgres_store import PostgresStore


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_concurrent_callers_never_exceed_limit(self, fake_store):
        limiter = RateLimiter(fake_store, window_seconds=3600, burst=0, default_limit=5)

        decisions = await asyncio.gather(*(limiter.check_and_increment("nsf_awards") for _ in range(8)))

        allowed = [d for d in decisions if d.allowed]
        denied = [d for d in decisions if not d.allowed]
        assert len(allowed) == 5
        assert len(denied) == 3
        assert all(d.retry_after_seconds > 0 for d in denied)

    @pytest.mark.asyncio
    async def test_burst_extends_the_budget(self, fake_store):
        limiter = RateLimiter(fake_store, window_seconds=60, burst=2, default_limit=3)

        decisions = [await limiter.check_and_increment("world_bank") for _ in range(6)]

        assert [d.allowed for d in decisions] == [True] * 5 + [False]

    @pytest.mark.asyncio
    async def test_sources_have_separate_budgets(self, fake_store):
        limiter = RateLimiter(fake_store, window_seconds=60, burst=0, default_limit=1)

        assert (await limiter.check_and_increment("a")).allowed
        assert (await limiter.check_and_increment("b")).allowed
        assert not (await limiter.check_and_increment("a")).allowed

    @pytest.mark.asyncio
    async def test_new_window_resets_the_count(self, fake_store):
        limiter = RateLimiter(fake_store, window_seconds=3600, burst=0, default_limit=1)
        fake_store.now = datetime(2025, 1, 1, 10, 59, 30)

        assert (await limiter.check_and_increment("sam_gov")).allowed
        denied = await limiter.check_and_increment("sam_gov")
        assert not denied.allowed
        assert denied.retry_after_seconds == 30

        fake_store.now += timedelta(seconds=31)
        assert (await limiter.check_and_increment("sam_gov")).allowed

    @pytest.mark.asyncio
    async def test_source_limit_overrides_default(self, fake_store):
        limiter = RateLimiter(fake_store, window_seconds=60, burst=0, default_limit=100)

        await limiter.acquire("sam_gov", limit=1)
        with pytest.raises(RateLimitExceeded) as exc_info:
            await limiter.acquire("sam_gov", limit=1)

        assert exc_info.value.retry_after_seconds >= 1


class TestMutualExclusionGuard:
    def test_lock_ids_are_stable_and_distinct(self):
        assert lock_id_for("grants_gov") == lock_id_for("grants_gov")
        assert lock_id_for("grants_gov") != lock_id_for("nih_reporter")
        assert 0 <= lock_id_for("grants_gov") < 2 ** 63

    @pytest.mark.asyncio
    async def test_second_acquire_fails_until_release(self, fake_store):
        guard = MutualExclusionGuard(fake_store, timeout=0)

        assert await guard.try_acquire("grants_gov")
        assert not await guard.try_acquire("grants_gov")
        assert await guard.try_acquire("nih_reporter")

        await guard.release("grants_gov")
        assert await guard.try_acquire("grants_gov")

    @pytest.mark.asyncio
    async def test_hold_raises_when_taken(self, fake_store):
        guard = MutualExclusionGuard(fake_store, timeout=0)

        async with guard.hold("usaspending"):
            with pytest.raises(AlreadyRunning):
                async with guard.hold("usaspending"):
                    pass

        assert fake_store.locks == set()

    @pytest.mark.asyncio
    async def test_waits_up_to_timeout_for_holder(self, fake_store):
        holder = MutualExclusionGuard(fake_store, timeout=0)
        waiter = MutualExclusionGuard(fake_store, timeout=1.0)
        assert await holder.try_acquire("world_bank")

        async def release_later():
            await asyncio.sleep(0.05)
            await holder.release("world_bank")

        releaser = asyncio.create_task(release_later())
        assert await waiter.try_acquire("world_bank")
        await releaser

        assert not await MutualExclusionGuard(fake_store, timeout=0.05).try_acquire("world_bank")


class LockServer:
    """Session-scoped advisory locks, shared by every connection it hands out."""

    def __init__(self):
        self.holders = {}

    async def connect(self):
        return LockConnection(self)


class LockConnection:
    def __init__(self, server: LockServer):
        self.server = server

    async def execute(self, statement, params):
        lock_id = params["lock_id"]
        if "pg_try_advisory_lock" in str(statement):
            holder = self.server.holders.setdefault(lock_id, self)
            return SimpleNamespace(scalar=lambda: holder is self)
        if self.server.holders.get(lock_id) is self:
            del self.server.holders[lock_id]
        return SimpleNamespace(scalar=lambda: True)

    async def commit(self):
        pass

    async def close(self):
        for lock_id, holder in list(self.server.holders.items()):
            if holder is self:
                del self.server.holders[lock_id]


class TestPostgresStoreLocks:
    """Lock polling in PostgresStore, against an in-memory lock server"""

    @pytest.fixture
    def lock_store(self):
        return PostgresStore(session_factory=None, engine=LockServer(), lock_poll_interval=0.01)

    @pytest.mark.asyncio
    async def test_same_store_waits_for_release(self, lock_store):
        holder = MutualExclusionGuard(lock_store, timeout=0)
        waiter = MutualExclusionGuard(lock_store, timeout=1.0)
        assert await holder.try_acquire("nsf_awards")

        async def release_later():
            await asyncio.sleep(0.1)
            await holder.release("nsf_awards")

        releaser = asyncio.create_task(release_later())
        started = time.monotonic()
        acquired = await waiter.try_acquire("nsf_awards")
        await releaser

        assert acquired
        assert time.monotonic() - started >= 0.05
        await waiter.release("nsf_awards")
        assert lock_store.engine.holders == {}

    @pytest.mark.asyncio
    async def test_same_store_gives_up_at_timeout(self, lock_store):
        assert await MutualExclusionGuard(lock_store, timeout=0).try_acquire("nsf_awards")

        started = time.monotonic()
        acquired = await MutualExclusionGuard(lock_store, timeout=0.1).try_acquire("nsf_awards")

        assert not acquired
        assert time.monotonic() - started >= 0.1
        assert len(lock_store.engine.holders) == 1
