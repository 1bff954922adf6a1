"""
PostgreSQL store tests.

Need a reachable database at TEST_DATABASE_URL; skipped otherwise.
"""

import asyncio
import uuid
from datetime import datetime

import pytest
from sqlalchemy import func, select

from core.exceptions import StoreError
from ingestion.engine import SyncEngine
from ingestion.guards import MutualExclusionGuard, RateLimiter
from ingestion.metrics import SyncMetrics
from ingestion.store.postgres_store import PostgresStore
from models.base import SyncRunStatus, SyncStrategy, SyncType
from models.grant import Grant, GrantKeyword
from models.sync_run import SyncRun
from schemas.normalized import (
    KeywordCreate,
    NormalizedGrant,
    NormalizedGrantData,
    ScheduleDefinition,
    SyncOptions,
)

pytestmark = pytest.mark.integration


def make_bundle(native_id: str = "HHS-2025-001", title: str = "Rural Health Outreach", keywords=()):
    return NormalizedGrantData(
        grant=NormalizedGrant(source_id="grants_gov", source_native_id=native_id, title=title),
        keywords=[KeywordCreate(keyword=word) for word in keywords],
    )


async def count(session_maker, statement) -> int:
    async with session_maker() as session:
        return (await session.execute(statement)).scalar_one()


@pytest.mark.asyncio
async def test_concurrent_upserts_create_one_row(pg_store, session_maker):
    bundle = make_bundle()

    outcomes = await asyncio.gather(*(pg_store.upsert_grant(bundle.grant) for _ in range(10)))

    assert len({grant_id for grant_id, _ in outcomes}) == 1
    assert sum(1 for _, created in outcomes if created) == 1
    assert await count(session_maker, select(func.count()).select_from(Grant)) == 1


@pytest.mark.asyncio
async def test_upsert_updates_fields(pg_store, session_maker):
    grant_id, created = await pg_store.upsert_grant(make_bundle().grant)
    same_id, created_again = await pg_store.upsert_grant(make_bundle(title="Rural Health Outreach 2025").grant)

    assert created and not created_again
    assert same_id == grant_id
    async with session_maker() as session:
        grant = await session.get(Grant, grant_id)
        assert grant.title == "Rural Health Outreach 2025"


@pytest.mark.asyncio
async def test_sub_entities_are_replaced(pg_store, session_maker):
    bundle = make_bundle(keywords=["rural", "health", "outreach"])
    grant_id, _ = await pg_store.upsert_grant(bundle.grant)
    await pg_store.replace_sub_entities(grant_id, bundle)

    await pg_store.replace_sub_entities(grant_id, make_bundle(keywords=["telehealth"]))

    async with session_maker() as session:
        rows = (await session.execute(select(GrantKeyword.keyword).where(GrantKeyword.grant_id == grant_id))).all()
    assert [row.keyword for row in rows] == ["telehealth"]


@pytest.mark.asyncio
async def test_checkpoints(pg_store):
    await pg_store.set_checkpoint("nih_reporter", "last_offset_2025", 500)
    await pg_store.set_checkpoint("nih_reporter", "last_offset_2025", 1000)
    await pg_store.set_checkpoint("nih_reporter", "last_offset_2024", 250)

    assert await pg_store.get_checkpoint("nih_reporter", "last_offset_2025") == 1000
    assert await pg_store.get_checkpoints("nih_reporter") == {"last_offset_2025": 1000, "last_offset_2024": 250}

    await pg_store.reset_checkpoints("nih_reporter")
    assert await pg_store.get_checkpoint("nih_reporter", "last_offset_2025", default=0) == 0


@pytest.mark.asyncio
async def test_rate_limit_is_atomic(pg_store):
    limiter = RateLimiter(pg_store, window_seconds=3600, burst=0, default_limit=5)

    decisions = await asyncio.gather(*(limiter.check_and_increment("sam_gov") for _ in range(8)))

    assert sum(1 for d in decisions if d.allowed) == 5
    assert all(d.retry_after_seconds > 0 for d in decisions if not d.allowed)


@pytest.mark.asyncio
async def test_advisory_lock_across_stores(pg_store, test_engine, session_maker):
    other = PostgresStore(session_maker, test_engine, lock_poll_interval=0.01)
    first = MutualExclusionGuard(pg_store, timeout=0)
    second = MutualExclusionGuard(other, timeout=0.05)

    assert await first.try_acquire("grants_gov")
    assert not await second.try_acquire("grants_gov")
    assert await second.try_acquire("nih_reporter")

    await first.release("grants_gov")
    assert await second.try_acquire("grants_gov")

    await second.release("grants_gov")
    await second.release("nih_reporter")


@pytest.mark.asyncio
async def test_advisory_lock_waits_within_one_store(pg_store):
    holder = MutualExclusionGuard(pg_store, timeout=0)
    waiter = MutualExclusionGuard(pg_store, timeout=2.0)
    assert await holder.try_acquire("openalex")

    async def release_later():
        await asyncio.sleep(0.1)
        await holder.release("openalex")

    releaser = asyncio.create_task(release_later())
    assert await waiter.try_acquire("openalex")
    await releaser
    await waiter.release("openalex")


@pytest.mark.asyncio
async def test_sync_run_transitions(pg_store):
    run_id = uuid.uuid4()
    await pg_store.insert_sync_run(run_id, "world_bank", SyncType.MANUAL, datetime.utcnow(), {})
    assert await pg_store.has_active_run("world_bank")

    await pg_store.update_sync_run(run_id, SyncRunStatus.IN_PROGRESS, records_fetched=100)
    await pg_store.update_sync_run(run_id, SyncRunStatus.COMPLETED, records_fetched=180, completed_at=datetime.utcnow())

    with pytest.raises(StoreError):
        await pg_store.update_sync_run(run_id, SyncRunStatus.FAILED)

    [summary] = await pg_store.recent_runs()
    assert summary.status == "completed"
    assert summary.records_fetched == 180
    assert not await pg_store.has_active_run("world_bank")


@pytest.mark.asyncio
async def test_orphaned_runs_are_failed(pg_store):
    for _ in range(2):
        await pg_store.insert_sync_run(uuid.uuid4(), "ukri_gateway", SyncType.SCHEDULED, datetime.utcnow())

    assert await pg_store.fail_orphaned_runs("ukri_gateway", "worker exited") == 2
    assert not await pg_store.has_active_run("ukri_gateway")


@pytest.mark.asyncio
async def test_schedules(pg_store):
    definition = ScheduleDefinition(
        source_id="grants_gov", schedule_name="default", cron_expression="0 */4 * * *",
        sync_strategy=SyncStrategy.FULL, filters={"oppStatuses": "posted"}
    )

    assert await pg_store.ensure_schedule(definition)
    assert not await pg_store.ensure_schedule(definition)

    [stored] = await pg_store.list_schedules(enabled_only=True)
    assert stored.job_id == "sync:grants_gov:default"
    assert stored.fingerprint() == definition.fingerprint()

    next_run = datetime(2030, 1, 1, 4, 0)
    await pg_store.update_schedule_next_run(stored.id, next_run)
    [reloaded] = await pg_store.list_schedules()
    assert reloaded.next_run_at == next_run
    assert reloaded.updated_at == stored.updated_at


@pytest.mark.asyncio
async def test_source_metrics(pg_store):
    now = datetime.utcnow()
    await pg_store.record_run_metrics("openalex", True, 10.0, now)
    await pg_store.record_run_metrics("openalex", False, 20.0, now, "boom")

    [snapshot] = await pg_store.list_source_metrics()
    assert (snapshot.total_runs, snapshot.successful_runs, snapshot.failed_runs) == (2, 1, 1)
    assert snapshot.consecutive_failures == 1
    assert snapshot.avg_duration_seconds == pytest.approx(15.0)
    assert snapshot.last_error_message == "boom"
    assert await pg_store.ping()


@pytest.mark.asyncio
async def test_engine_end_to_end(pg_store, session_maker, fake_adapter_cls, records_factory, notifier):
    records = records_factory(140)
    for index in (5, 17, 42, 63, 88):
        records[index]["bad"] = True
    adapter = fake_adapter_cls(records, source_id="grants_gov", page_size=100)
    engine = SyncEngine(
        pg_store,
        adapter_factory=lambda name: adapter,
        metrics=SyncMetrics(pg_store, notifier=notifier),
        page_retry_delay=0,
    )

    first = await engine.run("grants_gov", SyncOptions(full_sync=True))
    second = await engine.run("grants_gov", SyncOptions(full_sync=True))

    assert (first.status, first.records_fetched, first.records_created, first.records_failed) == (
        "completed", 140, 135, 5
    )
    assert (second.records_created, second.records_updated) == (0, 135)
    assert await count(session_maker, select(func.count()).select_from(Grant)) == 135
    assert await count(
        session_maker, select(func.count()).select_from(SyncRun).where(SyncRun.status == SyncRunStatus.COMPLETED)
    ) == 2
    assert await pg_store.get_checkpoints("grants_gov") == {}
