"""
PostgreSQL implementation of PersistentStore (SQLAlchemy async + asyncpg)

Atomicity:
- Grants: INSERT ... ON CONFLICT (source_id, source_native_id) DO UPDATE;
  the unique index settles racing inserts and the loser becomes an update
- Rate limits: one conditional INSERT ... ON CONFLICT DO UPDATE ... RETURNING
- Locks: session-scoped pg_try_advisory_lock on a connection held for the run
"""

import asyncio
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update, delete, text, literal_column
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, async_sessionmaker

from core.config import settings
from core.exceptions import StoreError, UpsertError, CheckpointError
from ingestion.store.base import PersistentStore
from models.base import SyncRunStatus, SyncType, SYNC_RUN_TRANSITIONS
from models.checkpoint import SyncCheckpoint
from models.grant import (
    Grant, GrantDetails, GrantCategory, GrantKeyword,
    GrantEligibility, GrantLocation, GrantContact,
)
from models.rate_limit import RateLimitWindow
from models.schedule import SyncSchedule
from models.source_metrics import SourceMetrics
from models.sync_run import SyncRun
from schemas.normalized import (
    NormalizedGrant,
    NormalizedGrantData,
    RateLimitDecision,
    ScheduleDefinition,
    SourceMetricsSnapshot,
    SyncRunSummary,
)
import logging

logger = logging.getLogger(__name__)

NATURAL_KEY = ("source_id", "source_native_id")
ACTIVE_STATUSES = (SyncRunStatus.STARTED, SyncRunStatus.IN_PROGRESS)

# (model, bundle attribute) for the one-to-many sub-entities
SUB_ENTITY_TABLES = (
    (GrantCategory, "categories"),
    (GrantKeyword, "keywords"),
    (GrantEligibility, "eligibility"),
    (GrantLocation, "locations"),
    (GrantContact, "contacts"),
)


def window_start_for(now: datetime, window_seconds: int) -> datetime:
    """Start of the fixed window containing `now` (naive UTC)."""
    epoch = int(now.replace(tzinfo=timezone.utc).timestamp())
    start = epoch - epoch % window_seconds
    return datetime.fromtimestamp(start, tz=timezone.utc).replace(tzinfo=None)


class PostgresStore(PersistentStore):
    """
    Persistent store backed by PostgreSQL.

    Each operation opens its own short session so the engine never holds a
    transaction open across an outbound HTTP call. Advisory locks are the
    exception: each one pins a dedicated connection until unlock().
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        engine: AsyncEngine,
        lock_poll_interval: Optional[float] = None
    ):
        self.session_factory = session_factory
        self.engine = engine
        self.lock_poll_interval = (
            lock_poll_interval if lock_poll_interval is not None
            else settings.SYNC_LOCK_POLL_INTERVAL_SECONDS
        )
        self._lock_connections: Dict[int, AsyncConnection] = {}

    # ========================================================================
    # Grants
    # ========================================================================

    async def upsert_grant(self, grant: NormalizedGrant) -> Tuple[int, bool]:
        now = datetime.utcnow()
        values = {
            "source_id": grant.source_id,
            "source_native_id": grant.source_native_id,
            **grant.to_fields(),
            "updated_at": now,
        }

        stmt = insert(Grant).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(NATURAL_KEY),
            set_={
                column: stmt.excluded[column]
                for column in values
                if column not in NATURAL_KEY
            }
        ).returning(Grant.id, literal_column("(xmax = 0)").label("inserted"))

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                row = result.one()
                await session.commit()
        except SQLAlchemyError as e:
            raise UpsertError(
                "Grant upsert failed",
                context={
                    "operation": "UPSERT",
                    "table_name": Grant.__tablename__,
                    "source": grant.source_id,
                    "source_native_id": grant.source_native_id
                },
                original_exception=e
            )

        return row.id, bool(row.inserted)

    async def replace_sub_entities(self, grant_id: int, bundle: NormalizedGrantData) -> None:
        """Delete-and-reinsert owned rows in one transaction; details are upserted."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    for model, attribute in SUB_ENTITY_TABLES:
                        await session.execute(delete(model).where(model.grant_id == grant_id))
                        rows = [
                            {"grant_id": grant_id, **entity.model_dump()}
                            for entity in getattr(bundle, attribute)
                        ]
                        if rows:
                            await session.execute(insert(model), rows)

                    if bundle.details is None:
                        await session.execute(delete(GrantDetails).where(GrantDetails.grant_id == grant_id))
                    else:
                        detail_values = bundle.details.model_dump()
                        stmt = insert(GrantDetails).values(
                            grant_id=grant_id, updated_at=datetime.utcnow(), **detail_values
                        )
                        stmt = stmt.on_conflict_do_update(
                            index_elements=["grant_id"],
                            set_={
                                **{column: stmt.excluded[column] for column in detail_values},
                                "updated_at": stmt.excluded.updated_at,
                            }
                        )
                        await session.execute(stmt)
        except SQLAlchemyError as e:
            raise UpsertError(
                "Sub-entity replacement failed",
                context={
                    "operation": "REPLACE",
                    "grant_id": grant_id,
                    "source": bundle.grant.source_id,
                    "source_native_id": bundle.grant.source_native_id
                },
                original_exception=e
            )

    # ========================================================================
    # Checkpoints
    # ========================================================================

    async def get_checkpoint(self, source: str, key: str, default: Any = None) -> Any:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(SyncCheckpoint.state_value).where(
                        SyncCheckpoint.source_id == source,
                        SyncCheckpoint.state_key == key
                    )
                )
                value = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise CheckpointError(
                "Checkpoint read failed",
                context={"source": source, "state_key": key, "operation": "read"},
                original_exception=e
            )
        return default if value is None else value

    async def get_checkpoints(self, source: str) -> Dict[str, Any]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(SyncCheckpoint.state_key, SyncCheckpoint.state_value).where(
                        SyncCheckpoint.source_id == source
                    )
                )
                return {row.state_key: row.state_value for row in result}
        except SQLAlchemyError as e:
            raise CheckpointError(
                "Checkpoint read failed",
                context={"source": source, "operation": "read"},
                original_exception=e
            )

    async def set_checkpoint(self, source: str, key: str, value: Any) -> None:
        stmt = insert(SyncCheckpoint).values(
            source_id=source, state_key=key, state_value=value, updated_at=datetime.utcnow()
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["source_id", "state_key"],
            set_={"state_value": stmt.excluded.state_value, "updated_at": stmt.excluded.updated_at}
        )
        try:
            async with self.session_factory() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            raise CheckpointError(
                "Checkpoint write failed",
                context={"source": source, "state_key": key, "operation": "write"},
                original_exception=e
            )

    async def reset_checkpoints(self, source: str) -> None:
        try:
            async with self.session_factory() as session:
                await session.execute(delete(SyncCheckpoint).where(SyncCheckpoint.source_id == source))
                await session.commit()
        except SQLAlchemyError as e:
            raise CheckpointError(
                "Checkpoint reset failed",
                context={"source": source, "operation": "reset"},
                original_exception=e
            )

    # ========================================================================
    # Rate limiting
    # ========================================================================

    async def rate_limit_check_and_increment(
        self,
        source: str,
        window_seconds: int,
        limit: int,
        burst: int = 0
    ) -> RateLimitDecision:
        """
        Single statement: create the window row with requests_made=1, or
        increment it only while it is below limit + burst. No returned row
        means the window is exhausted.
        """
        now = datetime.utcnow()
        window_start = window_start_for(now, window_seconds)

        stmt = insert(RateLimitWindow).values(
            source_id=source,
            window_start=window_start,
            window_duration_seconds=window_seconds,
            requests_made=1,
            requests_limit=limit,
            created_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["source_id", "window_start"],
            set_={"requests_made": RateLimitWindow.requests_made + 1},
            where=RateLimitWindow.requests_made < limit + burst
        ).returning(RateLimitWindow.requests_made)

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                used = result.scalar_one_or_none()
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreError(
                "Rate limit check failed",
                context={"operation": "UPSERT", "table_name": RateLimitWindow.__tablename__, "source": source},
                original_exception=e
            )

        if used is not None:
            return RateLimitDecision(allowed=True, requests_used=used)

        elapsed = (now - window_start).total_seconds()
        retry_after = max(1, math.ceil(window_seconds - elapsed))
        return RateLimitDecision(allowed=False, requests_used=limit + burst, retry_after_seconds=retry_after)

    # ========================================================================
    # Advisory locks
    # ========================================================================

    async def try_advisory_lock(self, lock_id: int, timeout: float = 0.0) -> bool:
        # Every attempt gets its own connection, hence its own PostgreSQL session:
        # a lock held by this process still blocks here until unlock() runs
        connection = await self.engine.connect()
        deadline = time.monotonic() + max(timeout, 0.0)
        try:
            while True:
                result = await connection.execute(
                    text("SELECT pg_try_advisory_lock(:lock_id)"), {"lock_id": lock_id}
                )
                acquired = bool(result.scalar())
                await connection.commit()
                if acquired:
                    self._lock_connections[lock_id] = connection
                    return True
                if time.monotonic() >= deadline:
                    await connection.close()
                    return False
                await asyncio.sleep(self.lock_poll_interval)
        except BaseException:
            await connection.close()
            raise

    async def unlock(self, lock_id: int) -> None:
        connection = self._lock_connections.pop(lock_id, None)
        if connection is None:
            return
        try:
            await connection.execute(text("SELECT pg_advisory_unlock(:lock_id)"), {"lock_id": lock_id})
            await connection.commit()
        finally:
            # Closing the session releases the lock even if the unlock call failed
            await connection.close()

    # ========================================================================
    # Sync runs
    # ========================================================================

    async def insert_sync_run(
        self,
        run_id: UUID,
        source: str,
        sync_type: SyncType,
        started_at: datetime,
        checkpoint_before: Optional[Dict[str, Any]] = None
    ) -> None:
        try:
            async with self.session_factory() as session:
                session.add(SyncRun(
                    run_id=run_id,
                    source_id=source,
                    sync_type=SyncType(sync_type),
                    status=SyncRunStatus.STARTED,
                    started_at=started_at,
                    checkpoint_before=checkpoint_before,
                ))
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreError(
                "Failed to create sync run",
                context={"operation": "INSERT", "table_name": SyncRun.__tablename__, "source": source},
                original_exception=e
            )

    async def update_sync_run(self, run_id: UUID, status: SyncRunStatus, **fields: Any) -> None:
        status = SyncRunStatus(status)
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        select(SyncRun).where(SyncRun.run_id == run_id).with_for_update()
                    )
                    run = result.scalar_one_or_none()
                    if run is None:
                        raise StoreError(
                            "Sync run not found",
                            context={"operation": "UPDATE", "run_id": str(run_id)}
                        )

                    current = SyncRunStatus(run.status)
                    if status not in SYNC_RUN_TRANSITIONS[current]:
                        raise StoreError(
                            f"Illegal sync run transition {current.value} -> {status.value}",
                            context={"operation": "UPDATE", "run_id": str(run_id)}
                        )

                    run.status = status
                    for name, value in fields.items():
                        setattr(run, name, value)
        except SQLAlchemyError as e:
            raise StoreError(
                "Failed to update sync run",
                context={"operation": "UPDATE", "table_name": SyncRun.__tablename__, "run_id": str(run_id)},
                original_exception=e
            )

    async def has_active_run(self, source: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(SyncRun.id).where(
                    SyncRun.source_id == source,
                    SyncRun.status.in_(ACTIVE_STATUSES)
                ).limit(1)
            )
            return result.first() is not None

    async def fail_orphaned_runs(self, source: str, message: str) -> int:
        now = datetime.utcnow()
        async with self.session_factory() as session:
            result = await session.execute(
                update(SyncRun)
                .where(SyncRun.source_id == source, SyncRun.status.in_(ACTIVE_STATUSES))
                .values(status=SyncRunStatus.FAILED, completed_at=now, error_message=message)
            )
            await session.commit()
            return result.rowcount or 0

    async def recent_runs(
        self,
        limit: int = 20,
        source: Optional[str] = None,
        offset: int = 0
    ) -> List[SyncRunSummary]:
        query = select(SyncRun).order_by(SyncRun.started_at.desc(), SyncRun.id.desc())
        if source is not None:
            query = query.where(SyncRun.source_id == source)
        async with self.session_factory() as session:
            result = await session.execute(query.offset(offset).limit(limit))
            return [SyncRunSummary.model_validate(run) for run in result.scalars()]

    # ========================================================================
    # Schedules
    # ========================================================================

    async def list_schedules(self, enabled_only: bool = False) -> List[ScheduleDefinition]:
        query = select(SyncSchedule).order_by(SyncSchedule.source_id, SyncSchedule.schedule_name)
        if enabled_only:
            query = query.where(SyncSchedule.enabled.is_(True))
        async with self.session_factory() as session:
            result = await session.execute(query)
            return [ScheduleDefinition.model_validate(row) for row in result.scalars()]

    async def ensure_schedule(self, schedule: ScheduleDefinition) -> bool:
        stmt = insert(SyncSchedule).values(
            source_id=schedule.source_id,
            schedule_name=schedule.schedule_name,
            cron_expression=schedule.cron_expression,
            sync_strategy=schedule.sync_strategy,
            filters=schedule.filters,
            max_records=schedule.max_records,
            enabled=schedule.enabled,
        ).on_conflict_do_nothing(
            index_elements=["source_id", "schedule_name"]
        ).returning(SyncSchedule.id)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            inserted = result.scalar_one_or_none()
            await session.commit()
        return inserted is not None

    async def update_schedule_next_run(
        self,
        schedule_id: int,
        next_run_at: Optional[datetime],
        last_run_at: Optional[datetime] = None
    ) -> None:
        # Bookkeeping columns only: updated_at must keep tracking definition edits
        values: Dict[str, Any] = {"next_run_at": next_run_at, "updated_at": SyncSchedule.updated_at}
        if last_run_at is not None:
            values["last_run_at"] = last_run_at
        async with self.session_factory() as session:
            await session.execute(
                update(SyncSchedule).where(SyncSchedule.id == schedule_id).values(**values)
            )
            await session.commit()

    # ========================================================================
    # Metrics
    # ========================================================================

    async def record_run_metrics(
        self,
        source: str,
        succeeded: bool,
        duration_seconds: float,
        finished_at: datetime,
        error_message: Optional[str] = None
    ) -> None:
        stmt = insert(SourceMetrics).values(
            source_id=source,
            total_runs=1,
            successful_runs=1 if succeeded else 0,
            failed_runs=0 if succeeded else 1,
            consecutive_failures=0 if succeeded else 1,
            total_duration_seconds=duration_seconds,
            last_sync_at=finished_at,
            last_success_at=finished_at if succeeded else None,
            last_failure_at=None if succeeded else finished_at,
            last_error_message=None if succeeded else (error_message or "")[:2000],
            updated_at=finished_at,
        )

        if succeeded:
            outcome = {
                "successful_runs": SourceMetrics.successful_runs + 1,
                "consecutive_failures": 0,
                "last_success_at": finished_at,
            }
        else:
            outcome = {
                "failed_runs": SourceMetrics.failed_runs + 1,
                "consecutive_failures": SourceMetrics.consecutive_failures + 1,
                "last_failure_at": finished_at,
                "last_error_message": (error_message or "")[:2000],
            }

        stmt = stmt.on_conflict_do_update(
            index_elements=["source_id"],
            set_={
                "total_runs": SourceMetrics.total_runs + 1,
                "total_duration_seconds": SourceMetrics.total_duration_seconds + duration_seconds,
                "last_sync_at": finished_at,
                "updated_at": finished_at,
                **outcome,
            }
        )

        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def list_source_metrics(self) -> List[SourceMetricsSnapshot]:
        async with self.session_factory() as session:
            result = await session.execute(select(SourceMetrics).order_by(SourceMetrics.source_id))
            return [SourceMetricsSnapshot.from_counters(row) for row in result.scalars()]

    async def ping(self) -> bool:
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database health check failed: {e}")
            return False
