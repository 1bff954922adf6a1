"""
Cron-driven scheduling of sync runs, plus the manual trigger path.

One APScheduler job per enabled schedule row. A polling job re-reads the
schedule table and diffs it against the registered jobs, so edits made
elsewhere (inserts, cron changes, disables, deletes) take effect without
a restart.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from core.config import settings
from core.exceptions import ConfigurationError
from ingestion.engine import SyncEngine
from ingestion.sources.catalog import list_source_names
from ingestion.store.base import PersistentStore
from models.base import SyncRunStatus, SyncType
from schemas.api import TimerInfo
from schemas.normalized import ScheduleDefinition, SyncOptions, SyncResult

logger = logging.getLogger(__name__)

POLL_JOB_ID = "schedule_poll"


def aggregate_status(results: List[SyncResult]) -> str:
    """failed if any source failed; already_running does not count as a failure."""
    if any(result.failed for result in results):
        return SyncRunStatus.FAILED.value
    return SyncRunStatus.COMPLETED.value


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class GrantSyncScheduler:
    """
    Owns the registry of active timers.

    Lifecycle: initialize() loads schedules and starts the scheduler,
    stop() shuts it down and clears every registration.
    """

    def __init__(
        self,
        store: PersistentStore,
        engine: SyncEngine,
        scheduler: Optional[AsyncIOScheduler] = None,
        poll_interval: Optional[int] = None,
        manual_concurrency: Optional[int] = None,
        tz: Optional[str] = None,
        source_names: Callable[[], List[str]] = list_source_names
    ):
        self.store = store
        self.engine = engine
        self.timezone = tz or settings.SCHEDULER_TIMEZONE
        self.scheduler = scheduler or AsyncIOScheduler(timezone=self.timezone)
        self.poll_interval = poll_interval or settings.SCHEDULE_POLL_INTERVAL_SECONDS
        self.manual_concurrency = manual_concurrency or settings.MANUAL_SYNC_CONCURRENCY
        self.source_names = source_names

        self._registered: Dict[str, ScheduleDefinition] = {}
        self._triggers: Dict[str, CronTrigger] = {}
        # Invalid definitions already reported, keyed by job id -> fingerprint
        self._rejected: Dict[str, tuple] = {}
        self._semaphore: Optional[asyncio.Semaphore] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        """
        Start the poll job and the scheduler, then load the schedule table.

        A failed first load is logged by refresh() and retried on the next poll,
        so a database that is still coming up does not leave the process
        without timers.
        """
        self.scheduler.add_job(
            self.refresh,
            trigger=IntervalTrigger(seconds=self.poll_interval),
            id=POLL_JOB_ID,
            name="Reload sync schedules",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        if not self.scheduler.running:
            self.scheduler.start()

        await self.refresh()

        logger.info(
            f"Grant sync scheduler started with {len(self._registered)} timers "
            f"({len(self._rejected)} rejected)"
        )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self._registered.clear()
        self._triggers.clear()
        self._rejected.clear()
        logger.info("Grant sync scheduler stopped")

    # ========================================================================
    # Registration
    # ========================================================================

    def build_trigger(self, cron_expression: str) -> CronTrigger:
        """
        Parse a standard 5-field cron expression.

        Raises:
            ConfigurationError: Expression is not valid crontab syntax
        """
        try:
            return CronTrigger.from_crontab(cron_expression.strip(), timezone=self.timezone)
        except (ValueError, TypeError, AttributeError) as e:
            raise ConfigurationError(
                f"Invalid cron expression: {cron_expression!r}",
                context={"cron_expression": cron_expression},
                original_exception=e
            )

    def next_fire_time(self, job_id: str) -> Optional[datetime]:
        trigger = self._triggers.get(job_id)
        if trigger is None:
            return None
        return trigger.get_next_fire_time(None, datetime.now(timezone.utc))

    async def register(self, schedule: ScheduleDefinition) -> bool:
        """
        Register (or replace) the timer for a schedule.

        Invalid cron expressions and unknown sources are logged and not
        scheduled; any previous timer for the same schedule is removed.
        """
        job_id = schedule.job_id
        try:
            self.engine.adapter_factory(schedule.source_id)
            trigger = self.build_trigger(schedule.cron_expression)
        except ConfigurationError as e:
            logger.error(f"Not scheduling {job_id}: {e.message}", extra={"error_context": e.to_dict()})
            self._rejected[job_id] = schedule.fingerprint()
            self.unregister(job_id)
            return False

        self.scheduler.add_job(
            self._run_scheduled,
            trigger=trigger,
            args=[job_id],
            id=job_id,
            name=f"Sync {schedule.source_id} ({schedule.schedule_name})",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self._registered[job_id] = schedule
        self._triggers[job_id] = trigger
        self._rejected.pop(job_id, None)

        await self._store_next_run(schedule)
        logger.info(f"Registered {job_id} with cron '{schedule.cron_expression}'")
        return True

    def unregister(self, job_id: str) -> None:
        if self.scheduler.get_job(job_id) is not None:
            self.scheduler.remove_job(job_id)
        if self._registered.pop(job_id, None) is not None:
            logger.info(f"Unregistered {job_id}")
        self._triggers.pop(job_id, None)

    async def refresh(self) -> Dict[str, List[str]]:
        """Diff the schedule table against registered timers and reconcile."""
        changes: Dict[str, List[str]] = {"added": [], "updated": [], "removed": []}
        try:
            schedules = await self.store.list_schedules()
        except Exception as e:
            logger.error(f"Could not reload schedules: {e}", exc_info=True)
            return changes

        wanted = {schedule.job_id: schedule for schedule in schedules if schedule.enabled}

        for job_id in list(self._registered):
            if job_id not in wanted:
                self.unregister(job_id)
                changes["removed"].append(job_id)

        for job_id, schedule in wanted.items():
            existing = self._registered.get(job_id)
            if existing is not None and existing.fingerprint() == schedule.fingerprint():
                self._registered[job_id] = schedule
                continue
            if existing is None and self._rejected.get(job_id) == schedule.fingerprint():
                continue
            if await self.register(schedule):
                changes["updated" if existing is not None else "added"].append(job_id)
            elif existing is not None:
                changes["removed"].append(job_id)

        for job_id in list(self._rejected):
            if job_id not in wanted:
                del self._rejected[job_id]

        if any(changes.values()):
            logger.info(f"Schedule changes applied: {changes}")
        return changes

    async def _store_next_run(self, schedule: ScheduleDefinition, last_run_at: Optional[datetime] = None) -> None:
        if schedule.id is None:
            return
        try:
            await self.store.update_schedule_next_run(
                schedule.id, _naive_utc(self.next_fire_time(schedule.job_id)), last_run_at
            )
        except Exception as e:
            logger.warning(f"Could not update next_run_at for {schedule.job_id}: {e}")

    # ========================================================================
    # Execution
    # ========================================================================

    async def _run_scheduled(self, job_id: str) -> Optional[SyncResult]:
        schedule = self._registered.get(job_id)
        if schedule is None:
            return None

        logger.info(f"Scheduled sync firing: {job_id}")
        result = await self.engine.run(schedule.source_id, schedule.to_options(SyncType.SCHEDULED))
        await self._store_next_run(schedule, last_run_at=result.started_at)
        return result

    async def run_sync(
        self,
        sources: Optional[List[str]] = None,
        options: Optional[SyncOptions] = None
    ) -> List[SyncResult]:
        """
        Manual trigger: run the given sources (all catalog sources when
        omitted) concurrently, at most manual_concurrency at a time.
        """
        names = list(dict.fromkeys(sources)) if sources else self.source_names()
        options = options or SyncOptions(sync_type=SyncType.MANUAL)
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.manual_concurrency)

        async def _run_one(name: str) -> SyncResult:
            async with self._semaphore:
                return await self.engine.run(name, options)

        logger.info(f"Manual sync requested for {len(names)} sources: {names}")
        results = list(await asyncio.gather(*(_run_one(name) for name in names)))
        logger.info(f"Manual sync finished with status {aggregate_status(results)}")
        return results

    # ========================================================================
    # Introspection
    # ========================================================================

    def status(self) -> List[TimerInfo]:
        return [
            TimerInfo(
                job_id=job_id,
                source_id=schedule.source_id,
                cron_expression=schedule.cron_expression,
                next_run_at=self.next_fire_time(job_id),
            )
            for job_id, schedule in sorted(self._registered.items())
        ]

    @property
    def registered_job_ids(self) -> List[str]:
        return sorted(self._registered)
