"""
Read-only view of the schedule table and the timers registered for it
"""

from fastapi import APIRouter, Depends, Query
from typing import List
import logging

from api.dependencies import get_store, get_scheduler
from ingestion.scheduler import GrantSyncScheduler
from ingestion.store.base import PersistentStore
from schemas.api import ScheduleInfo

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Schedules"])


@router.get("/schedules", response_model=List[ScheduleInfo])
async def list_schedules(
    enabled_only: bool = Query(False, description="Only return enabled schedules"),
    store: PersistentStore = Depends(get_store),
    scheduler: GrantSyncScheduler = Depends(get_scheduler)
):
    """
    Schedule definitions as stored, ordered by source.

    registered tells whether this process currently holds a timer for the
    row: disabled rows and rejected cron expressions report False.
    """
    schedules = await store.list_schedules(enabled_only=enabled_only)
    registered = set(scheduler.registered_job_ids)
    return [
        ScheduleInfo.from_schedule(schedule, schedule.job_id in registered)
        for schedule in schedules
    ]
