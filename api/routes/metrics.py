"""
Read-only metrics snapshot: per-source aggregates, recent runs, registered timers
"""

from fastapi import APIRouter, Depends, Query
import logging

from api.dependencies import get_store, get_scheduler
from ingestion.scheduler import GrantSyncScheduler
from ingestion.store.base import PersistentStore
from ingestion.metrics import build_snapshot
from schemas.api import MetricsSnapshot

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Metrics"])


@router.get("/metrics", response_model=MetricsSnapshot)
async def get_metrics(
    limit: int = Query(20, ge=1, le=200, description="Number of recent runs to return"),
    store: PersistentStore = Depends(get_store),
    scheduler: GrantSyncScheduler = Depends(get_scheduler)
):
    return await build_snapshot(store, scheduler.status(), recent_limit=limit)
