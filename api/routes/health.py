"""
Health check endpoint with database and per-source sync status
"""

from fastapi import APIRouter, Depends
from datetime import datetime
import logging

from api.dependencies import get_store, get_scheduler
from ingestion.scheduler import GrantSyncScheduler
from ingestion.store.base import PersistentStore
from schemas.api import HealthResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: PersistentStore = Depends(get_store),
    scheduler: GrantSyncScheduler = Depends(get_scheduler)
):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Number of registered sync timers
    - Sources whose most recent run failed
    """
    db_connected = await store.ping()

    failed_sources = []
    total_sources = 0
    if db_connected:
        try:
            metrics = await store.list_source_metrics()
            total_sources = len(metrics)
            failed_sources = [m.source_id for m in metrics if m.consecutive_failures > 0]
        except Exception as e:
            logger.error(f"Failed to fetch source metrics: {str(e)}")

    return HealthResponse(
        status=HealthResponse.determine_status(db_connected, failed_sources, total_sources),
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        registered_timers=len(scheduler.registered_job_ids),
        failed_sources=failed_sources
    )
