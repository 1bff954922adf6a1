"""
Manual sync trigger
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
import logging

from api.dependencies import get_scheduler
from core.exceptions import ConfigurationError
from ingestion.scheduler import GrantSyncScheduler, aggregate_status
from ingestion.sources.catalog import get_source_config
from models.base import SyncRunStatus, SyncType
from schemas.api import ManualSyncRequest, ManualSyncResponse
from schemas.normalized import SyncOptions

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Sync"])


@router.post(
    "/sync",
    response_model=ManualSyncResponse,
    responses={207: {"model": ManualSyncResponse, "description": "At least one source failed"}}
)
async def trigger_sync(
    request: ManualSyncRequest,
    scheduler: GrantSyncScheduler = Depends(get_scheduler)
):
    """
    Run a manual sync for the requested sources (all catalog sources when omitted).

    Returns 200 when no source failed and 207 otherwise. Sources whose lock
    is held elsewhere report status "already_running".
    """
    for name in request.sources or []:
        try:
            get_source_config(name)
        except ConfigurationError as e:
            raise HTTPException(status_code=404, detail=e.message)

    options = SyncOptions(
        sync_type=SyncType.MANUAL,
        full_sync=request.full_sync,
        filters=request.filters,
        max_records=request.max_records
    )
    results = await scheduler.run_sync(request.sources, options)

    response = ManualSyncResponse(status=aggregate_status(results), results=results)
    status_code = 207 if response.status == SyncRunStatus.FAILED.value else 200
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))
