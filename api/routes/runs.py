"""
Sync-run log with paging and a per-source filter
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from api.dependencies import get_store
from core.exceptions import ConfigurationError
from ingestion.sources.catalog import get_source_config
from ingestion.store.base import PersistentStore
from schemas.api import RunLogResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Runs"])


@router.get("/runs", response_model=RunLogResponse)
async def list_runs(
    source: Optional[str] = Query(None, description="Only runs of this source"),
    limit: int = Query(50, ge=1, le=500, description="Runs per page"),
    offset: int = Query(0, ge=0, description="Runs to skip"),
    store: PersistentStore = Depends(get_store)
):
    if source is not None:
        try:
            get_source_config(source)
        except ConfigurationError as e:
            raise HTTPException(status_code=404, detail=e.message)

    runs = await store.recent_runs(limit, source=source, offset=offset)
    return RunLogResponse(source=source, limit=limit, offset=offset, runs=runs)
