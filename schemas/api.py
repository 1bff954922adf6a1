"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from models.base import SyncStrategy
from schemas.normalized import ScheduleDefinition, SourceMetricsSnapshot, SyncRunSummary, SyncResult


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    registered_timers: int = 0
    failed_sources: List[str] = Field(default_factory=list)

    @staticmethod
    def determine_status(database_connected: bool, failed_sources: List[str], total_sources: int) -> str:
        """Determine overall health status"""
        if not database_connected:
            return "unhealthy"
        if not failed_sources:
            return "healthy"
        if len(failed_sources) < total_sources:
            return "degraded"
        return "unhealthy"

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "registered_timers": 13,
                "failed_sources": []
            }
        }


# ============================================================================
# Metrics Schemas
# ============================================================================

class TimerInfo(BaseModel):
    job_id: str
    source_id: str
    cron_expression: str
    next_run_at: Optional[datetime] = None


class MetricsSnapshot(BaseModel):
    """Read-only snapshot of per-source aggregates, recent runs and registered timers"""
    per_source_metrics: List[SourceMetricsSnapshot] = Field(default_factory=list)
    recent_runs: List[SyncRunSummary] = Field(default_factory=list)
    registered_timers: List[TimerInfo] = Field(default_factory=list)


# ============================================================================
# Manual Sync Schemas
# ============================================================================

class ManualSyncRequest(BaseModel):
    sources: Optional[List[str]] = Field(None, description="Source names; all catalog sources when omitted")
    full_sync: bool = False
    filters: Dict[str, Any] = Field(default_factory=dict)
    max_records: Optional[int] = Field(None, ge=1)

    class Config:
        json_schema_extra = {
            "example": {
                "sources": ["grants_gov", "nih_reporter"],
                "full_sync": False,
                "filters": {},
                "max_records": 500
            }
        }


class ManualSyncResponse(BaseModel):
    status: str = Field(..., description="completed when no source failed, otherwise failed")
    results: List[SyncResult] = Field(default_factory=list)


# ============================================================================
# Schedule and Run Log Schemas
# ============================================================================

class ScheduleInfo(BaseModel):
    """A schedule row plus whether this process has a live timer for it"""
    id: Optional[int] = None
    job_id: str
    source_id: str
    schedule_name: str
    cron_expression: str
    sync_strategy: str
    filters: Dict[str, Any] = Field(default_factory=dict)
    max_records: Optional[int] = None
    enabled: bool
    registered: bool = False
    next_run_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_schedule(cls, schedule: ScheduleDefinition, registered: bool) -> "ScheduleInfo":
        return cls(
            id=schedule.id,
            job_id=schedule.job_id,
            source_id=schedule.source_id,
            schedule_name=schedule.schedule_name,
            cron_expression=schedule.cron_expression,
            sync_strategy=SyncStrategy(schedule.sync_strategy).value,
            filters=schedule.filters,
            max_records=schedule.max_records,
            enabled=schedule.enabled,
            registered=registered,
            next_run_at=schedule.next_run_at,
            updated_at=schedule.updated_at,
        )


class RunLogResponse(BaseModel):
    """One page of the sync-run log, newest first"""
    source: Optional[str] = None
    limit: int
    offset: int
    runs: List[SyncRunSummary] = Field(default_factory=list)
