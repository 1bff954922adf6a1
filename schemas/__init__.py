"""
Pydantic schemas for data validation and API contracts.

Modules:
    normalized: Normalized grant bundle, sync options/results, schedules, metrics
    api: Request/response models for the HTTP surface

Usage:
    from schemas.normalized import NormalizedGrantData, SyncOptions, SyncResult
    from schemas.api import HealthResponse, ManualSyncRequest
"""

__all__ = [
    "NormalizedGrant",
    "NormalizedGrantData",
    "PageParams",
    "SyncOptions",
    "SyncResult",
    "RateLimitDecision",
    "ScheduleDefinition",
    "SourceMetricsSnapshot",
    "SyncRunSummary",
    "HealthResponse",
    "TimerInfo",
    "MetricsSnapshot",
    "ManualSyncRequest",
    "ManualSyncResponse",
    "ScheduleInfo",
    "RunLogResponse",
]
