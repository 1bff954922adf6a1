"""
SQLAlchemy ORM models for database tables.

This package defines the database schema using SQLAlchemy ORM models:

Models:
    base: Base declarative class and shared enums (GrantStatus, SyncRunStatus, ...)
    grant: Canonical grants plus their owned sub-entities
    checkpoint: Per-source incremental sync cursors
    rate_limit: Per-source request counters per time window
    sync_run: Sync execution audit trail
    schedule: Externally maintained cron schedules
    source_metrics: Rolling per-source run aggregates

Database Schema:
    All models inherit from the Base declarative class and use
    PostgreSQL-specific features like JSONB for flexible metadata storage.
    Importing this package registers every table on Base.metadata.

Relationships:
    - Grant → GrantDetails (one-to-one)
    - Grant → GrantCategory / GrantKeyword / GrantEligibility /
      GrantLocation / GrantContact (one-to-many, cascade delete)
"""

from models.base import (
    Base,
    GrantStatus,
    SyncType,
    SyncRunStatus,
    SyncStrategy,
    CategoryType,
    KeywordSource,
    LocationType,
)
from models.grant import (
    Grant,
    GrantDetails,
    GrantCategory,
    GrantKeyword,
    GrantEligibility,
    GrantLocation,
    GrantContact,
)
from models.checkpoint import SyncCheckpoint
from models.rate_limit import RateLimitWindow
from models.sync_run import SyncRun
from models.schedule import SyncSchedule
from models.source_metrics import SourceMetrics

__all__ = [
    "Base",
    "GrantStatus",
    "SyncType",
    "SyncRunStatus",
    "SyncStrategy",
    "CategoryType",
    "KeywordSource",
    "LocationType",
    "Grant",
    "GrantDetails",
    "GrantCategory",
    "GrantKeyword",
    "GrantEligibility",
    "GrantLocation",
    "GrantContact",
    "SyncCheckpoint",
    "RateLimitWindow",
    "SyncRun",
    "SyncSchedule",
    "SourceMetrics",
]
