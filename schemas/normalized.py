"""
Pydantic schemas for normalized grants and sync bookkeeping with validation
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from uuid import UUID
from models.base import (
    GrantStatus, SyncType, SyncRunStatus, SyncStrategy,
    CategoryType, KeywordSource, LocationType
)


# ============================================================================
# Normalized Grant Bundle
# ============================================================================

class NormalizedGrant(BaseModel):
    """
    Canonical grant fields produced by a source adapter.

    Ensures:
    - Natural key components are present and stripped
    - Title is non-empty
    - Amounts are non-negative
    - Currency is a 3-letter upper-case code
    """

    # Natural key (required)
    source_id: str = Field(..., min_length=1, max_length=100)
    source_native_id: str = Field(..., min_length=1, max_length=255)

    title: str = Field(..., min_length=1)
    status: GrantStatus = GrantStatus.ACTIVE

    funding_organization_name: Optional[str] = Field(None, max_length=500)
    funding_organization_code: Optional[str] = Field(None, max_length=100)

    currency: str = "USD"
    funding_amount_min: Optional[float] = Field(None, ge=0)
    funding_amount_max: Optional[float] = Field(None, ge=0)
    total_funding_available: Optional[float] = Field(None, ge=0)
    expected_awards_count: Optional[int] = Field(None, ge=0)

    source_url: Optional[str] = Field(None, max_length=2048)

    posted_date: Optional[date] = None
    application_deadline: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    last_updated_date: Optional[date] = None

    grant_type: Optional[str] = Field(None, max_length=100)
    funding_instrument: Optional[str] = Field(None, max_length=100)
    activity_code: Optional[str] = Field(None, max_length=20)

    raw_data: Dict[str, Any] = Field(default_factory=dict)

    @validator("title", "source_native_id")
    def strip_required_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Value cannot be empty after stripping")
        return v

    @validator("currency", pre=True)
    def clean_currency(cls, v):
        if not v:
            return "USD"
        v = str(v).strip().upper()
        if len(v) != 3:
            raise ValueError(f"Currency must be a 3-letter code, got {v!r}")
        return v

    @validator("funding_organization_name", pre=True)
    def truncate_organization(cls, v):
        """Upstream strings occasionally exceed column sizes; cut them instead of failing the record."""
        if v is None:
            return None
        return str(v).strip()[:500] or None

    @validator("funding_organization_code", "grant_type", "funding_instrument", pre=True)
    def truncate_classification(cls, v):
        if v is None:
            return None
        return str(v).strip()[:100] or None

    def to_fields(self) -> Dict[str, Any]:
        """Columns to upsert, natural key excluded."""
        return self.model_dump(exclude={"source_id", "source_native_id"})

    class Config:
        use_enum_values = True


class GrantDetailsCreate(BaseModel):
    description: Optional[str] = None
    abstract: Optional[str] = None
    purpose: Optional[str] = None
    additional_information: Optional[str] = None

    def is_empty(self) -> bool:
        return not any([self.description, self.abstract, self.purpose, self.additional_information])


class CategoryCreate(BaseModel):
    category_type: CategoryType = CategoryType.CUSTOM
    category_code: Optional[str] = Field(None, max_length=100)
    category_name: str = Field(..., min_length=1, max_length=500)

    class Config:
        use_enum_values = True


class KeywordCreate(BaseModel):
    keyword: str = Field(..., min_length=1, max_length=255)
    keyword_source: KeywordSource = KeywordSource.EXTRACTED

    class Config:
        use_enum_values = True


class EligibilityCreate(BaseModel):
    eligibility_type: str = "organization_type"
    eligibility_value: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None


class LocationCreate(BaseModel):
    location_type: LocationType = LocationType.ELIGIBLE
    country_code: Optional[str] = Field(None, max_length=3)
    region: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=255)

    class Config:
        use_enum_values = True


class ContactCreate(BaseModel):
    contact_type: str = "general"
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    title: Optional[str] = Field(None, max_length=255)


class NormalizedGrantData(BaseModel):
    """Everything one raw record turns into: the grant plus its owned sub-entities."""
    grant: NormalizedGrant
    details: Optional[GrantDetailsCreate] = None
    categories: List[CategoryCreate] = Field(default_factory=list)
    keywords: List[KeywordCreate] = Field(default_factory=list)
    eligibility: List[EligibilityCreate] = Field(default_factory=list)
    locations: List[LocationCreate] = Field(default_factory=list)
    contacts: List[ContactCreate] = Field(default_factory=list)

    @property
    def natural_key(self):
        return (self.grant.source_id, self.grant.source_native_id)


# ============================================================================
# Adapter / Engine Contracts
# ============================================================================

class PageParams(BaseModel):
    """One fetch request: where to start, how much, and for which partition."""
    offset: int = Field(0, ge=0)
    page: int = Field(1, ge=1)
    page_size: int = Field(100, ge=1)
    partition: Optional[str] = None
    filters: Dict[str, Any] = Field(default_factory=dict)


class SyncOptions(BaseModel):
    sync_type: SyncType = SyncType.MANUAL
    full_sync: bool = False
    filters: Dict[str, Any] = Field(default_factory=dict)
    max_records: Optional[int] = Field(None, ge=1)

    class Config:
        use_enum_values = True


ALREADY_RUNNING = "already_running"


class SyncResult(BaseModel):
    """
    Outcome of one SyncEngine.run call.

    status is a terminal SyncRun status ("completed" / "failed") or
    "already_running" when the source lock was held elsewhere.
    """
    source: str
    run_id: Optional[UUID] = None
    status: str
    records_fetched: int = 0
    records_created: int = 0
    records_updated: int = 0
    records_failed: int = 0
    records_skipped: int = 0
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    checkpoint_before: Optional[Dict[str, Any]] = None
    checkpoint_after: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    error_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == SyncRunStatus.FAILED.value

    @property
    def already_running(self) -> bool:
        return self.status == ALREADY_RUNNING


class RateLimitDecision(BaseModel):
    allowed: bool
    requests_used: int
    retry_after_seconds: int = 0


# ============================================================================
# Schedules and Metrics
# ============================================================================

class ScheduleDefinition(BaseModel):
    """A row of sync_schedules as seen by the scheduler."""
    id: Optional[int] = None
    source_id: str
    schedule_name: str
    cron_expression: str
    sync_strategy: SyncStrategy = SyncStrategy.INCREMENTAL
    filters: Dict[str, Any] = Field(default_factory=dict)
    max_records: Optional[int] = None
    enabled: bool = True
    next_run_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @validator("filters", pre=True)
    def clean_filters(cls, v):
        if v is None or not isinstance(v, dict):
            return {}
        return v

    @property
    def job_id(self) -> str:
        return f"sync:{self.source_id}:{self.schedule_name}"

    def fingerprint(self) -> tuple:
        """Anything that changes here requires re-registering the job."""
        return (
            self.cron_expression.strip(),
            SyncStrategy(self.sync_strategy).value,
            tuple(sorted((k, repr(v)) for k, v in self.filters.items())),
            self.max_records,
            self.enabled,
        )

    def to_options(self, sync_type: SyncType = SyncType.SCHEDULED) -> SyncOptions:
        return SyncOptions(
            sync_type=sync_type,
            full_sync=SyncStrategy(self.sync_strategy) == SyncStrategy.FULL,
            filters=self.filters,
            max_records=self.max_records,
        )

    class Config:
        from_attributes = True


class SourceMetricsSnapshot(BaseModel):
    source_id: str
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    consecutive_failures: int = 0
    total_duration_seconds: float = 0.0
    success_rate: Optional[float] = None
    avg_duration_seconds: Optional[float] = None
    last_sync_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None
    last_error_message: Optional[str] = None

    @classmethod
    def from_counters(cls, row: Any) -> "SourceMetricsSnapshot":
        """Build a snapshot from a SourceMetrics row, deriving the rates."""
        total = row.total_runs or 0
        return cls(
            source_id=row.source_id,
            total_runs=total,
            successful_runs=row.successful_runs or 0,
            failed_runs=row.failed_runs or 0,
            consecutive_failures=row.consecutive_failures or 0,
            total_duration_seconds=row.total_duration_seconds or 0.0,
            success_rate=round((row.successful_runs or 0) / total, 4) if total else None,
            avg_duration_seconds=round((row.total_duration_seconds or 0.0) / total, 3) if total else None,
            last_sync_at=row.last_sync_at,
            last_success_at=row.last_success_at,
            last_failure_at=row.last_failure_at,
            last_error_message=row.last_error_message,
        )


class SyncRunSummary(BaseModel):
    run_id: UUID
    source_id: str
    sync_type: SyncType
    status: SyncRunStatus
    records_fetched: int = 0
    records_created: int = 0
    records_updated: int = 0
    records_failed: int = 0
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    error_message: Optional[str] = None

    class Config:
        from_attributes = True
        use_enum_values = True
