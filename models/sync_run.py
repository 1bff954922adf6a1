from sqlalchemy import Column, BigInteger, String, Enum, DateTime, Float, Integer, Text, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from datetime import datetime
import uuid
from models.base import Base, enum_values, SyncType, SyncRunStatus


class SyncRun(Base):
    """
    Tracks metadata for each sync execution.

    Purpose:
    - Audit trail of all sync runs
    - Progress reporting while a run is in flight
    - Error tracking and debugging

    Lifecycle: started -> in_progress* -> completed | failed.
    Terminal rows are never modified again.
    """
    __tablename__ = "sync_runs"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    run_id = Column(UUID(as_uuid=True), default=uuid.uuid4, unique=True, nullable=False, index=True)

    source_id = Column(String(100), nullable=False, index=True)
    sync_type = Column(
        Enum(SyncType, name="sync_type", values_callable=enum_values),
        nullable=False,
        default=SyncType.SCHEDULED,
    )
    status = Column(
        Enum(SyncRunStatus, name="sync_run_status", values_callable=enum_values),
        nullable=False,
        default=SyncRunStatus.STARTED,
        index=True,
    )

    # Statistics
    records_fetched = Column(Integer, default=0)
    records_created = Column(Integer, default=0)
    records_updated = Column(Integer, default=0)
    records_failed = Column(Integer, default=0)

    # Timestamps
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Error tracking
    error_message = Column(Text, nullable=True)
    error_details = Column(JSONB, nullable=True)

    # Checkpoint info
    checkpoint_before = Column(JSONB, nullable=True)
    checkpoint_after = Column(JSONB, nullable=True)

    __table_args__ = (
        Index("idx_sync_run_source_started", "source_id", "started_at"),
        Index("idx_sync_run_source_status", "source_id", "status"),
    )
