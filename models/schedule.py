from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, Index
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime
from models.base import Base, enum_values, SyncStrategy


class SyncSchedule(Base):
    """
    Externally maintained cron schedule for one source.

    The scheduler polls this table and re-registers jobs when a row is
    added, changed, disabled or deleted. next_run_at is bookkeeping only.
    """
    __tablename__ = "sync_schedules"

    id = Column(Integer, primary_key=True, autoincrement=True)

    source_id = Column(String(100), nullable=False, index=True)
    schedule_name = Column(String(200), nullable=False)
    cron_expression = Column(String(100), nullable=False)
    sync_strategy = Column(
        Enum(SyncStrategy, name="sync_strategy", values_callable=enum_values),
        nullable=False,
        default=SyncStrategy.INCREMENTAL,
    )
    filters = Column(JSONB, nullable=True)
    max_records = Column(Integer, nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)

    next_run_at = Column(DateTime, nullable=True)
    last_run_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_schedule_source_name", "source_id", "schedule_name", unique=True),
    )
