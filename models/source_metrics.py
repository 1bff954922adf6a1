from sqlalchemy import Column, Integer, String, DateTime, Float
from datetime import datetime
from models.base import Base


class SourceMetrics(Base):
    """
    Rolling per-source aggregates, incremented atomically after every run.

    success_rate and avg_duration_seconds are derived from these counters
    when read (see schemas.normalized.SourceMetricsSnapshot).
    """
    __tablename__ = "source_metrics"

    source_id = Column(String(100), primary_key=True)

    total_runs = Column(Integer, nullable=False, default=0)
    successful_runs = Column(Integer, nullable=False, default=0)
    failed_runs = Column(Integer, nullable=False, default=0)
    consecutive_failures = Column(Integer, nullable=False, default=0)
    total_duration_seconds = Column(Float, nullable=False, default=0.0)

    last_sync_at = Column(DateTime, nullable=True)
    last_success_at = Column(DateTime, nullable=True)
    last_failure_at = Column(DateTime, nullable=True)
    last_error_message = Column(String(2000), nullable=True)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
