from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Index
from datetime import datetime
from models.base import Base


class RateLimitWindow(Base):
    """
    Per-source request counter for one fixed time bucket.

    Rows are created lazily by the first request of a window and only ever
    incremented by a single INSERT ... ON CONFLICT statement, so concurrent
    workers cannot lose updates.
    """
    __tablename__ = "rate_limit_windows"

    id = Column(BigInteger, primary_key=True, autoincrement=True)

    source_id = Column(String(100), nullable=False)
    window_start = Column(DateTime, nullable=False)
    window_duration_seconds = Column(Integer, nullable=False)

    requests_made = Column(Integer, nullable=False, default=0)
    requests_limit = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_rate_limit_source_window", "source_id", "window_start", unique=True),
    )
