from sqlalchemy import Column, Integer, String, DateTime, Index
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime
from models.base import Base


class SyncCheckpoint(Base):
    """
    Tracks incremental sync state per source.

    Purpose:
    - Resume a sync from the last completed page after a crash
    - Keep one cursor per partition (e.g. last_offset_2024)

    Design:
    - One row per (source_id, state_key)
    - state_value is JSONB so offsets, page numbers and dates fit the same column
    - Written only after the page's upserts have completed
    """
    __tablename__ = "sync_checkpoints"

    id = Column(Integer, primary_key=True, autoincrement=True)

    source_id = Column(String(100), nullable=False)
    state_key = Column(String(100), nullable=False)
    state_value = Column(JSONB, nullable=True)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_checkpoint_source_key", "source_id", "state_key", unique=True),
    )
