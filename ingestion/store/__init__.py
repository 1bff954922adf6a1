"""
Persistent store interface and its PostgreSQL implementation.

Usage:
    from ingestion.store import PostgresStore
    from core.database import async_session_maker, engine

    store = PostgresStore(async_session_maker, engine)
"""

from ingestion.store.base import PersistentStore
from ingestion.store.postgres_store import PostgresStore

__all__ = ["PersistentStore", "PostgresStore"]
