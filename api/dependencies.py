"""
Shared service objects and their FastAPI dependency providers.

Nothing here opens a connection at import time: the engine is lazy and
the scheduler only starts in the application's startup hook.
"""

from core.database import async_session_maker, engine
from ingestion.engine import SyncEngine
from ingestion.scheduler import GrantSyncScheduler
from ingestion.store.base import PersistentStore
from ingestion.store.postgres_store import PostgresStore

store = PostgresStore(async_session_maker, engine)
sync_engine = SyncEngine(store)
scheduler = GrantSyncScheduler(store, sync_engine)


def get_store() -> PersistentStore:
    return store


def get_scheduler() -> GrantSyncScheduler:
    return scheduler
