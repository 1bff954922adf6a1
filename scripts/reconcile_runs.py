"""
Close sync runs orphaned by a killed worker.

A run left in started/in_progress is only orphaned if nobody holds the
source's advisory lock, so each source is locked before its runs are
marked failed. Sources with an active run are left untouched.
"""

import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import engine, async_session_maker
from core.logging import setup_logging
from ingestion.guards import MutualExclusionGuard
from ingestion.sources.catalog import list_source_names
from ingestion.store.base import PersistentStore
from ingestion.store.postgres_store import PostgresStore

logger = logging.getLogger(__name__)

ORPHAN_MESSAGE = "Run orphaned: worker exited before completion"


async def reconcile(store: PersistentStore, sources) -> int:
    guard = MutualExclusionGuard(store, timeout=0)
    total = 0
    for source in sources:
        if not await store.has_active_run(source):
            continue
        if not await guard.try_acquire(source):
            logger.info(f"{source} has a live run, skipping")
            continue
        try:
            closed = await store.fail_orphaned_runs(source, ORPHAN_MESSAGE)
        finally:
            await guard.release(source)
        if closed:
            logger.warning(f"Marked {closed} orphaned runs failed for {source}")
        total += closed
    return total


async def main() -> int:
    store = PostgresStore(async_session_maker, engine)
    try:
        total = await reconcile(store, list_source_names())
    finally:
        await engine.dispose()
    logger.info(f"Reconciliation finished: {total} runs closed")
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(main()))
