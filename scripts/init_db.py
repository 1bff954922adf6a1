"""
Create every table and seed one enabled schedule per catalog source
"""

import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import engine, async_session_maker
from core.logging import setup_logging
# Importing the package registers every table on Base.metadata
from models import Base
from models.base import SyncStrategy
from ingestion.sources.catalog import SOURCE_CATALOG
from ingestion.store.postgres_store import PostgresStore
from schemas.normalized import ScheduleDefinition

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULE_NAME = "default"


async def init_database():
    logger.info("Connecting to database...")

    async with engine.begin() as conn:
        logger.info("Creating tables...")
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Tables created successfully.")

    store = PostgresStore(async_session_maker, engine)
    seeded = 0
    for config in SOURCE_CATALOG.values():
        inserted = await store.ensure_schedule(ScheduleDefinition(
            source_id=config.name,
            schedule_name=DEFAULT_SCHEDULE_NAME,
            cron_expression=config.default_cron,
            sync_strategy=SyncStrategy.INCREMENTAL,
        ))
        if inserted:
            seeded += 1
            logger.info(f"Seeded schedule for {config.name}: '{config.default_cron}'")

    logger.info(f"Seeded {seeded} schedules ({len(SOURCE_CATALOG) - seeded} already present)")
    await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_database())
