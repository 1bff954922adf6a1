"""
Manual sync trigger.

Examples:
    python scripts/run_sync.py                       # every catalog source
    python scripts/run_sync.py --source grants_gov --source nih_reporter
    python scripts/run_sync.py --source nsf_awards --full --max-records 500
    python scripts/run_sync.py --source usaspending --filters '{"filters.award_type_codes": ["02"]}'

Exits with status 1 when any source failed.
"""

import argparse
import asyncio
import json
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import engine, async_session_maker
from core.exceptions import ConfigurationError
from core.logging import setup_logging
from ingestion.engine import SyncEngine
from ingestion.scheduler import GrantSyncScheduler, aggregate_status
from ingestion.sources.catalog import get_source_config
from ingestion.store.postgres_store import PostgresStore
from models.base import SyncRunStatus, SyncType
from schemas.normalized import SyncOptions

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a manual grant sync")
    parser.add_argument("--source", action="append", dest="sources",
                        help="Source name (repeatable); all catalog sources when omitted")
    parser.add_argument("--full", action="store_true", help="Ignore checkpoints and sync from the beginning")
    parser.add_argument("--max-records", type=int, default=None, help="Stop after this many fetched records")
    parser.add_argument("--filters", type=json.loads, default={},
                        help="JSON object of request parameters, dotted keys allowed")
    return parser.parse_args(argv)


async def run_sync(args: argparse.Namespace) -> int:
    for name in args.sources or []:
        try:
            get_source_config(name)
        except ConfigurationError as e:
            logger.error(e.message)
            return 2

    store = PostgresStore(async_session_maker, engine)
    scheduler = GrantSyncScheduler(store, SyncEngine(store))
    options = SyncOptions(
        sync_type=SyncType.MANUAL,
        full_sync=args.full,
        filters=args.filters,
        max_records=args.max_records
    )

    try:
        results = await scheduler.run_sync(args.sources, options)
    finally:
        await engine.dispose()

    for result in results:
        logger.info(
            f"{result.source}: {result.status} "
            f"(fetched={result.records_fetched}, created={result.records_created}, "
            f"updated={result.records_updated}, failed={result.records_failed})"
            + (f" - {result.error_message}" if result.error_message else "")
        )

    status = aggregate_status(results)
    logger.info(f"Manual sync finished: {status}")
    return 1 if status == SyncRunStatus.FAILED.value else 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_sync(parse_args())))
