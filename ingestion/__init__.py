"""
Grant synchronization pipeline.

This package contains every component that moves grants from upstream
registries into the canonical store:

Modules:
    engine: SyncEngine, one paginated, checkpointed run of one source
    guards: Per-source rate limiter and cross-process mutual exclusion
    metrics: Per-source run aggregates and failure alerts
    scheduler: Cron timers per schedule row plus the manual trigger

Subpackages:
    sources: Source catalog and the configurable HTTP adapter
    transformers: Value normalization (dates, amounts, statuses, keywords)
    store: PersistentStore interface and its PostgreSQL implementation

Architecture:
    A run moves through three stages per page:

    1. Fetch - The adapter requests one page, retrying transient failures
    2. Transform - Each raw record becomes a NormalizedGrantData bundle
    3. Persist - Upsert by (source_id, source_native_id), then replace sub-entities

    A checkpoint is written after every page, so an interrupted run resumes
    where it stopped. Record failures are isolated; a circuit breaker aborts
    the run once too many errors accumulate.

Usage:
    from ingestion.engine import SyncEngine
    from ingestion.scheduler import GrantSyncScheduler
    from ingestion.store import PostgresStore

Example:
    store = PostgresStore(async_session_maker, engine)
    result = await SyncEngine(store).run("nih_reporter", SyncOptions(max_records=500))

    print(f"{result.status}: {result.records_created} created")

Error Handling:
    All components use custom exceptions from core.exceptions.
    SyncEngine.run never raises; every outcome ends in a SyncResult.
"""

__all__ = [
    "SyncEngine",
    "GrantSyncScheduler",
    "RateLimiter",
    "MutualExclusionGuard",
    "SyncMetrics",
    "GenericSourceAdapter",
    "GrantNormalizer",
    "PostgresStore",
]
