"""
Sync engine - runs one synchronization of one source.

This module provides:
- Sequential pagination with a checkpoint written after every page
- Idempotent upsert by natural key plus sub-entity replacement
- Per-record failure isolation
- A circuit breaker that aborts runs with too many errors
- A SyncRun audit row moving started -> in_progress -> completed | failed
"""

import asyncio
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from core.config import settings
from core.exceptions import (
    SyncError,
    FetchError,
    NonRetryableError,
    RateLimitExceeded,
    RecordTransformError,
    TooManyErrors,
    UpsertError,
)
from ingestion.guards import MutualExclusionGuard, RateLimiter
from ingestion.metrics import SyncMetrics
from ingestion.sources.adapter import SourceAdapter, build_adapter
from ingestion.store.base import PersistentStore
from models.base import SyncRunStatus
from schemas.normalized import ALREADY_RUNNING, PageParams, SyncOptions, SyncResult
import logging

logger = logging.getLogger(__name__)

# Cap on error entries kept on the result / persisted with the run
MAX_ERROR_DETAILS = 100


class _RunState:
    """Mutable bookkeeping for one in-flight run."""

    def __init__(self, adapter: SourceAdapter, options: SyncOptions, result: SyncResult):
        self.adapter = adapter
        self.options = options
        self.result = result
        self.error_count = 0

    @property
    def source(self) -> str:
        return self.result.source

    @property
    def max_records_reached(self) -> bool:
        limit = self.options.max_records
        return limit is not None and self.result.records_fetched >= limit


class SyncEngine:
    """
    Orchestrates adapter -> normalizer -> store for a single source.

    run() never raises: every outcome, including lock contention, ends in a
    SyncResult, and every run that got a SyncRun row ends in a terminal status.
    """

    def __init__(
        self,
        store: PersistentStore,
        adapter_factory: Callable[[str], SourceAdapter] = build_adapter,
        rate_limiter: Optional[RateLimiter] = None,
        guard: Optional[MutualExclusionGuard] = None,
        metrics: Optional[SyncMetrics] = None,
        max_errors: Optional[int] = None,
        page_retry_delay: Optional[float] = None
    ):
        self.store = store
        self.adapter_factory = adapter_factory
        self.rate_limiter = rate_limiter or RateLimiter(store)
        self.guard = guard or MutualExclusionGuard(store)
        self.metrics = metrics or SyncMetrics(store)
        self.max_errors = max_errors if max_errors is not None else settings.SYNC_MAX_ERRORS
        self.page_retry_delay = (
            page_retry_delay if page_retry_delay is not None
            else settings.SYNC_PAGE_RETRY_DELAY_SECONDS
        )

    async def run(
        self,
        source: str,
        options: Optional[SyncOptions] = None,
        adapter: Optional[SourceAdapter] = None
    ) -> SyncResult:
        options = options or SyncOptions()
        started_at = datetime.utcnow()
        result = SyncResult(source=source, status=SyncRunStatus.FAILED.value, started_at=started_at)

        try:
            adapter = adapter or self.adapter_factory(source)
        except SyncError as e:
            logger.error(f"Cannot sync {source}: {e.message}")
            self._add_error(result, e)
            return self._finish(result, SyncRunStatus.FAILED, e.message)

        try:
            acquired = await self.guard.try_acquire(source)
        except Exception as e:
            logger.error(f"Could not check the sync lock for {source}: {e}", exc_info=True)
            return self._finish(result, SyncRunStatus.FAILED, f"Lock acquisition failed: {e}")

        if not acquired:
            result.status = ALREADY_RUNNING
            result.error_message = f"A sync for {source} is already running"
            result.completed_at = datetime.utcnow()
            return result

        state = _RunState(adapter, options, result)
        try:
            await self._execute(state)
        except Exception as e:
            logger.error(f"Unexpected error syncing {source}: {e}", exc_info=True)
            self._finish(result, SyncRunStatus.FAILED, f"Unexpected error: {e}")
            if result.run_id is not None:
                try:
                    await self._close_run(state, result.run_id)
                except Exception as close_error:
                    logger.error(f"Could not finalize sync run for {source}: {close_error}")
        finally:
            try:
                await self.guard.release(source)
            except Exception as e:
                logger.error(f"Failed to release sync lock for {source}: {e}", exc_info=True)

        await self.metrics.record(result, adapter.priority)
        return result

    # ========================================================================
    # Run lifecycle
    # ========================================================================

    async def _execute(self, state: _RunState) -> None:
        result = state.result
        source = state.source
        options = state.options

        if await self.store.has_active_run(source):
            logger.warning(
                f"{source} has started/in_progress runs without a lock holder; "
                f"run scripts/reconcile_runs.py to close them"
            )

        run_id = uuid.uuid4()
        try:
            result.checkpoint_before = await self.store.get_checkpoints(source)
            await self.store.insert_sync_run(
                run_id, source, options.sync_type, result.started_at, result.checkpoint_before
            )
        except SyncError as e:
            logger.error(f"Could not start sync run for {source}: {e}")
            self._add_error(result, e)
            self._finish(result, SyncRunStatus.FAILED, e.message)
            return

        result.run_id = run_id
        logger.info(
            f"Sync run {run_id} started for {source} "
            f"(type={options.sync_type}, full={options.full_sync}, max_records={options.max_records})"
        )

        status = SyncRunStatus.COMPLETED
        error_message = None
        try:
            for partition in state.adapter.partitions(options.filters):
                await self._sync_partition(state, run_id, partition)
                if state.max_records_reached:
                    break

            if options.full_sync:
                await self.store.reset_checkpoints(source)

        except TooManyErrors as e:
            status, error_message = SyncRunStatus.FAILED, e.message
            self._add_error(result, e)
            logger.error(f"Aborting {source}: {e.message}")
        except NonRetryableError as e:
            status, error_message = SyncRunStatus.FAILED, e.message
            self._add_error(result, e)
            logger.error(f"Aborting {source} on non-retryable error: {e}")
        except SyncError as e:
            status, error_message = SyncRunStatus.FAILED, e.message
            self._add_error(result, e)
            logger.error(f"Sync of {source} failed: {e}")

        self._finish(result, status, error_message)
        await self._close_run(state, run_id)

        logger.info(
            f"Sync run {run_id} for {source} {result.status}: "
            f"fetched={result.records_fetched}, created={result.records_created}, "
            f"updated={result.records_updated}, failed={result.records_failed}, "
            f"skipped={result.records_skipped}, duration={result.duration_seconds:.2f}s"
        )

    async def _close_run(self, state: _RunState, run_id: uuid.UUID) -> None:
        result = state.result
        try:
            result.checkpoint_after = await self.store.get_checkpoints(state.source)
        except SyncError as e:
            logger.error(f"Could not read final checkpoint for {state.source}: {e}")

        try:
            await self.store.update_sync_run(
                run_id,
                SyncRunStatus(result.status),
                **self._run_fields(result),
                completed_at=result.completed_at,
                duration_seconds=result.duration_seconds,
                error_message=result.error_message,
                error_details={"errors": result.errors} if result.errors else None,
                checkpoint_after=result.checkpoint_after,
            )
        except SyncError as e:
            logger.error(f"Could not finalize sync run {run_id} for {state.source}: {e}")

    # ========================================================================
    # Pagination
    # ========================================================================

    @staticmethod
    def checkpoint_key(adapter: SourceAdapter, partition: Optional[str]) -> str:
        base = "last_page" if adapter.pagination_style == "page" else "last_offset"
        return f"{base}_{partition}" if partition else base

    async def _start_cursor(self, state: _RunState, key: str) -> int:
        initial = 1 if state.adapter.pagination_style == "page" else 0
        if state.options.full_sync:
            return initial
        stored = await self.store.get_checkpoint(state.source, key)
        try:
            return max(int(stored), initial) if stored is not None else initial
        except (TypeError, ValueError):
            logger.warning(f"Ignoring unreadable checkpoint {key}={stored!r} for {state.source}")
            return initial

    async def _sync_partition(self, state: _RunState, run_id: uuid.UUID, partition: Optional[str]) -> None:
        adapter = state.adapter
        result = state.result
        page_style = adapter.pagination_style == "page"
        key = self.checkpoint_key(adapter, partition)
        cursor = await self._start_cursor(state, key)

        while not state.max_records_reached:
            params = PageParams(
                offset=0 if page_style else cursor,
                page=cursor if page_style else 1,
                page_size=adapter.page_size,
                partition=partition,
                filters=state.options.filters,
            )

            try:
                await self.rate_limiter.acquire(state.source, adapter.requests_per_window)
                records = await adapter.fetch(params)
            except RateLimitExceeded as e:
                self._count_error(state, e)
                await asyncio.sleep(min(e.retry_after_seconds, self.page_retry_delay))
                continue
            except NonRetryableError:
                raise
            except FetchError as e:
                logger.warning(f"Page fetch failed for {state.source} at {key}={cursor}: {e.message}")
                self._count_error(state, e)
                await asyncio.sleep(self.page_retry_delay)
                continue

            if not records:
                logger.debug(f"{state.source} exhausted at {key}={cursor}")
                return

            batch = records
            if state.options.max_records is not None:
                batch = records[:state.options.max_records - result.records_fetched]
            result.records_fetched += len(batch)

            for raw in batch:
                await self._process_record(state, raw)

            if page_style:
                # A short or partly consumed page is fetched again next time
                if len(batch) == len(records) == adapter.page_size:
                    cursor += 1
            else:
                cursor += len(batch)

            await self.store.set_checkpoint(state.source, key, cursor)
            await self.store.update_sync_run(run_id, SyncRunStatus.IN_PROGRESS, **self._run_fields(result))

            if len(records) < adapter.page_size:
                return

    async def _process_record(self, state: _RunState, raw: Dict[str, Any]) -> None:
        result = state.result
        try:
            bundle = state.adapter.transform(raw)
        except RecordTransformError as e:
            self._record_failure(state, e)
            return
        except Exception as e:
            self._record_failure(state, RecordTransformError(
                f"Transform raised {type(e).__name__}",
                context={"source": state.source},
                original_exception=e
            ))
            return

        if bundle is None:
            result.records_skipped += 1
            return

        try:
            grant_id, created = await self.store.upsert_grant(bundle.grant)
            await self.store.replace_sub_entities(grant_id, bundle)
        except UpsertError as e:
            self._record_failure(state, e)
            return

        if created:
            result.records_created += 1
        else:
            result.records_updated += 1

    # ========================================================================
    # Error accounting
    # ========================================================================

    def _record_failure(self, state: _RunState, error: SyncError) -> None:
        state.result.records_failed += 1
        logger.error(
            f"Record failed for {state.source}: {error.message}",
            extra={"error_context": error.to_dict()}
        )
        self._count_error(state, error)

    def _count_error(self, state: _RunState, error: SyncError) -> None:
        """Every page or record error counts toward the circuit breaker."""
        state.error_count += 1
        self._add_error(state.result, error)
        if state.error_count > self.max_errors:
            raise TooManyErrors(
                f"Error threshold exceeded ({state.error_count} > {self.max_errors})",
                context={"source": state.source, "records_failed": state.result.records_failed}
            )

    @staticmethod
    def _add_error(result: SyncResult, error: SyncError) -> None:
        if len(result.errors) < MAX_ERROR_DETAILS:
            result.errors.append(error.to_dict())

    @staticmethod
    def _run_fields(result: SyncResult) -> Dict[str, int]:
        return {
            "records_fetched": result.records_fetched,
            "records_created": result.records_created,
            "records_updated": result.records_updated,
            "records_failed": result.records_failed,
        }

    @staticmethod
    def _finish(result: SyncResult, status: SyncRunStatus, error_message: Optional[str]) -> SyncResult:
        result.status = status.value
        result.error_message = error_message
        result.completed_at = datetime.utcnow()
        if result.started_at:
            result.duration_seconds = (result.completed_at - result.started_at).total_seconds()
        return result
