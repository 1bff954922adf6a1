"""
Abstract persistent store used by the sync engine, guards and scheduler
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from models.base import SyncRunStatus, SyncType
from schemas.normalized import (
    NormalizedGrant,
    NormalizedGrantData,
    RateLimitDecision,
    ScheduleDefinition,
    SourceMetricsSnapshot,
    SyncRunSummary,
)


class PersistentStore(ABC):
    """
    Everything the pipeline persists, behind one interface.

    Every method that mutates shared state (grants, checkpoints, rate-limit
    counters, locks) must be a single atomic store-side operation: callers
    never read-then-write.
    """

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    @abstractmethod
    async def upsert_grant(self, grant: NormalizedGrant) -> Tuple[int, bool]:
        """
        Insert or update a grant by natural key.

        Returns:
            (grant_id, created) where created is False when an existing row was updated
        """
        pass

    @abstractmethod
    async def replace_sub_entities(self, grant_id: int, bundle: NormalizedGrantData) -> None:
        """Replace every owned sub-entity of the grant with the bundle's."""
        pass

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_checkpoint(self, source: str, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    async def get_checkpoints(self, source: str) -> Dict[str, Any]:
        """All checkpoint keys of a source."""
        pass

    @abstractmethod
    async def set_checkpoint(self, source: str, key: str, value: Any) -> None:
        pass

    @abstractmethod
    async def reset_checkpoints(self, source: str) -> None:
        pass

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    @abstractmethod
    async def rate_limit_check_and_increment(
        self,
        source: str,
        window_seconds: int,
        limit: int,
        burst: int = 0
    ) -> RateLimitDecision:
        pass

    @abstractmethod
    async def try_advisory_lock(self, lock_id: int, timeout: float = 0.0) -> bool:
        pass

    @abstractmethod
    async def unlock(self, lock_id: int) -> None:
        pass

    # ------------------------------------------------------------------
    # Sync runs
    # ------------------------------------------------------------------

    @abstractmethod
    async def insert_sync_run(
        self,
        run_id: UUID,
        source: str,
        sync_type: SyncType,
        started_at: datetime,
        checkpoint_before: Optional[Dict[str, Any]] = None
    ) -> None:
        pass

    @abstractmethod
    async def update_sync_run(self, run_id: UUID, status: SyncRunStatus, **fields: Any) -> None:
        """
        Move a run to `status` and update counters/error fields.

        Raises:
            StoreError: Transition not allowed from the run's current status
        """
        pass

    @abstractmethod
    async def has_active_run(self, source: str) -> bool:
        """Informational only; the advisory lock is the real guard."""
        pass

    @abstractmethod
    async def fail_orphaned_runs(self, source: str, message: str) -> int:
        """Mark lingering started/in_progress runs failed; returns how many."""
        pass

    @abstractmethod
    async def recent_runs(
        self,
        limit: int = 20,
        source: Optional[str] = None,
        offset: int = 0
    ) -> List[SyncRunSummary]:
        """Runs newest first, optionally for one source, skipping `offset` rows."""
        pass

    # ------------------------------------------------------------------
    # Schedules and metrics
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_schedules(self, enabled_only: bool = False) -> List[ScheduleDefinition]:
        pass

    @abstractmethod
    async def ensure_schedule(self, schedule: ScheduleDefinition) -> bool:
        """Insert the schedule unless one with the same name exists; returns True if inserted."""
        pass

    @abstractmethod
    async def update_schedule_next_run(
        self,
        schedule_id: int,
        next_run_at: Optional[datetime],
        last_run_at: Optional[datetime] = None
    ) -> None:
        pass

    @abstractmethod
    async def record_run_metrics(
        self,
        source: str,
        succeeded: bool,
        duration_seconds: float,
        finished_at: datetime,
        error_message: Optional[str] = None
    ) -> None:
        pass

    @abstractmethod
    async def list_source_metrics(self) -> List[SourceMetricsSnapshot]:
        pass

    @abstractmethod
    async def ping(self) -> bool:
        pass
