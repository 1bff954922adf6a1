"""
Run outcome bookkeeping: rolling per-source aggregates and failure alerts
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from core.config import settings
from ingestion.store.base import PersistentStore
from schemas.api import MetricsSnapshot, TimerInfo
from schemas.normalized import SyncResult
import logging

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Delivers an alert for a failed sync of a high-priority source."""

    @abstractmethod
    async def notify(self, source: str, error: str, context: Optional[Dict[str, Any]] = None) -> None:
        pass


class LoggingNotifier(Notifier):
    async def notify(self, source: str, error: str, context: Optional[Dict[str, Any]] = None) -> None:
        logger.critical(f"ALERT: sync failed for {source}: {error}", extra={"alert_context": context or {}})


class WebhookNotifier(Notifier):
    """POST a Slack-style {"text": ...} payload to a webhook URL."""

    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    def build_payload(self, source: str, error: str, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        context = context or {}
        lines = [f":rotating_light: Grant sync failed for *{source}*", f"Error: {error}"]
        for key in ("run_id", "records_fetched", "records_failed", "priority"):
            if key in context:
                lines.append(f"{key}: {context[key]}")
        return {"text": "\n".join(lines), "source": source, "context": context}

    async def notify(self, source: str, error: str, context: Optional[Dict[str, Any]] = None) -> None:
        payload = self.build_payload(source, error, context)
        if self._client is not None:
            response = await self._client.post(self.url, json=payload, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload)
        response.raise_for_status()


def build_notifier() -> Notifier:
    if settings.ALERT_WEBHOOK_URL:
        return WebhookNotifier(settings.ALERT_WEBHOOK_URL)
    return LoggingNotifier()


class SyncMetrics:
    """
    Records every finished run and alerts on failures of important sources.

    Neither recording nor alerting may fail a sync: errors are logged here.
    """

    def __init__(
        self,
        store: PersistentStore,
        notifier: Optional[Notifier] = None,
        priority_threshold: Optional[int] = None
    ):
        self.store = store
        self.notifier = notifier or build_notifier()
        self.priority_threshold = (
            priority_threshold if priority_threshold is not None
            else settings.ALERT_PRIORITY_THRESHOLD
        )

    async def record(self, result: SyncResult, priority: int) -> None:
        if result.already_running:
            return

        finished_at = result.completed_at or datetime.utcnow()
        try:
            await self.store.record_run_metrics(
                result.source,
                succeeded=not result.failed,
                duration_seconds=result.duration_seconds or 0.0,
                finished_at=finished_at,
                error_message=result.error_message
            )
        except Exception as e:
            logger.error(f"Failed to record metrics for {result.source}: {e}", exc_info=True)

        if result.failed and priority >= self.priority_threshold:
            await self.alert(result, priority)

    async def alert(self, result: SyncResult, priority: int) -> None:
        context = {
            "run_id": str(result.run_id) if result.run_id else None,
            "records_fetched": result.records_fetched,
            "records_failed": result.records_failed,
            "priority": priority,
        }
        try:
            await self.notifier.notify(result.source, result.error_message or "unknown error", context)
            logger.info(f"Sent failure alert for {result.source}")
        except Exception as e:
            logger.error(f"Failed to deliver alert for {result.source}: {e}", exc_info=True)


async def build_snapshot(
    store: PersistentStore,
    timers: Optional[List[TimerInfo]] = None,
    recent_limit: int = 20
) -> MetricsSnapshot:
    """Read-only view served by GET /metrics."""
    return MetricsSnapshot(
        per_source_metrics=await store.list_source_metrics(),
        recent_runs=await store.recent_runs(recent_limit),
        registered_timers=timers or [],
    )
