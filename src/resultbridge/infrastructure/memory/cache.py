from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from src.resultbridge.domain.models.task_result import TaskResult
from src.resultbridge.domain.models.task_status import TaskStatus
from src.resultbridge.domain.repositories import ResultCacheRepository

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class InMemoryResultCache(ResultCacheRepository):
    """
    Process-local TTL map.

    Entries disappear on restart. Callbacks and polls may hit the same key
    from different threads, so every access goes through one lock.
    """

    def __init__(
        self,
        ttl_seconds: float = 1800,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, TaskResult] = {}
        self._lock = threading.Lock()

    def _new_entry(
        self,
        task_id: str,
        status: TaskStatus,
        result_urls: list[str] | None,
        error: str | None,
    ) -> TaskResult:
        return TaskResult(
            task_id=task_id,
            status=status,
            result_urls=list(result_urls or []),
            error=error,
            recorded_at=self._clock(),
        )

    async def put(
        self,
        task_id: str,
        status: TaskStatus,
        result_urls: list[str] | None = None,
        error: str | None = None,
    ) -> TaskResult:
        entry = self._new_entry(task_id, status, result_urls, error)
        with self._lock:
            self._entries[task_id] = entry
            self._sweep_locked()
        logger.info("Stored task result", extra={"task_id": task_id, "status": status.value})
        return entry

    async def put_if_allowed(
        self,
        task_id: str,
        status: TaskStatus,
        result_urls: list[str] | None = None,
        error: str | None = None,
    ) -> tuple[TaskResult, bool]:
        with self._lock:
            existing = self._live_locked(task_id)
            if existing is not None and not existing.status.can_transition_to(status):
                return existing, False
            entry = self._new_entry(task_id, status, result_urls, error)
            self._entries[task_id] = entry
            self._sweep_locked()
        logger.info("Stored task result", extra={"task_id": task_id, "status": status.value})
        return entry, True

    async def get(self, task_id: str) -> TaskResult | None:
        with self._lock:
            return self._live_locked(task_id)

    async def expire(self, task_id: str) -> None:
        with self._lock:
            self._entries.pop(task_id, None)

    async def stats(self) -> dict[str, Any]:
        with self._lock:
            self._sweep_locked()
            keys = list(self._entries)
        return {"size": len(keys), "entries": keys}

    def _live_locked(self, task_id: str) -> TaskResult | None:
        entry = self._entries.get(task_id)
        if entry is None:
            return None
        if entry.is_expired(self._clock(), self._ttl_seconds):
            del self._entries[task_id]
            logger.info("Removed expired task result", extra={"task_id": task_id})
            return None
        return entry

    def _sweep_locked(self) -> None:
        now = self._clock()
        expired = [
            task_id
            for task_id, entry in self._entries.items()
            if entry.is_expired(now, self._ttl_seconds)
        ]
        for task_id in expired:
            del self._entries[task_id]
        if expired:
            logger.info("Swept expired task results", extra={"count": len(expired)})
