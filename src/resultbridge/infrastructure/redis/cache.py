from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import WatchError

from src.resultbridge.domain.models.task_result import TaskResult
from src.resultbridge.domain.models.task_status import TaskStatus
from src.resultbridge.domain.repositories import ResultCacheRepository

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class RedisResultCache(ResultCacheRepository):
    """Redis-backed result cache; Redis key expiry enforces the TTL."""

    def __init__(
        self,
        redis: Redis,
        *,
        ttl_seconds: int = 1800,
        key_prefix: str = "task-result:",
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._redis = redis
        self._ttl_seconds = ttl_seconds
        self._prefix = key_prefix
        self._clock = clock

    def _key(self, task_id: str) -> str:
        return f"{self._prefix}{task_id}"

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
        await self._redis.set(self._key(task_id), entry.model_dump_json(), ex=self._ttl_seconds)
        logger.info("Stored task result", extra={"task_id": task_id, "status": status.value})
        return entry

    async def put_if_allowed(
        self,
        task_id: str,
        status: TaskStatus,
        result_urls: list[str] | None = None,
        error: str | None = None,
    ) -> tuple[TaskResult, bool]:
        key = self._key(task_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    existing = self._decode(task_id, await pipe.get(key))
                    if existing is not None and not existing.status.can_transition_to(status):
                        return existing, False
                    entry = self._new_entry(task_id, status, result_urls, error)
                    pipe.multi()
                    pipe.set(key, entry.model_dump_json(), ex=self._ttl_seconds)
                    await pipe.execute()
                except WatchError:
                    logger.debug("Result key changed during guarded write", extra={"task_id": task_id})
                    continue
                logger.info("Stored task result", extra={"task_id": task_id, "status": status.value})
                return entry, True

    async def get(self, task_id: str) -> TaskResult | None:
        raw = await self._redis.get(self._key(task_id))
        if raw is None:
            return None
        entry = self._decode(task_id, raw)
        if entry is None:
            await self.expire(task_id)
        return entry

    def _decode(self, task_id: str, raw: str | None) -> TaskResult | None:
        if raw is None:
            return None
        try:
            entry = TaskResult.model_validate_json(raw)
        except ValidationError:
            logger.warning("Dropping unreadable cache entry", extra={"task_id": task_id})
            return None
        # Guards against keys written without EX by older deployments.
        if entry.is_expired(self._clock(), self._ttl_seconds):
            return None
        return entry

    async def expire(self, task_id: str) -> None:
        await self._redis.delete(self._key(task_id))

    async def stats(self) -> dict[str, Any]:
        entries = [
            key[len(self._prefix):]
            async for key in self._redis.scan_iter(match=f"{self._prefix}*")
        ]
        return {"size": len(entries), "entries": entries}
