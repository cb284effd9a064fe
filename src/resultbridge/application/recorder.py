import logging

import inject

from src.resultbridge.domain.models.task_result import TaskResult
from src.resultbridge.domain.models.task_status import TaskStatus
from src.resultbridge.domain.repositories import ResultCacheRepository

logger = logging.getLogger(__name__)


class ResultRecorder:
    """Writes results to the cache without letting a terminal task regress."""

    def __init__(self, cache: ResultCacheRepository | None = None) -> None:
        self._cache = cache or inject.instance(ResultCacheRepository)

    async def record(
        self,
        task_id: str,
        status: TaskStatus,
        result_urls: list[str] | None = None,
        error: str | None = None,
        *,
        force: bool = False,
    ) -> TaskResult:
        """
        Store a result for ``task_id`` and return the entry that is live afterwards.

        When the cached entry is terminal and ``status`` would move it elsewhere,
        the write is dropped and the cached entry is returned unchanged.
        """
        if force:
            return await self._cache.put(task_id, status, result_urls, error)
        entry, written = await self._cache.put_if_allowed(task_id, status, result_urls, error)
        if not written:
            logger.info(
                "Ignoring regressive result write",
                extra={
                    "task_id": task_id,
                    "cached_status": entry.status.value,
                    "incoming_status": status.value,
                },
            )
        return entry
