import logging
from typing import Any, cast

import inject

from src.resultbridge.application.inflight import InFlightRequests
from src.resultbridge.application.recorder import ResultRecorder
from src.resultbridge.application.stuck_recovery import StuckTaskRecovery
from src.resultbridge.domain.exceptions import ProviderExhaustedError
from src.resultbridge.domain.models import (
    MediaKind,
    NormalizedPayload,
    PollOutcome,
    ResultSource,
    TaskResult,
    TaskStatus,
)
from src.resultbridge.domain.normalizer import extract_created_at, extract_task_id, normalize
from src.resultbridge.domain.repositories import ProviderRepository, ResultCacheRepository

logger = logging.getLogger(__name__)


class CallbackService:
    """Turns provider webhooks and manual syncs into cache writes."""

    def __init__(
        self,
        cache: ResultCacheRepository | None = None,
        recorder: ResultRecorder | None = None,
    ) -> None:
        self._cache = cast(ResultCacheRepository, cache or inject.instance(ResultCacheRepository))
        self._recorder = recorder or ResultRecorder(self._cache)

    async def ingest(
        self,
        payload: Any,
        kind: MediaKind,
        fallback_task_id: str | None = None,
    ) -> TaskResult | None:
        """
        Normalize a webhook payload and record it under its task id.

        Returns ``None`` when no task id can be found; nothing is written then.
        """
        task_id = extract_task_id(payload) or fallback_task_id
        if not task_id:
            logger.warning("Callback without task id", extra={"kind": kind.value})
            return None
        normalized = normalize(payload, kind)
        logger.info(
            "Callback normalized",
            extra={
                "task_id": task_id,
                "kind": kind.value,
                "status": normalized.status.value,
                "shape": normalized.shape.value,
                "url_count": len(normalized.result_urls),
            },
        )
        return await self._recorder.record(
            task_id, normalized.status, normalized.result_urls, normalized.error
        )

    async def sync(
        self,
        task_id: str,
        result_urls: list[str],
        status: TaskStatus = TaskStatus.SUCCESS,
    ) -> TaskResult:
        """Force a result into the cache, e.g. when a callback never arrived."""
        logger.info("Manual result sync", extra={"task_id": task_id, "status": status.value})
        return await self._recorder.record(task_id, status, result_urls, force=True)

    async def lookup(self, task_id: str) -> TaskResult | None:
        return await self._cache.get(task_id)

    async def stats(self) -> dict[str, Any]:
        return await self._cache.stats()


class ReconciliationService:
    """Answers "is task X done?" from the cache, the provider, then heuristics."""

    def __init__(
        self,
        cache: ResultCacheRepository | None = None,
        provider: ProviderRepository | None = None,
        recorder: ResultRecorder | None = None,
        recovery: StuckTaskRecovery | None = None,
    ) -> None:
        self._cache = cast(ResultCacheRepository, cache or inject.instance(ResultCacheRepository))
        self._provider = cast(ProviderRepository, provider or inject.instance(ProviderRepository))
        self._recorder = recorder or ResultRecorder(self._cache)
        self._recovery = recovery or StuckTaskRecovery(self._provider)
        self._inflight: InFlightRequests[PollOutcome] = InFlightRequests()

    async def poll(self, task_id: str, kind: MediaKind = MediaKind.VIDEO) -> PollOutcome:
        """
        Resolve the current outcome for ``task_id``.

        Raises ``ProviderExhaustedError`` only when every provider endpoint failed
        and no other source knows the task.
        """
        cached = await self._cache.get(task_id)
        if cached is not None and _is_final(cached):
            logger.debug("Poll served from cache", extra={"task_id": task_id})
            return PollOutcome.from_result(cached, ResultSource.CACHE)
        return await self._inflight.run(task_id, lambda: self._reconcile(task_id, kind))

    async def _reconcile(self, task_id: str, kind: MediaKind) -> PollOutcome:
        exhausted: ProviderExhaustedError | None = None
        try:
            payload = await self._provider.query_status(task_id, kind)
        except ProviderExhaustedError as exc:
            logger.warning(
                "Provider status query exhausted",
                extra={"task_id": task_id, "last_error": exc.last_error},
            )
            exhausted = exc
        else:
            normalized = normalize(payload, kind)
            if normalized.is_settled:
                return await self._settle(task_id, normalized, ResultSource.PROVIDER)

        if kind is MediaKind.IMAGE:
            outcome = await self._from_history(task_id)
            if outcome is not None:
                return outcome

        if exhausted is not None:
            raise exhausted
        return PollOutcome.processing(task_id)

    async def _from_history(self, task_id: str) -> PollOutcome | None:
        record = await self._provider.find_history_record(task_id)
        if record is None:
            return None
        normalized = normalize(record, MediaKind.IMAGE)
        if normalized.is_settled:
            return await self._settle(task_id, normalized, ResultSource.HISTORY)

        created_at = extract_created_at(record)
        if created_at is not None and self._recovery.enabled and self._recovery.is_stuck(created_at):
            url = await self._recovery.recover(task_id, created_at)
            if url is not None:
                recovered = NormalizedPayload(status=TaskStatus.SUCCESS, result_urls=[url])
                return await self._settle(task_id, recovered, ResultSource.STUCK_RECOVERY)
        return PollOutcome.processing(task_id)

    async def _settle(
        self, task_id: str, normalized: NormalizedPayload, source: ResultSource
    ) -> PollOutcome:
        stored = await self._recorder.record(
            task_id, normalized.status, normalized.result_urls, normalized.error
        )
        return PollOutcome.from_result(stored, source)


def _is_final(result: TaskResult) -> bool:
    if result.status is TaskStatus.FAILED:
        return True
    return result.status is TaskStatus.SUCCESS and bool(result.result_urls)
