from __future__ import annotations

from typing import Any, Protocol

from src.resultbridge.domain.models.media_kind import MediaKind
from src.resultbridge.domain.models.task_result import TaskResult
from src.resultbridge.domain.models.task_status import TaskStatus


class ResultCacheRepository(Protocol):
    """Volatile task id -> result store with TTL expiry."""

    async def put(
        self,
        task_id: str,
        status: TaskStatus,
        result_urls: list[str] | None = None,
        error: str | None = None,
    ) -> TaskResult:
        """Overwrite the entry for ``task_id`` and return what was stored."""

    async def put_if_allowed(
        self,
        task_id: str,
        status: TaskStatus,
        result_urls: list[str] | None = None,
        error: str | None = None,
    ) -> tuple[TaskResult, bool]:
        """
        Write unless the live entry is terminal and ``status`` would change it.

        The check and the write are one atomic step. Returns the entry that is
        live afterwards and whether this call wrote it.
        """

    async def get(self, task_id: str) -> TaskResult | None:
        """Return the live entry for ``task_id`` or ``None`` when absent or expired."""

    async def expire(self, task_id: str) -> None:
        """Drop the entry for ``task_id`` if present."""

    async def stats(self) -> dict[str, Any]:
        """Return ``{"size": int, "entries": [task ids]}`` for live keys."""


class ProviderRepository(Protocol):
    """Outbound contract with the generation provider."""

    async def query_status(self, task_id: str, kind: MediaKind) -> Any:
        """Return the first recognizable status payload, or raise ``ProviderExhaustedError``."""

    async def find_history_record(self, task_id: str) -> dict[str, Any] | None:
        """Scan the paginated record history for ``task_id``."""

    async def probe_url(self, url: str) -> bool:
        """Return ``True`` when a HEAD request to ``url`` succeeds."""
