from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from src.resultbridge.domain.models.task_result import TaskResult
from src.resultbridge.domain.models.task_status import TaskStatus


class ResultSource(str, Enum):
    CACHE = "cache"
    PROVIDER = "provider"
    HISTORY = "history"
    STUCK_RECOVERY = "stuck_recovery"
    NONE = "none"


class PollOutcome(BaseModel):
    task_id: str
    status: TaskStatus
    result_urls: list[str] = Field(default_factory=list)
    error: str | None = None
    source: ResultSource = ResultSource.NONE

    @classmethod
    def from_result(cls, result: TaskResult, source: ResultSource) -> "PollOutcome":
        return cls(
            task_id=result.task_id,
            status=result.status,
            result_urls=list(result.result_urls),
            error=result.error,
            source=source,
        )

    @classmethod
    def processing(cls, task_id: str) -> "PollOutcome":
        return cls(task_id=task_id, status=TaskStatus.PROCESSING)
