from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.resultbridge.domain.models import PollOutcome, ResultSource, TaskResult, TaskStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CallbackAck(CamelModel):
    success: bool = Field(description="Whether the callback was processed.")
    message: str = Field(description="Human-readable outcome.")
    warning: str | None = Field(default=None, description="Set when nothing was recorded.")
    task_id: str | None = None
    status: TaskStatus | None = None
    result_urls: list[str] | None = None


class PollResponse(CamelModel):
    task_id: str
    status: TaskStatus
    result_urls: list[str] = Field(default_factory=list)
    error: str | None = None
    source: ResultSource = Field(description="Where the answer came from.")

    @classmethod
    def from_outcome(cls, outcome: PollOutcome) -> "PollResponse":
        return cls(
            task_id=outcome.task_id,
            status=outcome.status,
            result_urls=outcome.result_urls,
            error=outcome.error,
            source=outcome.source,
        )


class SyncRequest(CamelModel):
    task_id: str = Field(min_length=1)
    image_url: str | list[str] = Field(description="One URL or a list of URLs.")
    status: TaskStatus = TaskStatus.SUCCESS

    @property
    def result_urls(self) -> list[str]:
        return [self.image_url] if isinstance(self.image_url, str) else list(self.image_url)


class CachedResult(CamelModel):
    task_id: str
    status: TaskStatus
    result_urls: list[str]
    error: str | None = None
    recorded_at: datetime

    @classmethod
    def from_result(cls, result: TaskResult) -> "CachedResult":
        return cls.model_validate(result.model_dump())


class SyncLookupResponse(CamelModel):
    found: bool
    task_id: str
    result: CachedResult | None = None
    image_url: str | None = None


class CacheStatsResponse(BaseModel):
    size: int
    entries: list[str]
