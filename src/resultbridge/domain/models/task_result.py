from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from src.resultbridge.domain.models.task_status import TaskStatus


class TaskResult(BaseModel):
    task_id: str = Field(description="Identifier assigned by the generation provider.")
    status: TaskStatus = Field(description="Normalized task status.")
    result_urls: list[str] = Field(
        default_factory=list, description="Generated media URLs in provider order."
    )
    error: str | None = Field(default=None, description="Failure reason, if failed.")
    recorded_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When this entry was written to the cache.",
    )

    def is_expired(self, now: datetime, ttl_seconds: float) -> bool:
        return (now - self.recorded_at).total_seconds() > ttl_seconds
