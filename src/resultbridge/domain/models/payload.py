from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from src.resultbridge.domain.models.task_status import TaskStatus


class PayloadShape(str, Enum):
    """Provider response shapes the normalizer knows how to read."""

    RECORD_INFO = "record_info"
    JOB_RECORD = "job_record"
    FLAT_CALLBACK = "flat_callback"
    LEGACY_VIDEO = "legacy_video"
    DEEP_SCAN = "deep_scan"
    EMPTY = "empty"


class NormalizedPayload(BaseModel):
    status: TaskStatus = Field(default=TaskStatus.PROCESSING)
    result_urls: list[str] = Field(default_factory=list)
    error: str | None = None
    shape: PayloadShape = Field(default=PayloadShape.EMPTY)

    @property
    def recognized(self) -> bool:
        return self.shape is not PayloadShape.EMPTY

    @property
    def is_settled(self) -> bool:
        return self.status.is_terminal
