"""Candidate status endpoints, in the order they are tried.

The provider has moved its task-status routes more than once. Each entry is
tried with each of its methods until one answers with a recognizable payload.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.resultbridge.domain.models.media_kind import MediaKind


@dataclass(frozen=True)
class StatusEndpoint:
    path: str
    methods: tuple[str, ...] = ("GET",)

    def url(self, base_url: str, task_id: str) -> str:
        return base_url.rstrip("/") + self.path.format(task_id=task_id)


IMAGE_ENDPOINTS: tuple[StatusEndpoint, ...] = (
    StatusEndpoint("/api/v1/gpt4o-image/record-info?taskId={task_id}"),
    StatusEndpoint("/api/v1/jobs/recordInfo?taskId={task_id}"),
)

VIDEO_ENDPOINTS: tuple[StatusEndpoint, ...] = (
    StatusEndpoint("/api/v1/jobs/recordInfo?taskId={task_id}"),
    StatusEndpoint("/api/v1/veo/record-info?taskId={task_id}"),
    StatusEndpoint("/api/v1/veo/generate/{task_id}"),
    StatusEndpoint("/api/v1/veo/task/{task_id}"),
    StatusEndpoint("/api/v1/task/{task_id}"),
    StatusEndpoint("/api/v1/veo/generate/status", methods=("POST",)),
    StatusEndpoint("/api/v1/task/status", methods=("GET", "POST")),
)


def endpoints_for(kind: MediaKind) -> tuple[StatusEndpoint, ...]:
    return IMAGE_ENDPOINTS if kind is MediaKind.IMAGE else VIDEO_ENDPOINTS
