"""Best-effort extraction of ``(status, result_urls, error)`` from provider payloads.

The provider does not document its response shapes and they have drifted
over time, so nothing here assumes a schema. Extraction runs over ordered
tables of field paths, each tagged with the :class:`PayloadShape` it belongs
to, and the first non-empty hit wins. Strings found at a candidate path are
re-parsed as JSON before being treated as a bare URL. Only when no table
entry produces a URL does a depth-bounded scan of the whole payload run.

Nothing in this module raises on odd input. An unreadable payload
normalizes to ``(PROCESSING, [], None)``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from src.resultbridge.domain.models.media_kind import MediaKind
from src.resultbridge.domain.models.payload import NormalizedPayload, PayloadShape
from src.resultbridge.domain.models.task_status import TaskStatus

logger = logging.getLogger(__name__)

MAX_SCAN_DEPTH = 7
DEFAULT_FAILURE_MESSAGE = "Generation failed"

_MISSING = object()


@dataclass(frozen=True)
class FieldPath:
    keys: tuple[str, ...]
    shape: PayloadShape

    def lookup(self, payload: Any) -> Any:
        current = payload
        for key in self.keys:
            if not isinstance(current, dict) or key not in current:
                return _MISSING
            current = current[key]
        return current

    def __str__(self) -> str:
        return ".".join(self.keys)


def _paths(shape: PayloadShape, *dotted: str) -> tuple[FieldPath, ...]:
    return tuple(FieldPath(tuple(path.split(".")), shape) for path in dotted)


RESULT_PATHS: tuple[FieldPath, ...] = (
    *_paths(
        PayloadShape.RECORD_INFO,
        "data.response.resultUrls",
        "data.response.result_urls",
        "data.response",
        "response.resultUrls",
        "response.result_urls",
        "data.resultUrls",
        "data.result_urls",
    ),
    *_paths(PayloadShape.JOB_RECORD, "data.resultJson", "resultJson"),
    *_paths(
        PayloadShape.FLAT_CALLBACK,
        "resultUrls",
        "result_urls",
        "image_urls",
        "data.image_urls",
        "response",
    ),
    *_paths(
        PayloadShape.LEGACY_VIDEO,
        "data.videoUrl",
        "data.video_url",
        "data.imageUrl",
        "data.url",
        "videoUrl",
        "video_url",
        "imageUrl",
        "url",
        "result.videoUrl",
        "result.url",
        "output.videoUrl",
        "output.url",
    ),
)

# Numeric flags are checked before string statuses.
SUCCESS_FLAG_PATHS: tuple[FieldPath, ...] = (
    *_paths(PayloadShape.RECORD_INFO, "data.successFlag"),
    *_paths(PayloadShape.FLAT_CALLBACK, "successFlag"),
)

STATUS_PATHS: tuple[FieldPath, ...] = (
    *_paths(PayloadShape.RECORD_INFO, "data.status"),
    *_paths(PayloadShape.FLAT_CALLBACK, "status"),
    *_paths(PayloadShape.JOB_RECORD, "data.state", "state"),
)

ERROR_PATHS: tuple[FieldPath, ...] = _paths(
    PayloadShape.EMPTY,
    "error",
    "errorMessage",
    "data.error",
    "data.failMsg",
    "failMsg",
    "data.failReason",
)

TASK_ID_PATHS: tuple[FieldPath, ...] = _paths(
    PayloadShape.EMPTY, "data.taskId", "taskId", "task_id", "data.id", "id"
)

CREATED_AT_PATHS: tuple[FieldPath, ...] = _paths(
    PayloadShape.EMPTY, "createTime", "createdAt", "created_at", "data.createTime"
)

_SUCCESS_FLAGS = {0: TaskStatus.PROCESSING, 1: TaskStatus.SUCCESS, 2: TaskStatus.FAILED, 3: TaskStatus.FAILED}

_STATUS_WORDS = {
    "success": TaskStatus.SUCCESS,
    "succeeded": TaskStatus.SUCCESS,
    "completed": TaskStatus.SUCCESS,
    "processing": TaskStatus.PROCESSING,
    "pending": TaskStatus.PROCESSING,
    "waiting": TaskStatus.PROCESSING,
    "queuing": TaskStatus.PROCESSING,
    "generating": TaskStatus.PROCESSING,
    "failed": TaskStatus.FAILED,
    "fail": TaskStatus.FAILED,
    "error": TaskStatus.FAILED,
    "generate_failed": TaskStatus.FAILED,
}


def is_http_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(("http://", "https://"))


def _dedupe(urls: list[str]) -> list[str]:
    return list(dict.fromkeys(urls))


def _urls_from_value(value: Any, depth: int, seen: dict[int, Any]) -> list[str]:
    if depth > MAX_SCAN_DEPTH or value is None:
        return []
    if isinstance(value, (dict, list, tuple)):
        if id(value) in seen:
            return []
        # Keeping the object pins its id for the rest of the call.
        seen[id(value)] = value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return [value] if is_http_url(value) else []
        if isinstance(parsed, str):
            return [parsed] if is_http_url(parsed) else []
        return _urls_from_value(parsed, depth + 1, seen)
    if isinstance(value, (list, tuple)):
        urls: list[str] = []
        for item in value:
            urls.extend(_urls_from_value(item, depth + 1, seen))
        return _dedupe(urls)
    if isinstance(value, dict):
        urls, _ = _direct_urls(value, depth + 1, seen)
        return urls
    return []


def _direct_urls(
    payload: Any, depth: int, seen: dict[int, Any]
) -> tuple[list[str], PayloadShape | None]:
    for path in RESULT_PATHS:
        candidate = path.lookup(payload)
        if candidate is _MISSING:
            continue
        urls = _urls_from_value(candidate, depth, seen)
        if urls:
            return urls, path.shape
    return [], None


def scan_urls(payload: Any, max_depth: int = MAX_SCAN_DEPTH) -> list[str]:
    """Collect every http(s) string leaf up to ``max_depth`` levels below the root.

    Containers are tracked by identity so self-referential graphs terminate.
    """
    found: dict[str, None] = {}
    seen: set[int] = set()

    def visit(value: Any, depth: int) -> None:
        if depth > max_depth:
            return
        if isinstance(value, str):
            if is_http_url(value):
                found.setdefault(value)
            return
        if isinstance(value, (dict, list, tuple)):
            if id(value) in seen:
                return
            seen.add(id(value))
            children = value.values() if isinstance(value, dict) else value
            for child in children:
                visit(child, depth + 1)

    visit(payload, 0)
    return list(found)


def pick_primary_url(urls: list[str], kind: MediaKind) -> str | None:
    if not urls:
        return None
    if kind is MediaKind.VIDEO:
        for url in urls:
            lowered = url.lower()
            if "mp4" in lowered or "video" in lowered:
                return url
    return urls[0]


def _status_from_flag(value: Any) -> TaskStatus | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, int):
        return _SUCCESS_FLAGS.get(value)
    return None


def _status_from_word(value: Any) -> TaskStatus | None:
    if isinstance(value, str):
        return _STATUS_WORDS.get(value.strip().lower())
    return _status_from_flag(value)


def infer_status(payload: Any) -> tuple[TaskStatus | None, PayloadShape | None]:
    for path in SUCCESS_FLAG_PATHS:
        status = _status_from_flag(path.lookup(payload))
        if status is not None:
            return status, path.shape
    for path in STATUS_PATHS:
        status = _status_from_word(path.lookup(payload))
        if status is not None:
            return status, path.shape
    return None, None


def _first_text(payload: Any, paths: tuple[FieldPath, ...]) -> str | None:
    for path in paths:
        value = path.lookup(payload)
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            text = str(value).strip()
            if text:
                return text
    return None


def extract_error(payload: Any) -> str | None:
    return _first_text(payload, ERROR_PATHS)


def extract_task_id(payload: Any) -> str | None:
    return _first_text(payload, TASK_ID_PATHS)


def extract_created_at(record: Any) -> datetime | None:
    """Read a record creation time given as epoch seconds, epoch millis or ISO text."""
    for path in CREATED_AT_PATHS:
        value = path.lookup(record)
        if isinstance(value, bool) or value is _MISSING or value is None:
            continue
        try:
            if isinstance(value, (int, float)):
                seconds = value / 1000 if value > 1e11 else value
                return datetime.fromtimestamp(seconds, UTC)
            if isinstance(value, str) and value.strip():
                parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
                return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
        except (ValueError, OverflowError, OSError):
            logger.debug("Unparseable record timestamp", extra={"value": value})
    return None


def normalize(payload: Any, kind: MediaKind = MediaKind.IMAGE) -> NormalizedPayload:
    """Normalize an arbitrarily shaped provider payload."""
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError:
            pass

    # Each container is followed at most once per call.
    urls, shape = _direct_urls(payload, 0, {id(payload): payload})
    if not urls:
        urls = scan_urls(payload)
        if urls:
            shape = PayloadShape.DEEP_SCAN
            primary = pick_primary_url(urls, kind)
            urls = [primary] + [url for url in urls if url != primary]

    status, status_shape = infer_status(payload)
    if status is None:
        status = TaskStatus.SUCCESS if urls else TaskStatus.PROCESSING
    shape = shape or status_shape or PayloadShape.EMPTY

    error = None
    if status is TaskStatus.FAILED:
        error = extract_error(payload) or DEFAULT_FAILURE_MESSAGE

    return NormalizedPayload(status=status, result_urls=urls, error=error, shape=shape)
