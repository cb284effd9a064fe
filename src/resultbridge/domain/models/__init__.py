from src.resultbridge.domain.models.media_kind import MediaKind
from src.resultbridge.domain.models.payload import NormalizedPayload, PayloadShape
from src.resultbridge.domain.models.poll_outcome import PollOutcome, ResultSource
from src.resultbridge.domain.models.task_result import TaskResult
from src.resultbridge.domain.models.task_status import TaskStatus

__all__ = [
    "MediaKind",
    "NormalizedPayload",
    "PayloadShape",
    "PollOutcome",
    "ResultSource",
    "TaskResult",
    "TaskStatus",
]
