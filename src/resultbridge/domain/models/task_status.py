from enum import Enum


class TaskStatus(str, Enum):
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not TaskStatus.PROCESSING

    def can_transition_to(self, new: "TaskStatus") -> bool:
        """PROCESSING may move anywhere; terminal states only accept themselves."""
        if not self.is_terminal:
            return True
        return new is self
