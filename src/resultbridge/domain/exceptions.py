class ProviderNotConfiguredError(Exception):
    """Raised when the provider API key is missing."""

    def __init__(self) -> None:
        super().__init__("KIE_API_KEY is not configured")


class ProviderRequestError(Exception):
    """Raised when a single provider endpoint attempt fails."""

    def __init__(self, endpoint: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(f"{endpoint}: {reason}")
        self.endpoint = endpoint
        self.reason = reason
        self.status_code = status_code


class ProviderExhaustedError(Exception):
    """Raised when every candidate provider endpoint failed for a task."""

    def __init__(self, task_id: str, last_error: Exception | str | None = None) -> None:
        detail = str(last_error) if last_error is not None else "no candidate endpoint answered"
        super().__init__(f"All provider endpoints failed for task '{task_id}': {detail}")
        self.task_id = task_id
        self.last_error = detail
