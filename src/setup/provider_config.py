from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class ProviderSettings(BaseSettings):
    """Configuration for the generation provider client and its fallbacks."""

    KIE_API_KEY: str = ""
    KIE_API_BASE: str = "https://api.kie.ai"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    HISTORY_PATH: str = "/api/v1/gpt4o-image/record-list"
    HISTORY_PAGE_SIZE: int = 20
    HISTORY_MAX_PAGES: int = 5

    STUCK_RECOVERY_ENABLED: bool = False
    STUCK_TASK_AGE_SECONDS: int = 600
    STUCK_GUESS_URL_TEMPLATE: str = (
        "https://tempfile.aiquickdraw.com/s/{task_id}_{timestamp}_{candidate}.png"
    )
    STUCK_GUESS_CANDIDATES: list[str] = ["0", "1", "2"]
    STUCK_GUESS_MAX_ATTEMPTS: int = 10

    model_config = ConfigDict(env_file=".env", extra="ignore")


def get_provider_settings() -> ProviderSettings:
    """Return a fresh provider settings instance."""
    return ProviderSettings()
