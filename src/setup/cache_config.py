from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class CacheSettings(BaseSettings):
    """Configuration for the task result cache backend."""

    CACHE_BACKEND: Literal["redis", "memory"] = "redis"
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_SOCKET_TIMEOUT_SECONDS: float = 5.0
    RESULT_TTL_SECONDS: int = 1800
    CACHE_KEY_PREFIX: str = "task-result:"

    model_config = ConfigDict(env_file=".env", extra="ignore")


def get_cache_settings() -> CacheSettings:
    """Return a fresh cache settings instance."""
    return CacheSettings()
