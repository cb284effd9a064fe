from src.resultbridge.infrastructure.redis.cache import RedisResultCache
from src.resultbridge.infrastructure.redis.client import RedisClient

__all__ = ["RedisClient", "RedisResultCache"]
