from __future__ import annotations

import logging

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class RedisClient:
    """Owns the connection pool behind the Redis result cache."""

    def __init__(
        self,
        url: str,
        *,
        max_connections: int = 20,
        socket_timeout: float = 5.0,
    ) -> None:
        self._redis = Redis.from_url(
            url,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            retry_on_timeout=True,
            decode_responses=True,
        )

    @property
    def redis(self) -> Redis:
        return self._redis

    async def close(self) -> None:
        await self._redis.aclose(close_connection_pool=True)
        logger.info("Closed Redis connection pool")
