import logging

import inject

from src.resultbridge.domain.repositories import ProviderRepository, ResultCacheRepository
from src.resultbridge.infrastructure.kie.client import KieProviderClient
from src.resultbridge.infrastructure.memory.cache import InMemoryResultCache
from src.resultbridge.infrastructure.redis import RedisClient, RedisResultCache
from src.setup.cache_config import CacheSettings, get_cache_settings
from src.setup.provider_config import ProviderSettings, get_provider_settings

logger = logging.getLogger(__name__)


def build_redis_client(settings: CacheSettings | None = None) -> RedisClient:
    """Create the Redis connection pool for the result cache."""
    if settings is None:
        settings = get_cache_settings()
    return RedisClient(
        settings.REDIS_URL,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
    )


def build_result_cache(settings: CacheSettings | None = None) -> ResultCacheRepository:
    """Create the configured cache backend."""
    if settings is None:
        settings = get_cache_settings()
    if settings.CACHE_BACKEND == "memory":
        logger.warning("Using process-local result cache; entries are lost on restart")
        return InMemoryResultCache(ttl_seconds=settings.RESULT_TTL_SECONDS)
    client = inject.instance(RedisClient)
    return RedisResultCache(
        client.redis,
        ttl_seconds=settings.RESULT_TTL_SECONDS,
        key_prefix=settings.CACHE_KEY_PREFIX,
    )


async def close_redis_client() -> None:
    """Release the Redis pool on shutdown when the Redis backend is in use."""
    if get_cache_settings().CACHE_BACKEND != "redis":
        return
    client = inject.instance(RedisClient)
    await client.close()


def build_provider(settings: ProviderSettings | None = None) -> ProviderRepository:
    """Create the provider client from settings."""
    if settings is None:
        settings = get_provider_settings()
    if not settings.KIE_API_KEY:
        logger.warning("KIE_API_KEY is not set; provider fallbacks will fail")
    return KieProviderClient(
        settings.KIE_API_KEY,
        base_url=settings.KIE_API_BASE,
        history_path=settings.HISTORY_PATH,
        history_page_size=settings.HISTORY_PAGE_SIZE,
        history_max_pages=settings.HISTORY_MAX_PAGES,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )


def _bindings(binder: inject.Binder) -> None:
    binder.bind_to_constructor(RedisClient, build_redis_client)
    binder.bind_to_constructor(ResultCacheRepository, build_result_cache)
    binder.bind_to_constructor(ProviderRepository, build_provider)


def configure_di() -> None:
    """Configure the injector once; later calls are no-ops."""
    if inject.is_configured():
        return
    inject.configure(_bindings)
