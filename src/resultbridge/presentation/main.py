from fastapi import FastAPI

from src.setup.api_config import ApiSettings
from src.setup.app_config import close_redis_client, configure_di
from src.setup.logging_config import configure_logging

settings = ApiSettings()
configure_logging(settings.LOG_LEVEL)
configure_di()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Bridges provider task callbacks to frontend polling",
)

async def _close_cache_connections() -> None:
    await close_redis_client()

app.add_event_handler("shutdown", _close_cache_connections)

from src.resultbridge.presentation.routes import router as api_router  # noqa: E402

app.include_router(api_router, prefix="")
