from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from starlette.requests import Request

from skillboard.api.router import api_router
from skillboard.core.config import Settings, get_settings
from skillboard.core.telemetry import TelemetryRuntime, setup_api_telemetry, shutdown_api_telemetry
from skillboard.services.repository import get_repository

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    telemetry_runtime: TelemetryRuntime | None = None

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        logger.info(
            "api starting environment=%s page_sizes recent=%s match=%s max=%s job_default_active_days=%s",
            settings.environment,
            settings.listing_recent_page_size,
            settings.listing_match_page_size,
            settings.listing_max_page_size,
            settings.job_default_active_days,
        )
        try:
            yield
        finally:
            if telemetry_runtime is not None:
                shutdown_api_telemetry(application, telemetry_runtime)
            await get_repository().close()
            get_repository.cache_clear()

    application = FastAPI(title=settings.app_name, lifespan=lifespan)
    telemetry_runtime = setup_api_telemetry(application, settings)
    application.middleware("http")(log_request)
    application.include_router(api_router)
    return application


async def log_request(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    # Storage outages surface as 503s; keep them visible at the default level.
    level = logging.WARNING if response.status_code >= 500 else logging.INFO
    logger.log(
        level,
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


app = create_app()
