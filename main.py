"""Task bridge backend - main application entry point.

FastAPI application factory for the service that fronts the Parallel task and
FindAll APIs and relays their long-running runs to HTTP clients, either as a
single blocking response or as a Server-Sent Events stream.

Entry points:
    - /health - Health check endpoint
    - /api/v1/research/* - Research, web search and FindAll runs
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import Settings, build_settings
from core.exceptions import ConfigurationError, ServiceError, ValidationError
from core.http.errors import format_configuration_error, format_exception, format_validation_error
from core.logging import setup_logging
from core.observability import register_http_request_logging
from core.utils.env import is_production
from features.research import build_research_services
from features.research.routes import router as research_router

# Track startup time in non-production environments
start_time = time.time() if not is_production() else None

setup_logging()

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


def create_app(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Application factory returning a configured FastAPI instance.

    ``http_client`` lets tests inject a client backed by ``httpx.MockTransport``;
    an injected client is left open on shutdown.
    """

    resolved_settings = settings or build_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Build shared services on startup and release them on shutdown."""

        client = http_client or httpx.AsyncClient(timeout=resolved_settings.http_timeout_seconds)
        services = build_research_services(resolved_settings, client)
        app.state.research = services
        logger.info(
            "Research services ready (base_url=%s, run_logs=%s)",
            resolved_settings.parallel_base_url,
            resolved_settings.run_log_dir,
        )
        try:
            yield
        finally:
            logger.info("Application shutting down...")
            await services.aclose()
            if http_client is None:
                await client.aclose()
            app.state.research = None
            logger.info("Shutdown complete")

    app = FastAPI(
        title="Task Bridge Backend",
        description="Bridges long-running remote research tasks to blocking and streaming HTTP clients",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    if is_production():
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        # Any localhost port in dev
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=r"^http://(localhost|127\.0\.0\.1)(:\d+)?$",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error("Configuration error on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=format_configuration_error(exc),
        )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=format_validation_error(exc),
        )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        logger.error("Unhandled service error on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=format_exception(exc),
        )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "version": APP_VERSION}

    register_http_request_logging(app)

    app.include_router(research_router)

    timing_info = ""
    if start_time is not None:
        timing_info = f" (loaded in {time.time() - start_time:.2f}s)"
    logger.info("Application created with research router%s", timing_info)
    return app


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
