"""
FastAPI service for the job intelligence pipeline.

Wires settings, logging, CORS, error rendering and the job-intel routes.
Every error body is {"error": "<message>"}.

Run:
    uvicorn intel_service.app:app --port 8000
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError as BodyValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from job_intel import __version__
from job_intel.common.config import Config
from job_intel.common.error_handling import JobIntelError, RequestValidationError, client_message
from job_intel.common.logger import setup_logging

from .config import IntelSettings, validate_config_on_startup
from .dependencies import ServiceContainer, build_container
from .models import CacheStats, HealthResponse
from .routes import job_intel_router

logger = logging.getLogger(__name__)

INVALID_BODY_MESSAGE = "Request body must be a JSON object."


def _error(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as {"error": "..."}."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed."
        return _error(exc.status_code, message, getattr(exc, "headers", None))

    @app.exception_handler(BodyValidationError)
    async def body_validation_handler(request: Request, exc: BodyValidationError) -> JSONResponse:
        logger.info(f"Rejected malformed body on {request.url.path}: {exc.errors()}")
        return _error(400, INVALID_BODY_MESSAGE)

    @app.exception_handler(RequestValidationError)
    async def input_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(exc.status_code, exc.user_message)

    @app.exception_handler(JobIntelError)
    async def pipeline_error_handler(request: Request, exc: JobIntelError) -> JSONResponse:
        logger.error(f"Unhandled pipeline error on {request.url.path}: {exc.message}")
        return _error(502, client_message(exc))


def create_app(
    settings: Optional[IntelSettings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Service settings (defaults to environment, validated)
        container: Pre-built dependencies (tests inject mocks here)

    Returns:
        Configured FastAPI app
    """
    if container is not None:
        settings = container.settings
    settings = validate_config_on_startup(settings)
    setup_logging(settings.log_level, settings.log_format)
    logger.info(Config.summary())

    app = FastAPI(title="Job Intelligence Service", version=__version__)
    app.state.container = container or build_container(settings)

    if settings.cors_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)
    app.include_router(job_intel_router)

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        """Liveness plus cache occupancy."""
        state: ServiceContainer = request.app.state.container
        return HealthResponse(
            status="healthy",
            environment=state.settings.environment,
            caches=CacheStats(
                job_pages=len(state.job_page_cache),
                research=len(state.research_cache),
            ),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    return app


app = create_app()
