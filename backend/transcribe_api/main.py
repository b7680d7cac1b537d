"""FastAPI application factory."""

import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, AsyncGenerator

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from transcribe_api import __version__
from transcribe_api.api.router import api_router
from transcribe_api.api.transcriptions import MSG_NO_AUDIO
from transcribe_api.config import settings
from transcribe_api.core.ai.assemblyai import close_assemblyai_client, get_assemblyai_client
from transcribe_api.core.database.migration_check import require_migrations
from transcribe_api.core.database.session import async_session_factory, engine, get_db
from transcribe_api.core.logging import LoggingMiddleware, get_logger, setup_logging
from transcribe_api.core.storage.uploads import UPLOADS_URL_PREFIX
from transcribe_api.core.transcription.orchestrator import TranscriptionOrchestrator
from transcribe_api.core.transcripts.store import TranscriptStore

SHUTDOWN_DRAIN_TIMEOUT_SECONDS = 25

MSG_INVALID_REQUEST = "Invalid request"
MSG_INTERNAL_ERROR = "Internal server error"

logger = get_logger(__name__)


def build_orchestrator(provider, store: TranscriptStore) -> TranscriptionOrchestrator:
    """Wire the workflow with the configured poll policy and audio retention."""
    return TranscriptionOrchestrator(
        provider=provider,
        store=store,
        max_attempts=settings.transcription_poll_max_attempts,
        poll_interval=settings.transcription_poll_interval_seconds,
        retain_audio_dir=settings.uploads_dir if settings.retain_audio else None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle management."""

    # === STARTUP ===
    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        is_development=settings.is_development,
        logs_dir=settings.logs_dir,
        log_to_file=settings.log_to_file,
        log_file_max_bytes=settings.log_file_max_bytes,
        log_file_backup_count=settings.log_file_backup_count,
    )

    logger.info("application_starting", app_name=settings.app_name, environment=settings.app_env)

    try:
        await require_migrations(
            engine, fail_on_outdated=settings.require_migrations_on_startup
        )
    except RuntimeError as e:
        logger.error("migration_check_failed", error=str(e))
        raise

    if not settings.assemblyai_api_key:
        logger.warning("assemblyai_api_key_missing")

    # Process-wide collaborators, shared by every request
    store = TranscriptStore(async_session_factory)
    orchestrator = build_orchestrator(get_assemblyai_client(), store)

    app.state.transcript_store = store
    app.state.orchestrator = orchestrator
    app.state._start_time = time.time()

    logger.info("application_started_successfully", app_name=settings.app_name)

    yield

    # === SHUTDOWN ===
    shutdown_start = time.time()
    logger.info(
        "application_shutting_down",
        app_name=settings.app_name,
        inflight_transcriptions=orchestrator.inflight_count,
    )

    await orchestrator.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT_SECONDS)
    await close_assemblyai_client()
    await engine.dispose()

    logger.info(
        "application_shutdown_complete",
        app_name=settings.app_name,
        shutdown_duration_seconds=time.time() - shutdown_start,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors as ``{"error": message}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Render request validation failures as 400 ``{"error": message}``.

    A plain form value sent in place of the ``audio`` file counts as a
    missing upload.
    """
    fields = {str(err["loc"][-1]) for err in exc.errors() if err.get("loc")}
    logger.warning("request_validation_failed", fields=sorted(fields))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": MSG_NO_AUDIO if "audio" in fields else MSG_INVALID_REQUEST},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the failure and answer ``500 {"error": ...}``."""
    logger.error(
        "unhandled_exception",
        error_type=type(exc).__name__,
        error=str(exc),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": MSG_INTERNAL_ERROR},
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Audio transcription with per-user history",
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (adds correlation IDs and request context)
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(api_router)

    Path(settings.uploads_dir).mkdir(parents=True, exist_ok=True)
    app.mount(
        UPLOADS_URL_PREFIX,
        StaticFiles(directory=settings.uploads_dir, check_dir=False),
        name="uploads",
    )

    @app.get("/health")
    async def health_check(
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> dict:
        """Liveness and database connectivity - NO AUTH REQUIRED."""
        db_status = "connected"
        db_latency = None
        try:
            db_start = time.time()
            await db.execute(text("SELECT 1"))
            db_latency = round((time.time() - db_start) * 1000, 2)
        except Exception as e:
            db_status = "error"
            logger.error("health_check_database_failed", error=str(e))

        start_time = getattr(app.state, "_start_time", None)
        return {
            "status": "healthy" if db_status == "connected" else "degraded",
            "version": __version__,
            "environment": settings.app_env,
            "uptime_seconds": round(time.time() - start_time, 2) if start_time else None,
            "database": {
                "status": db_status,
                "latency_ms": db_latency,
            },
        }

    return app


app = create_app()


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run("transcribe_api.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
