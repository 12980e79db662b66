"""Application entry point and FastAPI app factory."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .config.settings import settings
from .controllers import burnout, cbt, media
from .controllers.dependencies import get_aggregator, get_context_index
from .middleware import StructuredLoggingMiddleware, TelemetryMiddleware
from .pipelines.analysis import (
    AnalysisValidationError,
    DuplicateSubmissionError,
    ProviderFailureError,
    UnexpectedJobStateError,
)
from .pipelines.sessions import (
    AssessmentIncompleteError,
    InvalidResponseError,
    SessionClosedError,
    SessionNotFoundError,
    UnitNotFoundError,
)
from .services import EmbeddingError, LlmInvocationError, ResponseContractError, StorageError

logger = logging.getLogger(__name__)

_ERROR_STATUS: tuple[tuple[type[Exception], int], ...] = (
    (AnalysisValidationError, status.HTTP_400_BAD_REQUEST),
    (InvalidResponseError, status.HTTP_400_BAD_REQUEST),
    (SessionNotFoundError, status.HTTP_404_NOT_FOUND),
    (UnitNotFoundError, status.HTTP_404_NOT_FOUND),
    (AssessmentIncompleteError, status.HTTP_409_CONFLICT),
    (SessionClosedError, status.HTTP_409_CONFLICT),
    (DuplicateSubmissionError, status.HTTP_409_CONFLICT),
    (LlmInvocationError, status.HTTP_502_BAD_GATEWAY),
    (ResponseContractError, status.HTTP_502_BAD_GATEWAY),
    (ProviderFailureError, status.HTTP_502_BAD_GATEWAY),
    (UnexpectedJobStateError, status.HTTP_502_BAD_GATEWAY),
    (StorageError, status.HTTP_502_BAD_GATEWAY),
    (EmbeddingError, status.HTTP_502_BAD_GATEWAY),
)


def _configure_logging() -> None:
    """Ensure structured middleware logs stream to stdout and file."""

    logging.getLogger().handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    )

    log_path = Path(settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=1_000_000,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(file_handler)
    root_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    middleware_logger = logging.getLogger("app.middleware.structured")
    middleware_logger.handlers.clear()
    middleware_stdout = logging.StreamHandler(sys.stdout)
    middleware_stdout.setFormatter(logging.Formatter("%(message)s"))
    middleware_logger.addHandler(middleware_stdout)
    middleware_logger.setLevel(logging.INFO)
    middleware_logger.propagate = False

    # Job submissions, polls and terminal outcomes also go to their own file.
    pipeline_log_path = Path(settings.analysis_log_file)
    pipeline_log_path.parent.mkdir(parents=True, exist_ok=True)
    pipeline_handler = RotatingFileHandler(
        pipeline_log_path,
        maxBytes=500_000,
        backupCount=5,
        encoding="utf-8",
    )
    pipeline_handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    )
    pipeline_logger = logging.getLogger("app.pipelines.analysis")
    pipeline_logger.handlers.clear()
    pipeline_logger.addHandler(pipeline_handler)
    pipeline_logger.setLevel(logging.INFO)

    noisy_loggers = [
        "botocore",
        "boto3",
        "urllib3",
        "httpx",
    ]
    for name in noisy_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def _status_for(exc: Exception) -> int:
    for exc_type, code in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        description="Multimodal burnout assessment and CBT session backend",
    )

    app.add_middleware(TelemetryMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.include_router(burnout.router)
    app.include_router(cbt.router)
    app.include_router(media.router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        """Root endpoint."""

        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "status": "operational",
        }

    @app.get("/health", include_in_schema=False)
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""

        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose application metrics for Prometheus scraping."""

        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    async def domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        code = _status_for(exc)
        if code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.warning("%s %s failed upstream: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=code,
            content={"detail": str(exc), "code": type(exc).__name__},
        )

    for exc_type, _ in _ERROR_STATUS:
        app.add_exception_handler(exc_type, domain_exception_handler)

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    @app.on_event("startup")
    async def startup_event() -> None:
        index = app.dependency_overrides.get(get_context_index, get_context_index)()
        try:
            await index.seed_interventions()
        except EmbeddingError as exc:
            logger.warning("Intervention library not seeded: %s", exc)

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        aggregator = app.dependency_overrides.get(get_aggregator, get_aggregator)()
        for session_id in await aggregator.store.list_ids():
            await aggregator.drain(session_id)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
