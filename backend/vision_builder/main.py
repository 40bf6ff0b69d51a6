"""Vision Builder Backend: FastAPI application entry point."""

import uuid
from contextlib import asynccontextmanager

# Logging is configured before importing anything that calls structlog.get_logger,
# since loggers cache their processor chain on first use.
from vision_builder.core.config import get_settings as _get_settings_early
from vision_builder.core.logging import configure_logging_from_settings

configure_logging_from_settings(_get_settings_early())

import structlog

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vision_builder.api.routes import api_router
from vision_builder.core.config import get_settings
from vision_builder.core.exceptions import (
    AnalysisInProgressError,
    AnalysisNotFoundError,
    IncompleteAnswersError,
    PersistenceError,
    SessionNotFoundError,
    TerminalServiceError,
    TransientServiceError,
    ValidationError,
    VisionBuilderError,
)
from vision_builder.db import close_db, init_db
from vision_builder.generation import build_text_generator
from vision_builder.middleware.correlation import get_correlation_id, setup_correlation_middleware
from vision_builder.services.analysis_orchestrator import RunningAnalyses

logger = structlog.get_logger(__name__)

# Most specific first; the first isinstance match wins
ERROR_STATUS_CODES: list[tuple[type[VisionBuilderError], int]] = [
    (ValidationError, 422),
    (SessionNotFoundError, 404),
    (AnalysisNotFoundError, 404),
    (AnalysisInProgressError, 409),
    (TransientServiceError, 503),
    (TerminalServiceError, 502),
    (PersistenceError, 500),
]


def status_code_for(exc: VisionBuilderError) -> int:
    for exc_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database and text generator for the app's lifetime."""
    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    await init_db()
    logger.info("db_initialized")

    app.state.text_generator = build_text_generator(settings)
    logger.info("text_generator_initialized", backend=type(app.state.text_generator).__name__)
    app.state.running_analyses = RunningAnalyses()

    yield

    logger.info("shutdown_begin")
    aclose = getattr(app.state.text_generator, "aclose", None)
    if aclose is not None:
        await aclose()
    await close_db()
    logger.info("shutdown_complete")


def _error_response(
    request: Request,
    status_code: int,
    detail: object,
    error_type: str,
    **extra: object,
) -> JSONResponse:
    debug_id = str(uuid.uuid4())
    user_id = getattr(request.state, "user_id", None)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "request_failed",
        status_code=status_code,
        error_type=error_type,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        user_id=user_id,
        detail=detail,
    )

    # Sanitized response (no stack traces, no secrets)
    content = {"detail": detail, "error_type": error_type, "debug_id": debug_id, **extra}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


async def vision_builder_exception_handler(request: Request, exc: VisionBuilderError) -> JSONResponse:
    """Map the domain exception hierarchy onto HTTP status codes."""
    status_code = status_code_for(exc)
    extra: dict[str, object] = {}
    if isinstance(exc, IncompleteAnswersError):
        extra["missing"] = exc.missing

    # Store failures may carry driver details; keep them in the log only
    detail = "Internal server error" if isinstance(exc, PersistenceError) else str(exc)
    return _error_response(request, status_code, detail, type(exc).__name__, **extra)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.detail, "HTTPException")


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(request, 422, exc.errors(), "RequestValidationError")


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: full traceback to the log, a bare 500 to the client."""
    debug_id = str(uuid.uuid4())

    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        user_id=getattr(request.state, "user_id", None),
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_type": "InternalServerError", "debug_id": debug_id},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Guided ten-question interview that produces company vision statements",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(dict.fromkeys([settings.frontend_url, *settings.allowed_origins])),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Added last so it wraps CORS and sets X-Request-ID before any handler runs
    setup_correlation_middleware(app)

    app.exception_handler(VisionBuilderError)(vision_builder_exception_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(request_validation_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "vision_builder.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
