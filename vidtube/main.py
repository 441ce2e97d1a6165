"""FastAPI application initialization."""

from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vidtube.api.middleware import CORRELATION_HEADER, CorrelationIdMiddleware
from vidtube.api.routes import router
from vidtube.api.users import router as users_router
from vidtube.config import get_settings
from vidtube.errors import ApiError
from vidtube.services.logging_service import configure_logging, get_logger
from vidtube.services.media_service import MediaUploadConfig, MediaUploadService


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    try:
        from vidtube.database import init_database, run_migrations

        await init_database(settings)
        await run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - user endpoints will fail until it is reachable",
        )

    # Media host configuration is built once and shared by reference
    media_service = MediaUploadService(MediaUploadConfig.from_settings(settings))
    app.state.media_service = media_service

    logger.info("application_started", log_level=settings.log_level)

    yield

    await media_service.close()

    try:
        from vidtube.database import close_database

        await close_database()
    except Exception as e:
        logger.warning("database_close_failed", error=str(e))

    logger.info("application_shutdown")


app = FastAPI(
    title="VidTube API",
    description="User accounts, sessions, channel profiles and watch history",
    version="0.1.0",
    lifespan=lifespan,
)


def _correlation_headers(request: Request) -> dict:
    correlation_id = getattr(request.state, "correlation_id", None)
    return {CORRELATION_HEADER: correlation_id} if correlation_id else {}


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render an ApiError as the error envelope.

    The cause is logged for server errors but never sent to the client.
    """
    logger = structlog.get_logger()
    log_fields = {
        "status_code": exc.status_code,
        "message": exc.message,
        "path": request.url.path,
    }
    if exc.cause is not None:
        log_fields["cause"] = repr(exc.cause)

    if exc.status_code >= 500:
        logger.error("api_error", **log_fields)
    else:
        logger.info("api_error", **log_fields)

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_envelope(),
        headers=_correlation_headers(request),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors as a 400 error envelope."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error.get("loc", ["unknown"]))
        errors.append(f"{field}: {error.get('msg', 'invalid')}")

    structlog.get_logger().warning("validation_error", errors=errors)

    error = ApiError(400, "Request validation failed", errors=errors)
    return JSONResponse(
        status_code=400,
        content=error.to_envelope(),
        headers=_correlation_headers(request),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler so clients always receive the error envelope."""
    structlog.get_logger().exception(
        "unhandled_exception",
        path=request.url.path,
        error_type=type(exc).__name__,
    )
    error = ApiError(500, "Internal server error")
    return JSONResponse(
        status_code=500,
        content=error.to_envelope(),
        headers=_correlation_headers(request),
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(users_router)
app.include_router(router)
