"""PropInspect FastAPI Application Entry Point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette import status as http_status
from starlette.exceptions import HTTPException as StarletteHTTPException

from propinspect.api import router as api_router
from propinspect.api.errors import ApiError, error_object, error_response, errors_response
from propinspect.core.config import settings
from propinspect.core.deps import engine
from propinspect.core.logging import configure_logging
from propinspect.models.base import Base

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown events."""
    configure_logging()
    logger.info("Starting PropInspect application", environment=settings.environment)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    logger.info("Shutting down PropInspect application")
    await engine.dispose()


app = FastAPI(
    title="PropInspect API",
    description="Property inspection scoring, completion and deficient item tracking",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api/v1")


def _pointer(loc: tuple) -> str:
    parts = [str(part) for part in loc]
    if parts and parts[0] == "body":
        parts = parts[1:]
    return ".".join(parts) or "body"


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc, ApiError):
        errors = exc.errors
    else:
        errors = [error_object(title=str(exc.detail))]
    return errors_response(exc.status_code, errors)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        if error.get("type") == "extra_forbidden":
            title = "Payload contains non updatable attributes"
        else:
            title = "Invalid attribute"
        errors.append({
            "source": {"pointer": _pointer(error.get("loc", ()))},
            "title": title,
            "detail": str(error.get("msg")),
        })

    logger.error("Validation error",
                 path=str(request.url.path),
                 errors=errors,
                 body=str(exc.body)[:500] if hasattr(exc, "body") else None)
    return errors_response(http_status.HTTP_400_BAD_REQUEST, errors)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", path=str(request.url.path), error=str(exc))
    return error_response(
        http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        title="Server Error",
        detail="Unexpected error, please try again",
    )


# Set up Prometheus metrics instrumentation
_instrumentator = None
if settings.metrics_enabled:
    from propinspect.core.metrics import setup_metrics, expose_metrics

    _instrumentator = setup_metrics(app)
    expose_metrics(app, _instrumentator)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint for Kubernetes probes."""
    return {"status": "healthy", "version": "0.1.0"}
