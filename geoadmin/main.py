"""
Main Application - FastAPI application setup.
"""

import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from geoadmin.api.admin_auth_routes import router as admin_auth_router
from geoadmin.api.admin_routes import router as admin_router
from geoadmin.api.public_routes import router as public_router
from geoadmin.config import settings
from geoadmin.db.migration_runner import run_migrations
from geoadmin.db.session import close_engines
from geoadmin.exceptions import (
    AuthenticationError,
    AuthenticationRequiredError,
    ConflictError,
    CsrfValidationError,
    NotFoundError,
    UnavailableError,
    ValidationFailedError,
)
from geoadmin.observability import get_logger, metrics, setup_logging, setup_tracing
from geoadmin.observability.logging import log_context
from geoadmin.observability.tracing import instrument_fastapi
from geoadmin.services.cache_store import close_store

# Setup logging before anything else
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info(
        "application_starting",
        service=settings.api_title,
        version=settings.api_version,
        tracing_enabled=settings.tracing_enabled,
        metrics_enabled=settings.metrics_enabled,
        session_timeout_seconds=settings.session_timeout_seconds,
    )

    if settings.run_migrations_on_startup:
        run_migrations()

    yield

    # Shutdown
    logger.info("application_shutting_down")
    await close_engines()
    await close_store()
    logger.info("connections_closed")


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=settings.api_description,
    lifespan=lifespan,
)


# ============================================================================
# Exception handlers
# ============================================================================


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log validation errors; submitted input is never echoed back (it may hold passwords)."""
    sanitized_errors = []
    for error in exc.errors():
        loc = error.get("loc") or ()
        sanitized = {
            "type": error.get("type"),
            "loc": loc,
            "msg": error.get("msg"),
        }
        # ctx may contain non-serializable objects
        if "ctx" in error:
            sanitized["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        sanitized_errors.append(sanitized)

    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        errors=[{"loc": e["loc"], "type": e["type"]} for e in sanitized_errors],
    )
    return JSONResponse(
        status_code=422,
        content={"detail": sanitized_errors},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    logger.warning("request_conflict", path=request.url.path, reason=exc.message)
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": exc.message})


@app.exception_handler(ValidationFailedError)
async def validation_failed_handler(
    request: Request, exc: ValidationFailedError
) -> JSONResponse:
    """CSRF failures are 403; cross-field validation failures are 422."""
    if isinstance(exc, CsrfValidationError):
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN, content={"detail": exc.message}
        )

    logger.warning(
        "validation_failed", path=request.url.path, field=exc.field, reason=exc.message
    )
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message, "field": exc.field},
    )


@app.exception_handler(AuthenticationError)
async def authentication_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": exc.message})


@app.exception_handler(AuthenticationRequiredError)
async def authentication_required_handler(
    request: Request, exc: AuthenticationRequiredError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": "Not authenticated", "login_path": exc.login_path},
    )


@app.exception_handler(UnavailableError)
async def unavailable_handler(request: Request, exc: UnavailableError) -> JSONResponse:
    metrics.record_error("UnavailableError", exc.resource)
    logger.error(
        "dependency_unavailable",
        path=request.url.path,
        resource=exc.resource,
        error=exc.message,
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": f"{exc.resource} temporarily unavailable"},
    )


# Setup tracing
setup_tracing()
instrument_fastapi(app)


# Proxy headers middleware - trust X-Forwarded-* headers from nginx
class ProxyHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to handle X-Forwarded-* headers from reverse proxy."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        forwarded_proto = request.headers.get("X-Forwarded-Proto")
        if forwarded_proto:
            request.scope["scheme"] = forwarded_proto

        return await call_next(request)


app.add_middleware(ProxyHeadersMiddleware)

# Session cookies cross origins only for explicitly allowed frontends
if settings.cors_allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def logging_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Bind a request id to every log line of the request, then log and time it."""
    start_time = time.perf_counter()
    request_id = request.headers.get("X-Request-ID") or uuid4().hex[:16]
    method = request.method
    metrics.http_requests_in_progress.labels(method=method).inc()

    try:
        with log_context(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception as e:
                duration = time.perf_counter() - start_time
                metrics.record_http_request(request.url.path, method, 500, duration)
                metrics.record_error(type(e).__name__, "http_request")
                logger.error(
                    "request_failed",
                    method=method,
                    path=request.url.path,
                    duration_seconds=duration,
                    exc_info=True,
                )
                raise

            duration = time.perf_counter() - start_time
            # Route template, so ids in paths don't explode label cardinality
            route_path = getattr(request.scope.get("route"), "path", request.url.path)
            metrics.record_http_request(route_path, method, response.status_code, duration)
            logger.info(
                "request_completed",
                method=method,
                path=request.url.path,
                status_code=response.status_code,
                duration_seconds=round(duration, 6),
            )
    finally:
        metrics.http_requests_in_progress.labels(method=method).dec()

    response.headers["X-Request-ID"] = request_id
    return response


# Register routes
app.include_router(public_router)
app.include_router(admin_auth_router)
app.include_router(admin_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.api_title,
        "version": settings.api_version,
        "status": "running",
    }


@app.get("/metrics")
async def metrics_endpoint() -> Response:
    """Prometheus text exposition; 404 when METRICS_ENABLED is off."""
    if not settings.metrics_enabled:
        return PlainTextResponse("metrics disabled", status_code=status.HTTP_404_NOT_FOUND)
    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "geoadmin.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
