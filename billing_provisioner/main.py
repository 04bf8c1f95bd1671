"""FastAPI application entry point and lifecycle management."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from billing_provisioner.api.billing import CORS_HEADERS, method_not_allowed
from billing_provisioner.api.billing import router as billing_router
from billing_provisioner.config import get_config
from billing_provisioner.logging_config import configure_logging, get_logger
from billing_provisioner.middleware import RequestLoggingMiddleware

logger = get_logger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager.

    Loads settings once at startup and reports which groups are missing, so a
    misconfigured deployment is visible in the logs before the first request.
    """
    logger.info("service_starting", version=VERSION)
    try:
        settings = get_config().settings
        logger.info(
            "service_started",
            identity_configured=settings.identity_configured,
            processor_configured=settings.processor_configured,
            store_backend=settings.billing_store_backend,
        )
        if not (settings.identity_configured and settings.processor_configured):
            logger.warning("service_partially_configured")
        yield
    finally:
        logger.info("service_stopped")


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    json_format = os.getenv("LOG_FORMAT", "json").lower() == "json"
    configure_logging(log_level=log_level, json_format=json_format)

    app = FastAPI(
        title="Billing Provisioner",
        description="Creates Razorpay subscriptions for signed-in users and records billing state",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    include_request_details = os.getenv("LOG_REQUEST_DETAILS", "true").lower() == "true"
    app.add_middleware(RequestLoggingMiddleware, include_request_details=include_request_details)

    app.include_router(billing_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Liveness check."""
        return {
            "service": "billing-provisioner",
            "status": "running",
            "version": VERSION,
        }

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Readiness check. Reports configuration state, never values."""
        settings = get_config().settings
        ready = settings.identity_configured and settings.processor_configured
        return {
            "status": "healthy" if ready else "misconfigured",
            "identity": "configured" if settings.identity_configured else "missing",
            "processor": "configured" if settings.processor_configured else "missing",
            "store": settings.billing_store_backend,
        }

    @app.exception_handler(StarletteHTTPException)
    async def method_aware_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> Response:
        """Answer unsupported methods with the billing error body and CORS headers."""
        if exc.status_code == 405:
            logger.info("method_not_allowed", method=request.method, path=request.url.path)
            return method_not_allowed()
        return await http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
            headers=dict(CORS_HEADERS),
        )

    logger.info("app_created", endpoints=len(app.routes))
    return app


app = create_app()
