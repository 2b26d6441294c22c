"""FastAPI application factory and configuration."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from zapdesk.api.dependencies import get_storage
from zapdesk.api.routes import admin_router, health_router, webhooks_router
from zapdesk.core.config import settings
from zapdesk.core.exceptions import AppException


# structlog renders through stdlib logging, which applies log_level
logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

SERVICE_NAME = "zapdesk"

# Error code -> HTTP status; anything unlisted is a client error
ERROR_STATUS_CODES = {
    "INVALID_WEBHOOK_PAYLOAD": status.HTTP_400_BAD_REQUEST,
    "CHANNEL_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "TENANT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "CONVERSATION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "BUFFER_CONTENTION": status.HTTP_503_SERVICE_UNAVAILABLE,
    "DISPATCH_ERROR": status.HTTP_502_BAD_GATEWAY,
    "CHANNEL_ERROR": status.HTTP_502_BAD_GATEWAY,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info(
        "Starting zapdesk",
        environment=settings.app_env,
        debug=settings.app_debug,
        debounce_window=settings.debounce_window_seconds,
    )

    # Initialize storage
    storage = get_storage()

    # Seed demo tenant in development
    if settings.is_development:
        from zapdesk.storage.memory import InMemoryStorage
        if isinstance(storage, InMemoryStorage):
            channel = await storage.seed_demo_tenant()
            logger.info("Seeded demo tenant for development", channel=channel.name)

    yield

    # Shutdown
    logger.info("Shutting down zapdesk")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="zapdesk",
        description="WhatsApp customer service with debounced AI replies and human takeover",
        version="0.1.0",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Browser access is for the dashboard only
    origins = ["*"] if settings.is_development else settings.dashboard_origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["GET", "POST", "PUT"],
            allow_headers=["Content-Type", "Authorization"],
        )

    # Exception handlers
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Handle application-specific exceptions."""
        status_code = ERROR_STATUS_CODES.get(exc.code, status.HTTP_400_BAD_REQUEST)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "Application exception",
            path=request.url.path,
            code=exc.code,
            message=exc.message,
            details=exc.details,
        )
        return JSONResponse(
            status_code=status_code,
            content={
                "error": exc.code,
                "message": exc.message,
                "details": exc.details,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(webhooks_router)
    app.include_router(admin_router)

    # Root endpoint
    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "service": SERVICE_NAME,
            "version": "0.1.0",
            "status": "running",
        }

    return app


# Create default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "zapdesk.api.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.is_development,
    )
