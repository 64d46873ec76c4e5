"""
FastAPI application entry point.

This module initializes the FastAPI application with:
- Lifespan management (startup/shutdown)
- Middleware configuration (CORS)
- Exception handlers
- Route registration
- OpenAPI documentation

Architecture:
- Provider pattern for the configuration store and AI vendor adapters
- Centralized configuration via Pydantic Settings
- Clean separation of concerns (routes, services, providers)

Usage:
    Run with uvicorn:
        uvicorn app.main:app --host 0.0.0.0 --port 8080

    Or with the server.py entry point:
        python server.py
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from app.config import get_logger, settings
from app.exceptions import GatewayException
from app.models import ErrorResponse
from app.routes import apps, execution, health, keys, prompts, vendor_keys, vendors
from app.state import AppState

logger = get_logger("app.main")

API_VERSION = "1.0.0"


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles:
    - Startup: Initialize the store and application state
    - Shutdown: Close the store connection
    """
    logger.info("=" * 60)
    logger.info("Prompt App Gateway Starting...")
    logger.info("=" * 60)
    logger.info(
        "Configuration | Database=%s | VendorTimeout=%ss | DefaultModel=%s",
        settings.DATABASE_PROVIDER,
        settings.VENDOR_TIMEOUT_SECONDS,
        settings.DEFAULT_MODEL,
    )

    if not hasattr(app.state, "app_state"):
        try:
            app.state.app_state = await AppState.create()
        except Exception as exc:
            logger.critical("Startup failed: %s", exc, exc_info=True)
            raise

    logger.info("Server ready to accept requests")
    logger.info("=" * 60)

    yield  # Application running

    # Shutdown
    logger.info("Shutting down...")
    try:
        await app.state.app_state.database_provider.close()
        logger.info("Database connection closed")
    except Exception as e:
        logger.error("Error during shutdown: %s", e)
    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(state: AppState | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        state: Pre-built application state; created at startup when omitted

    Returns:
        Configured FastAPI application instance
    """
    application = FastAPI(
        title="Prompt App Gateway API",
        description=(
            "Execution gateway for versioned AI prompt apps "
            "across OpenAI, Anthropic and Google Gemini."
        ),
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    if state is not None:
        application.state.app_state = state

    configure_cors(application)
    configure_exception_handlers(application)
    configure_routes(application)

    return application


# =============================================================================
# CORS Configuration
# =============================================================================

def configure_cors(application: FastAPI) -> None:
    """Configure CORS middleware."""
    cors_origins = settings.CORS_ORIGINS_LIST
    allow_credentials = cors_origins != ["*"]

    if not allow_credentials:
        logger.warning(
            "[WARNING] CORS: Wildcard origin '*' configured. "
            "This disables credentials and is NOT recommended for production."
        )
    else:
        logger.info("CORS: Configured for origins: %s", cors_origins)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )


# =============================================================================
# Exception Handlers
# =============================================================================

def configure_exception_handlers(application: FastAPI) -> None:
    """Configure exception handlers."""

    @application.exception_handler(GatewayException)
    async def gateway_exception_handler(
        request: Request,
        exc: GatewayException,
    ) -> JSONResponse:
        """Handle gateway exceptions."""
        logger.warning(
            "GatewayException | path=%s | type=%s | message=%s",
            request.url.path,
            exc.__class__.__name__,
            exc.message,
        )

        error_response = ErrorResponse(
            detail=exc.message,
            error_type=exc.__class__.__name__,
            error_code=exc.error_code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump(),
        )

    @application.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unhandled exceptions."""
        logger.error(
            "Unhandled exception | path=%s | type=%s | error=%s",
            request.url.path,
            type(exc).__name__,
            exc,
            exc_info=True,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "error_type": "InternalError",
                "error_code": "INTERNAL_ERROR",
            },
        )


# =============================================================================
# Route Configuration
# =============================================================================

def configure_routes(application: FastAPI) -> None:
    """Configure application routes."""
    application.include_router(health.router)
    application.include_router(execution.router)
    application.include_router(apps.router)
    application.include_router(prompts.router)
    application.include_router(keys.router)
    application.include_router(vendor_keys.router)
    application.include_router(vendors.router)


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# Custom OpenAPI Schema
# =============================================================================

def custom_openapi() -> dict[str, Any]:
    """Generate custom OpenAPI schema with additional metadata."""
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    openapi_schema["servers"] = [
        {"url": "/", "description": "Current server"},
    ]
    openapi_schema["info"]["contact"] = {
        "name": "Prompt App Gateway API",
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi
