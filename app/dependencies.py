"""
FastAPI dependencies for dependency injection.

This module centralizes all FastAPI dependencies for:
- Application state injection
- Request validation
- Caller headers (API key, caller service tag)

Usage:
    from app.dependencies import AppStateDep, CallerKey

    @router.post("/endpoint")
    async def endpoint(state: AppStateDep, key: CallerKey):
        ...
"""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from app.config import get_logger, settings
from app.state import AppState
from app.utils import sanitize_text

logger = get_logger("dependencies")

MAX_CALLER_SERVICE_LENGTH = 100


# =============================================================================
# Application State
# =============================================================================

async def get_app_state(request: Request) -> AppState:
    """
    FastAPI dependency to get application state.

    Raises:
        RuntimeError: If application state is not initialized
    """
    if not hasattr(request.app.state, "app_state"):
        logger.error("Application state not initialized")
        raise RuntimeError("Application state not initialized")
    return request.app.state.app_state


# Type alias for dependency injection
AppStateDep = Annotated[AppState, Depends(get_app_state)]


# =============================================================================
# Request Validation
# =============================================================================

async def validate_request_size(request: Request) -> None:
    """
    Validate that request body size is within limits.

    Raises:
        HTTPException: If content length exceeds MAX_REQUEST_SIZE
    """
    content_length = request.headers.get("content-length")

    if content_length:
        try:
            size = int(content_length)
        except ValueError:
            # Invalid content-length header, let FastAPI handle it
            return
        if size > settings.MAX_REQUEST_SIZE:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Request body too large. Maximum size: {settings.MAX_REQUEST_SIZE} bytes",
            )


# =============================================================================
# Caller Headers
# =============================================================================

async def get_caller_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> str | None:
    """Caller API key; blank values count as missing."""
    if x_api_key is None:
        return None
    return x_api_key.strip() or None


async def get_caller_service(
    x_caller_service: str | None = Header(default=None, alias="X-Caller-Service"),
) -> str | None:
    """Free-form tag naming the calling service, stored on execution records."""
    return sanitize_text(x_caller_service, max_length=MAX_CALLER_SERVICE_LENGTH) or None


# =============================================================================
# Type Aliases for Common Dependencies
# =============================================================================

CallerKey = Annotated[str | None, Depends(get_caller_key)]

CallerService = Annotated[str | None, Depends(get_caller_service)]
