"""
Health check endpoints.

This module provides health monitoring endpoints for:
- Liveness probes (ping)
- Readiness probes (ready)
- Deep health checks (health with ?deep=true)

These endpoints follow Kubernetes health check patterns for
container orchestration compatibility.

Usage:
    GET /health     - Full health check
    GET /ping       - Simple liveness probe
    GET /ready      - Readiness probe
"""
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from app.config import get_logger
from app.dependencies import AppStateDep
from app.models import HealthResponse, PingResponse, ReadinessResponse

logger = get_logger("routes.health")

router = APIRouter(tags=["Health"])


# =============================================================================
# Health Check Endpoint
# =============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns health status of the store and vendor configuration.",
    responses={
        200: {"description": "Service is healthy or degraded"},
        503: {"description": "Service is unhealthy"},
    },
)
async def health_check(
    state: AppStateDep,
    deep: bool = Query(
        default=False,
        description="Perform deep health check including a database read",
    ),
) -> HealthResponse | JSONResponse:
    """
    Report overall health.

    - **healthy**: store available and at least one vendor configured
    - **degraded**: store available but no vendor has a secret
    - **unhealthy**: store unavailable
    """
    db_available = state.database_provider.is_available()
    db_healthy = db_available

    db_latency_ms: float | None = None
    if deep and db_available:
        start_time = time.perf_counter()
        try:
            db_healthy = await state.database_provider.health_check()
            db_latency_ms = (time.perf_counter() - start_time) * 1000
        except Exception as e:
            logger.warning("Deep health check failed for database: %s", e)
            db_healthy = False

    vendors = await state.registry.describe_all()
    services: dict[str, Any] = {
        "ready": state.is_ready(),
        "database": {
            "provider": state.database_provider.get_provider_name(),
            "available": db_available,
            "status": "healthy" if db_healthy else "unavailable",
        },
        "vendors": {
            info.name: {
                "available": info.available,
                "status": "healthy" if info.available else "unconfigured",
            }
            for info in vendors
        },
    }
    if deep:
        services["database"]["healthy"] = db_healthy
        if db_latency_ms is not None:
            services["database"]["latency_ms"] = round(db_latency_ms, 2)

    any_vendor = any(info.available for info in vendors)
    if db_healthy and any_vendor:
        overall_status = "healthy"
    elif db_healthy:
        overall_status = "degraded"
    else:
        overall_status = "unhealthy"

    response = HealthResponse(
        status=overall_status,
        services=services,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )

    if overall_status == "unhealthy":
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )
    return response


# =============================================================================
# Liveness Probe
# =============================================================================

@router.get(
    "/ping",
    response_model=PingResponse,
    summary="Liveness probe",
    description="Simple ping endpoint for keepalive checks. Does not verify service health.",
)
async def ping() -> PingResponse:
    """Always 200 while the process is running."""
    return PingResponse(status="ok")


# =============================================================================
# Readiness Probe
# =============================================================================

@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="Kubernetes-style readiness probe.",
    responses={503: {"description": "Service is not ready"}},
)
async def readiness_check(state: AppStateDep) -> ReadinessResponse | JSONResponse:
    """
    Returns 200 if the store is available, 503 otherwise.

    Vendor secrets are reported but do not affect readiness; they can be
    configured at runtime.
    """
    checks = {"database": state.database_provider.is_available()}
    for info in await state.registry.describe_all():
        checks[f"vendor_{info.name}"] = info.available

    is_ready = checks["database"]
    response = ReadinessResponse(ready=is_ready, checks=checks)

    if not is_ready:
        logger.warning("Readiness check failed: database=%s", checks["database"])
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )
    return response
