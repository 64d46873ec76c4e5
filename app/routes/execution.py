"""
Execution endpoints.

Usage:
    POST /api/v1/execute/{app_id}
    X-API-Key: aak_...
    X-Caller-Service: billing-worker
    {
        "input": {"text": "I love this product"}
    }
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from app.config import get_logger
from app.dependencies import AppStateDep, CallerKey, CallerService, validate_request_size
from app.exceptions import NotFoundError
from app.models import (
    ErrorResponse,
    ExecuteRequest,
    ExecutionLogResponse,
    ExecutionResponse,
    GlobalStatsResponse,
    TokenUsageResponse,
)
from app.services.execution import ExecutionOutcome

logger = get_logger("routes.execution")

router = APIRouter(prefix="/api/v1", tags=["Execution"])


def outcome_response(outcome: ExecutionOutcome) -> ExecutionResponse:
    return ExecutionResponse(
        execution_id=outcome.execution_id,
        output=outcome.output,
        status=outcome.status,
        latency_ms=outcome.latency_ms,
        token_usage=TokenUsageResponse.from_usage(outcome.token_usage),
        error_message=outcome.error_message,
    )


def outcome_json(outcome: ExecutionOutcome) -> ExecutionResponse | JSONResponse:
    """200 with the outcome, or the same body with 502 when the vendor failed."""
    body = outcome_response(outcome)
    if outcome.succeeded:
        return body
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content=body.model_dump(mode="json"),
    )


# =============================================================================
# Execute
# =============================================================================

@router.post(
    "/execute/{app_id}",
    response_model=ExecutionResponse,
    summary="Execute an app",
    description="Run the app's active prompt version against the caller input.",
    dependencies=[Depends(validate_request_size)],
    responses={
        200: {"description": "Execution succeeded"},
        400: {"model": ErrorResponse, "description": "App missing, inactive or without a published version"},
        401: {"model": ErrorResponse, "description": "Missing API key"},
        403: {"model": ErrorResponse, "description": "API key not valid for this app"},
        413: {"description": "Request body too large"},
        502: {"model": ExecutionResponse, "description": "Vendor call failed"},
    },
)
async def execute_app(
    app_id: str,
    body: ExecuteRequest,
    state: AppStateDep,
    api_key: CallerKey,
    caller_service: CallerService,
) -> ExecutionResponse | JSONResponse:
    """
    Execute an app for a calling service.

    **Headers:**
    - `X-API-Key`: app-scoped or global key (required)
    - `X-Caller-Service`: tag stored on the execution record (optional)
    """
    outcome = await state.gateway.execute(app_id, body.input, api_key, caller_service)
    return outcome_json(outcome)


# =============================================================================
# Logs & Stats
# =============================================================================

@router.get(
    "/logs",
    response_model=list[ExecutionLogResponse],
    summary="Recent executions across all apps",
)
async def recent_logs(
    state: AppStateDep,
    limit: int = Query(default=50, ge=1, description="Maximum number of records"),
) -> list[ExecutionLogResponse]:
    records = await state.gateway.get_recent_logs(limit)
    return [ExecutionLogResponse.from_record(r) for r in records]


@router.get(
    "/logs/{execution_id}",
    response_model=ExecutionLogResponse,
    summary="Get one execution record",
    responses={404: {"model": ErrorResponse}},
)
async def get_log(execution_id: str, state: AppStateDep) -> ExecutionLogResponse:
    record = await state.gateway.get_log(execution_id)
    if record is None:
        raise NotFoundError(f"Execution log not found: {execution_id}")
    return ExecutionLogResponse.from_record(record)


@router.get(
    "/stats",
    response_model=GlobalStatsResponse,
    summary="Aggregate statistics across all apps",
)
async def global_stats(state: AppStateDep) -> GlobalStatsResponse:
    stats = await state.gateway.get_global_stats()
    return GlobalStatsResponse(
        total_apps=stats.total_apps,
        active_apps=stats.active_apps,
        total_executions=stats.total_executions,
        success_rate=stats.success_rate,
        avg_latency_ms=stats.avg_latency_ms,
        total_tokens=stats.total_tokens,
    )
