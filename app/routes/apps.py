"""
App management endpoints.

Usage:
    POST   /api/v1/apps                 - Create an app (returns its first API key)
    GET    /api/v1/apps?search=...      - List apps
    GET    /api/v1/apps/active          - List active apps
    POST   /api/v1/apps/test-prompt     - Run an unsaved prompt
    GET    /api/v1/apps/{app_id}        - Get an app
    PUT    /api/v1/apps/{app_id}        - Rename / re-describe
    DELETE /api/v1/apps/{app_id}        - Delete with versions and keys
"""
from __future__ import annotations

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from app.config import get_logger, settings
from app.dependencies import AppStateDep
from app.exceptions import NotFoundError
from app.models import (
    AppCreateRequest,
    AppCreatedResponse,
    AppResponse,
    AppStatsResponse,
    AppUpdateRequest,
    DirectTestRequestBody,
    DirectTestResponse,
    ErrorResponse,
    ExecutionLogPage,
    ExecutionLogResponse,
    IssuedApiKeyResponse,
    PromptVersionResponse,
    SuccessResponse,
    TokenUsageResponse,
)
from app.providers.database.interface import App
from app.services.apps import PromptSettings
from app.services.execution import DirectTestRequest
from app.state import AppState

logger = get_logger("routes.apps")

router = APIRouter(prefix="/api/v1/apps", tags=["Apps"])


async def require_app(state: AppState, app_id: str) -> App:
    app = await state.apps.get_app(app_id)
    if app is None:
        raise NotFoundError(f"App not found: {app_id}")
    return app


# =============================================================================
# Collection
# =============================================================================

@router.post(
    "",
    response_model=AppCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an app",
    description="Creates an active app with version 1 published and an app-scoped API key.",
    responses={409: {"model": ErrorResponse, "description": "App name already exists"}},
)
async def create_app(body: AppCreateRequest, state: AppStateDep) -> AppCreatedResponse:
    created = await state.apps.create_app(
        body.name,
        body.description,
        PromptSettings(
            system_prompt=body.system_prompt,
            vendor=body.vendor,
            model=body.model,
            temperature=body.temperature,
            max_tokens=body.max_tokens,
            response_format=body.response_format,
        ),
    )
    key = created.api_key
    return AppCreatedResponse(
        app=AppResponse.from_app(created.app),
        version=PromptVersionResponse.from_version(created.version),
        api_key=IssuedApiKeyResponse(
            id=key.id,
            name=key.name,
            key=key.key,
            app_id=key.app_id,
            created_at=key.created_at,
        ),
    )


@router.get("", response_model=list[AppResponse], summary="List apps")
async def list_apps(
    state: AppStateDep,
    search: str | None = Query(default=None, description="Case-insensitive name filter"),
) -> list[AppResponse]:
    return [AppResponse.from_app(a) for a in await state.apps.list_apps(search)]


@router.get("/active", response_model=list[AppResponse], summary="List active apps")
async def list_active_apps(state: AppStateDep) -> list[AppResponse]:
    return [AppResponse.from_app(a) for a in await state.apps.list_active_apps()]


@router.post(
    "/test-prompt",
    response_model=DirectTestResponse,
    summary="Test an unsaved prompt",
    description=(
        "Runs a prompt without saving a version. Recorded against app_id "
        "when one is given. Vendor failures return 502 with the error in the body."
    ),
    responses={502: {"model": DirectTestResponse}},
)
async def test_prompt(body: DirectTestRequestBody, state: AppStateDep) -> DirectTestResponse | JSONResponse:
    if body.app_id:
        await require_app(state, body.app_id)

    result = await state.gateway.test_direct(
        DirectTestRequest(
            system_prompt=body.system_prompt,
            input=body.input,
            vendor=body.vendor,
            model=body.model,
            temperature=body.temperature,
            max_tokens=body.max_tokens,
            response_format=body.response_format,
        ),
        app_id=body.app_id,
    )
    response = DirectTestResponse(
        output=result.output,
        raw_response=result.raw_response,
        latency_ms=result.latency_ms,
        token_usage=TokenUsageResponse.from_usage(result.token_usage),
        error=result.error,
    )
    if result.error:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=response.model_dump(mode="json"))
    return response


# =============================================================================
# Single App
# =============================================================================

@router.get(
    "/{app_id}",
    response_model=AppResponse,
    summary="Get an app",
    responses={404: {"model": ErrorResponse}},
)
async def get_app(app_id: str, state: AppStateDep) -> AppResponse:
    return AppResponse.from_app(await require_app(state, app_id))


@router.put(
    "/{app_id}",
    response_model=AppResponse,
    summary="Update an app",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_app(app_id: str, body: AppUpdateRequest, state: AppStateDep) -> AppResponse:
    app = await state.apps.update_app(app_id, name=body.name, description=body.description)
    if app is None:
        raise NotFoundError(f"App not found: {app_id}")
    return AppResponse.from_app(app)


@router.delete(
    "/{app_id}",
    response_model=SuccessResponse,
    summary="Delete an app",
    description="Deletes the app with its prompt versions and API keys. Execution logs are kept.",
    responses={404: {"model": ErrorResponse}},
)
async def delete_app(app_id: str, state: AppStateDep) -> SuccessResponse:
    if not await state.apps.delete_app(app_id):
        raise NotFoundError(f"App not found: {app_id}")
    return SuccessResponse()


@router.post(
    "/{app_id}/activate",
    response_model=AppResponse,
    summary="Activate an app",
    responses={400: {"model": ErrorResponse, "description": "No published version"}, 404: {"model": ErrorResponse}},
)
async def activate_app(app_id: str, state: AppStateDep) -> AppResponse:
    return AppResponse.from_app(await state.apps.activate_app(app_id))


@router.post(
    "/{app_id}/deprecate",
    response_model=AppResponse,
    summary="Deprecate an app",
    responses={404: {"model": ErrorResponse}},
)
async def deprecate_app(app_id: str, state: AppStateDep) -> AppResponse:
    return AppResponse.from_app(await state.apps.deprecate_app(app_id))


# =============================================================================
# App Logs & Stats
# =============================================================================

@router.get("/{app_id}/stats", response_model=AppStatsResponse, summary="Execution statistics for an app")
async def app_stats(app_id: str, state: AppStateDep) -> AppStatsResponse:
    await require_app(state, app_id)
    return AppStatsResponse.from_stats(await state.gateway.get_stats(app_id))


@router.get("/{app_id}/logs", response_model=ExecutionLogPage, summary="Execution logs for an app")
async def app_logs(
    app_id: str,
    state: AppStateDep,
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
) -> ExecutionLogPage:
    records, total = await state.gateway.get_logs(app_id, limit, offset)
    return ExecutionLogPage(
        logs=[ExecutionLogResponse.from_record(r) for r in records],
        total=total,
        limit=min(limit, settings.LOG_MAX_LIMIT),
        offset=offset,
    )
