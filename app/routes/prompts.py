"""
Prompt version endpoints.

Usage:
    POST   /api/v1/apps/{app_id}/prompts                      - Create an unpublished version
    GET    /api/v1/apps/{app_id}/prompts                      - List versions, newest first
    GET    /api/v1/apps/{app_id}/prompts/latest
    GET    /api/v1/apps/{app_id}/prompts/active
    GET    /api/v1/apps/{app_id}/prompts/by-number/{number}
    GET    /api/v1/apps/{app_id}/prompts/{prompt_id}
    DELETE /api/v1/apps/{app_id}/prompts/{prompt_id}          - Refused for the active version
    POST   /api/v1/apps/{app_id}/prompts/{prompt_id}/publish
    POST   /api/v1/apps/{app_id}/prompts/{prompt_id}/test
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.config import get_logger
from app.dependencies import AppStateDep, CallerService, validate_request_size
from app.exceptions import NotFoundError
from app.models import (
    ErrorResponse,
    ExecutionResponse,
    PromptSettingsRequest,
    PromptVersionResponse,
    SuccessResponse,
    VersionTestRequest,
)
from app.providers.database.interface import PromptVersion
from app.routes.execution import outcome_json
from app.services.apps import PromptSettings

logger = get_logger("routes.prompts")

router = APIRouter(prefix="/api/v1/apps/{app_id}/prompts", tags=["Prompts"])

NOT_FOUND = {404: {"model": ErrorResponse}}


def found(version: PromptVersion | None, message: str) -> PromptVersionResponse:
    if version is None:
        raise NotFoundError(message)
    return PromptVersionResponse.from_version(version)


@router.post(
    "",
    response_model=PromptVersionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create prompt version",
    description="Vendor is inferred from the model when omitted. The version is not published.",
    responses=NOT_FOUND,
)
async def create_version(app_id: str, body: PromptSettingsRequest, state: AppStateDep) -> PromptVersionResponse:
    version = await state.apps.create_version(
        app_id,
        PromptSettings(
            system_prompt=body.system_prompt,
            vendor=body.vendor,
            model=body.model,
            temperature=body.temperature,
            max_tokens=body.max_tokens,
            response_format=body.response_format,
        ),
    )
    return PromptVersionResponse.from_version(version)


@router.get("", response_model=list[PromptVersionResponse], summary="List prompt versions")
async def list_versions(app_id: str, state: AppStateDep) -> list[PromptVersionResponse]:
    return [PromptVersionResponse.from_version(v) for v in await state.apps.list_versions(app_id)]


@router.get("/latest", response_model=PromptVersionResponse, summary="Latest prompt version", responses=NOT_FOUND)
async def latest_version(app_id: str, state: AppStateDep) -> PromptVersionResponse:
    return found(await state.apps.get_latest_version(app_id), "No prompt versions found")


@router.get("/active", response_model=PromptVersionResponse, summary="Active prompt version", responses=NOT_FOUND)
async def active_version(app_id: str, state: AppStateDep) -> PromptVersionResponse:
    return found(await state.apps.get_active_version(app_id), "No active prompt version found")


@router.get(
    "/by-number/{number}",
    response_model=PromptVersionResponse,
    summary="Prompt version by number",
    responses=NOT_FOUND,
)
async def version_by_number(app_id: str, number: int, state: AppStateDep) -> PromptVersionResponse:
    return found(await state.apps.get_version_by_number(app_id, number), f"Prompt version not found: v{number}")


@router.get("/{prompt_id}", response_model=PromptVersionResponse, summary="Get prompt version", responses=NOT_FOUND)
async def get_version(app_id: str, prompt_id: str, state: AppStateDep) -> PromptVersionResponse:
    return found(await state.apps.get_version(app_id, prompt_id), f"Prompt version not found: {prompt_id}")


@router.delete(
    "/{prompt_id}",
    response_model=SuccessResponse,
    summary="Delete prompt version",
    responses={**NOT_FOUND, 409: {"model": ErrorResponse, "description": "Version is active"}},
)
async def delete_version(app_id: str, prompt_id: str, state: AppStateDep) -> SuccessResponse:
    if not await state.apps.delete_version(app_id, prompt_id):
        raise NotFoundError(f"Prompt version not found: {prompt_id}")
    return SuccessResponse()


@router.post(
    "/{prompt_id}/publish",
    response_model=PromptVersionResponse,
    summary="Publish prompt version",
    description="Publishes the version and makes it the app's active version in one step.",
    responses=NOT_FOUND,
)
async def publish_version(app_id: str, prompt_id: str, state: AppStateDep) -> PromptVersionResponse:
    return found(await state.apps.publish_version(app_id, prompt_id), f"Prompt version not found: {prompt_id}")


@router.post(
    "/{prompt_id}/test",
    response_model=ExecutionResponse,
    summary="Test prompt version",
    description="Executes a specific version, published or not. Recorded like a normal execution.",
    dependencies=[Depends(validate_request_size)],
    responses={400: {"model": ErrorResponse}, 502: {"model": ExecutionResponse}},
)
async def test_version(
    app_id: str,
    prompt_id: str,
    body: VersionTestRequest,
    state: AppStateDep,
    caller_service: CallerService,
) -> ExecutionResponse | JSONResponse:
    outcome = await state.gateway.test_version(app_id, prompt_id, body.input, caller_service)
    return outcome_json(outcome)
