"""
Caller API key endpoints.

The plaintext key is returned only by create and regenerate.
"""
from __future__ import annotations

from fastapi import APIRouter, status

from app.config import get_logger
from app.dependencies import AppStateDep
from app.exceptions import NotFoundError
from app.models import (
    ApiKeyCreateRequest,
    ApiKeyResponse,
    ErrorResponse,
    GlobalApiKeyCreateRequest,
    IssuedApiKeyResponse,
    SuccessResponse,
)
from app.services.access import IssuedCredential

logger = get_logger("routes.keys")

router = APIRouter(prefix="/api/v1", tags=["API Keys"])


def issued_response(issued: IssuedCredential) -> IssuedApiKeyResponse:
    return IssuedApiKeyResponse(
        id=issued.id,
        name=issued.name,
        key=issued.key,
        app_id=issued.app_id,
        created_at=issued.created_at,
    )


@router.get("/apps/{app_id}/api-keys", response_model=list[ApiKeyResponse], summary="List API keys for an app")
async def list_app_keys(app_id: str, state: AppStateDep) -> list[ApiKeyResponse]:
    return [ApiKeyResponse.from_credential(c) for c in await state.access.list_for_app(app_id)]


@router.post(
    "/apps/{app_id}/api-keys",
    response_model=IssuedApiKeyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an API key for an app",
    responses={404: {"model": ErrorResponse}},
)
async def create_app_key(app_id: str, body: ApiKeyCreateRequest, state: AppStateDep) -> IssuedApiKeyResponse:
    return issued_response(await state.access.create_for_app(app_id, body.name))


@router.post(
    "/api-keys",
    response_model=IssuedApiKeyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a global API key",
    description="Global keys can execute every app.",
)
async def create_global_key(body: GlobalApiKeyCreateRequest, state: AppStateDep) -> IssuedApiKeyResponse:
    return issued_response(await state.access.create_global(body.name))


@router.delete(
    "/api-keys/{key_id}",
    response_model=SuccessResponse,
    summary="Delete an API key",
    responses={404: {"model": ErrorResponse}},
)
async def delete_key(key_id: str, state: AppStateDep) -> SuccessResponse:
    if not await state.access.delete(key_id):
        raise NotFoundError(f"API key not found: {key_id}")
    return SuccessResponse()


@router.post(
    "/api-keys/{key_id}/regenerate",
    response_model=IssuedApiKeyResponse,
    summary="Regenerate an API key",
    description="Replaces the secret; the old key stops working immediately.",
    responses={404: {"model": ErrorResponse}},
)
async def regenerate_key(key_id: str, state: AppStateDep) -> IssuedApiKeyResponse:
    issued = await state.access.rotate(key_id)
    if issued is None:
        raise NotFoundError(f"API key not found: {key_id}")
    return issued_response(issued)
