"""
Vendor secret endpoints.

Secrets are never returned; statuses show only the last four characters.
"""
from __future__ import annotations

from fastapi import APIRouter

from app.config import get_logger
from app.dependencies import AppStateDep
from app.models import SuccessResponse, VendorKeyRequest, VendorKeyStatusResponse
from app.providers.llm.interface import Vendor
from app.services.vendor_keys import VendorKeyStatus

logger = get_logger("routes.vendor_keys")

router = APIRouter(prefix="/api/v1/vendor-keys", tags=["Vendor Keys"])


def status_response(key_status: VendorKeyStatus) -> VendorKeyStatusResponse:
    return VendorKeyStatusResponse(
        vendor=key_status.vendor,
        configured=key_status.configured,
        source=key_status.source,
        masked_key=key_status.masked_key,
        updated_at=key_status.updated_at,
    )


@router.get("", response_model=list[VendorKeyStatusResponse], summary="List vendor key statuses")
async def list_vendor_keys(state: AppStateDep) -> list[VendorKeyStatusResponse]:
    return [status_response(s) for s in await state.vendor_keys.get_statuses()]


@router.put("/{vendor}", response_model=VendorKeyStatusResponse, summary="Set a vendor API key")
async def set_vendor_key(vendor: Vendor, body: VendorKeyRequest, state: AppStateDep) -> VendorKeyStatusResponse:
    return status_response(await state.vendor_keys.upsert(vendor, body.api_key))


@router.delete(
    "/{vendor}",
    response_model=SuccessResponse,
    summary="Delete a vendor API key",
    description="The environment key, if any, applies again.",
)
async def delete_vendor_key(vendor: Vendor, state: AppStateDep) -> SuccessResponse:
    await state.vendor_keys.delete(vendor)
    return SuccessResponse()
