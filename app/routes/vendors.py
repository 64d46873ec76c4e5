"""
Vendor registry endpoints.

Usage:
    GET /api/v1/vendors                  - All vendors with availability and models
    GET /api/v1/vendors/catalog          - Configured vendors and models for selection lists
    GET /api/v1/vendors/{name}
    GET /api/v1/vendors/{name}/models
    GET /api/v1/vendors/{name}/status
"""
from __future__ import annotations

from fastapi import APIRouter

from app.config import get_logger
from app.dependencies import AppStateDep
from app.exceptions import NotFoundError, UnknownVendorError
from app.models import (
    ModelResponse,
    VendorCatalogResponse,
    VendorOption,
    VendorResponse,
    VendorStatusResponse,
)
from app.providers.llm.interface import VendorAdapterInterface, VendorInfo
from app.state import AppState

logger = get_logger("routes.vendors")

router = APIRouter(prefix="/api/v1/vendors", tags=["Vendors"])


def lookup(state: AppState, name: str) -> VendorAdapterInterface:
    try:
        return state.registry.get(name)
    except UnknownVendorError:
        raise NotFoundError(f"Vendor not found: {name}")


def vendor_response(info: VendorInfo) -> VendorResponse:
    return VendorResponse(
        name=info.name,
        display_name=info.display_name,
        available=info.available,
        models=[ModelResponse.from_descriptor(m) for m in info.models],
    )


@router.get("", response_model=list[VendorResponse], summary="List vendors")
async def list_vendors(state: AppStateDep) -> list[VendorResponse]:
    return [vendor_response(info) for info in await state.registry.describe_all()]


@router.get("/catalog", response_model=VendorCatalogResponse, summary="Configured vendors and their models")
async def vendor_catalog(state: AppStateDep) -> VendorCatalogResponse:
    available = await state.registry.describe_available()
    return VendorCatalogResponse(
        vendors=[VendorOption(id=info.name, display_name=info.display_name) for info in available],
        models_by_vendor={
            info.name: [VendorOption(id=m.id, display_name=m.name) for m in info.models]
            for info in available
        },
    )


@router.get("/{name}", response_model=VendorResponse, summary="Get a vendor")
async def get_vendor(name: str, state: AppStateDep) -> VendorResponse:
    return vendor_response(await lookup(state, name).describe())


@router.get("/{name}/models", response_model=list[ModelResponse], summary="Models of a vendor")
async def vendor_models(name: str, state: AppStateDep) -> list[ModelResponse]:
    return [ModelResponse.from_descriptor(m) for m in lookup(state, name).list_models()]


@router.get("/{name}/status", response_model=VendorStatusResponse, summary="Whether a vendor has a secret")
async def vendor_status(name: str, state: AppStateDep) -> VendorStatusResponse:
    adapter = lookup(state, name)
    return VendorStatusResponse(name=adapter.name, available=await adapter.is_available())
