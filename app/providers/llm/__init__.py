"""
Vendor Providers - Factory module for AI vendor adapters.

Builds the vendor registry with one adapter per supported vendor.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from .anthropic_impl import AnthropicAdapter
from .gemini_impl import GeminiAdapter
from .interface import (
    CompletionConfig,
    CompletionResult,
    ModelDescriptor,
    ResponseFormat,
    TokenUsage,
    Vendor,
    VendorAdapterInterface,
    VendorInfo,
)
from .openai_impl import OpenAIAdapter
from .registry import VendorRegistry, infer_vendor

if TYPE_CHECKING:
    from app.services.vendor_keys import VendorKeyService


def create_vendor_registry(key_service: "VendorKeyService") -> VendorRegistry:
    """Create the registry with the OpenAI, Anthropic and Gemini adapters."""
    return VendorRegistry([
        OpenAIAdapter(key_service),
        AnthropicAdapter(key_service),
        GeminiAdapter(key_service),
    ])


__all__ = [
    "create_vendor_registry",
    "infer_vendor",
    "CompletionConfig",
    "CompletionResult",
    "ModelDescriptor",
    "ResponseFormat",
    "TokenUsage",
    "Vendor",
    "VendorAdapterInterface",
    "VendorInfo",
    "VendorRegistry",
]
