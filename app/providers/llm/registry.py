"""
Vendor registry.

Maps vendor ids to adapters. Built once at process start and read-only
afterwards, so concurrent requests share it without locking.
"""
from __future__ import annotations

from typing import Dict, Iterable, List

from ...config import get_logger
from ...exceptions import UnknownVendorError
from .interface import ModelDescriptor, Vendor, VendorAdapterInterface, VendorInfo

logger = get_logger("llm.registry")

# Model id prefixes that identify a non-default vendor
MODEL_PREFIXES: tuple[tuple[str, Vendor], ...] = (
    ("claude", Vendor.ANTHROPIC),
    ("gemini", Vendor.GEMINI),
)
DEFAULT_VENDOR = Vendor.OPENAI


def infer_vendor(model: str | None) -> Vendor:
    """
    Infer the vendor from a model id.

    Args:
        model: Model id, e.g. "claude-sonnet-4-20250514"

    Returns:
        The matching vendor; OpenAI for unknown prefixes or no model
    """
    if not model:
        return DEFAULT_VENDOR
    lowered = model.lower()
    for prefix, vendor in MODEL_PREFIXES:
        if lowered.startswith(prefix):
            return vendor
    return DEFAULT_VENDOR


class VendorRegistry:
    """Lookup table from vendor id to adapter."""

    def __init__(self, adapters: Iterable[VendorAdapterInterface]) -> None:
        self._adapters: Dict[Vendor, VendorAdapterInterface] = {}
        for adapter in adapters:
            self._adapters[adapter.name] = adapter

        missing = [v.value for v in Vendor if v not in self._adapters]
        if missing:
            raise UnknownVendorError(
                "Vendor registry is incomplete",
                details=f"No adapter for: {', '.join(missing)}",
            )

        logger.info("Vendor registry ready: %s", ", ".join(v.value for v in self._adapters))

    def get(self, vendor: Vendor | str) -> VendorAdapterInterface:
        """
        Get the adapter for a vendor.

        Raises:
            UnknownVendorError: If no adapter is registered for the id
        """
        try:
            key = Vendor(vendor)
        except ValueError:
            raise UnknownVendorError(
                f"Unknown vendor: {vendor}",
                details=f"Supported: {', '.join(v.value for v in Vendor)}",
            )
        return self._adapters[key]

    def get_for_model(self, model: str | None) -> VendorAdapterInterface:
        return self._adapters[infer_vendor(model)]

    def names(self) -> List[str]:
        return [v.value for v in self._adapters]

    def models_by_vendor(self) -> Dict[str, List[ModelDescriptor]]:
        return {v.value: adapter.list_models() for v, adapter in self._adapters.items()}

    async def describe_all(self) -> List[VendorInfo]:
        """Describe every vendor, including availability."""
        return [await adapter.describe() for adapter in self._adapters.values()]

    async def describe_available(self) -> List[VendorInfo]:
        """Describe only vendors with a configured secret."""
        return [info for info in await self.describe_all() if info.available]
