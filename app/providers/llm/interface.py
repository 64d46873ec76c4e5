"""
Abstract interface for AI vendor adapters.

Every vendor (OpenAI, Anthropic, Gemini) implements this interface so the
execution gateway can dispatch to any of them through one contract.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Dict, List, TypeVar

from ...config import settings
from ...exceptions import VendorError

if TYPE_CHECKING:
    from ...services.vendor_keys import VendorKeyService

T = TypeVar("T")


class Vendor(str, Enum):
    """Supported AI vendors."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


class ResponseFormat(str, Enum):
    """Output format requested from the model."""
    JSON = "json"
    TEXT = "text"


@dataclass(frozen=True)
class ModelDescriptor:
    """Static description of one vendor model."""
    id: str
    name: str
    context_window: int
    max_output: int


@dataclass
class CompletionConfig:
    """Generation parameters for a single completion call."""
    model: str
    temperature: float = 0.7
    max_tokens: int = 4096
    response_format: ResponseFormat = ResponseFormat.JSON


@dataclass
class TokenUsage:
    """Token counts as reported by the vendor (missing counts are 0)."""
    prompt: int = 0
    completion: int = 0
    total: int = 0


@dataclass
class CompletionResult:
    """Normalized result of a completion call."""
    content: str
    token_usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass
class VendorInfo:
    """Vendor description for catalog listings."""
    name: str
    display_name: str
    available: bool
    models: List[ModelDescriptor]


class VendorAdapterInterface(ABC):
    """
    Abstract interface for vendor adapters.

    All implementations must provide:
    - A static model catalog
    - Availability based on whether a secret can be resolved
    - A single-turn completion normalized to CompletionResult
    """

    #: Vendor id, e.g. "openai"
    name: Vendor
    #: Human-readable vendor name
    display_name: str
    #: Short name used in error messages, e.g. "Gemini API error: ..."
    label: str
    #: Static model catalog
    models: tuple[ModelDescriptor, ...] = ()

    def __init__(self, key_service: "VendorKeyService") -> None:
        self._key_service = key_service
        # SDK clients keyed by secret; an operator may replace the secret at runtime
        self._clients: Dict[str, Any] = {}

    @abstractmethod
    def _create_client(self, api_key: str) -> Any:
        """Build the vendor SDK client for an API key."""
        pass

    async def _get_client(self) -> Any:
        """
        Resolve the current secret and return a client bound to it.

        Raises:
            VendorError: If the secret is missing or cannot be read
        """
        try:
            api_key = await self._key_service.get_secret(self.name)
        except Exception as e:
            raise VendorError(
                f"{self.label} API key could not be resolved: {e}",
                vendor=self.name.value,
                details=type(e).__name__,
            )
        if not api_key:
            raise VendorError(
                f"{self.label} API key not configured",
                vendor=self.name.value,
            )

        client = self._clients.get(api_key)
        if client is None:
            # Drop clients built for a previous secret
            self._clients.clear()
            try:
                client = self._create_client(api_key)
            except Exception as e:
                raise self._wrap_error(e)
            self._clients[api_key] = client
        return client

    async def _with_timeout(self, call: Awaitable[T]) -> T:
        """Bound a vendor call by VENDOR_TIMEOUT_SECONDS."""
        try:
            return await asyncio.wait_for(call, timeout=settings.VENDOR_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            raise VendorError(
                f"{self.label} API error: request timed out",
                vendor=self.name.value,
                details=f"Timeout after {settings.VENDOR_TIMEOUT_SECONDS}s",
            )

    def _wrap_error(self, exc: Exception) -> VendorError:
        """Classify any SDK or transport failure as a VendorError."""
        if isinstance(exc, VendorError):
            return exc
        return VendorError(
            f"{self.label} API error: {exc}",
            vendor=self.name.value,
            details=type(exc).__name__,
        )

    def list_models(self) -> List[ModelDescriptor]:
        """Get the vendor's model catalog."""
        return list(self.models)

    async def is_available(self) -> bool:
        """Check if a secret is configured for this vendor."""
        return await self._key_service.get_secret(self.name) is not None

    async def describe(self) -> VendorInfo:
        return VendorInfo(
            name=self.name.value,
            display_name=self.display_name,
            available=await self.is_available(),
            models=self.list_models(),
        )

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_input: str,
        config: CompletionConfig,
    ) -> CompletionResult:
        """
        Run a single-turn completion.

        Args:
            system_prompt: The prompt version's system prompt
            user_input: Serialized caller input
            config: Model and generation parameters

        Returns:
            CompletionResult with raw content and token usage

        Raises:
            VendorError: On any failure, including a missing secret
        """
        pass


def mentions_json(prompt: str) -> bool:
    """Check whether a system prompt already asks for JSON."""
    return "json" in prompt.lower()
