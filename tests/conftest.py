"""Shared fixtures: in-memory store, fake vendor adapters and a wired AppState."""
from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from app.exceptions import VendorError
from app.main import create_app
from app.providers.database.memory_impl import MemoryDatabaseProvider
from app.providers.llm.interface import (
    CompletionConfig,
    CompletionResult,
    TokenUsage,
    Vendor,
    VendorAdapterInterface,
)
from app.providers.llm.registry import VendorRegistry
from app.services.apps import PromptSettings
from app.services.vendor_keys import VendorKeyService
from app.state import AppState

DEFAULT_REPLY = '{"sentiment": "positive"}'


class FakeAdapter(VendorAdapterInterface):
    """Vendor adapter that returns a canned reply or raises, and records calls."""

    def __init__(self, key_service: VendorKeyService, vendor: Vendor) -> None:
        super().__init__(key_service)
        self.name = vendor
        self.display_name = vendor.value.title()
        self.label = vendor.value.title()
        self.reply = DEFAULT_REPLY
        self.usage = TokenUsage(prompt=12, completion=5, total=17)
        self.error: Optional[str] = None
        self.exception: Optional[Exception] = None
        self.delay = 0.0
        self.calls: List[Tuple[str, str, CompletionConfig]] = []

    def _create_client(self, api_key: str) -> object:
        return object()

    async def complete(self, system_prompt: str, user_input: str, config: CompletionConfig) -> CompletionResult:
        self.calls.append((system_prompt, user_input, config))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exception is not None:
            raise self.exception
        if self.error:
            raise VendorError(f"{self.label} API error: {self.error}", vendor=self.name.value)
        return CompletionResult(content=self.reply, token_usage=self.usage)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store() -> MemoryDatabaseProvider:
    database = MemoryDatabaseProvider()
    run(database.initialize())
    return database


@pytest.fixture
def vendor_keys(store) -> VendorKeyService:
    return VendorKeyService(store, env_secrets={"openai": "sk-env-openai-1234"})


@pytest.fixture
def adapters(vendor_keys) -> Dict[Vendor, FakeAdapter]:
    return {vendor: FakeAdapter(vendor_keys, vendor) for vendor in Vendor}


@pytest.fixture
def state(store, vendor_keys, adapters) -> AppState:
    return AppState.build(store, registry=VendorRegistry(adapters.values()), vendor_keys=vendor_keys)


@pytest.fixture
def client(state) -> TestClient:
    return TestClient(create_app(state))


@pytest.fixture
def created(state):
    """An active app with version 1 published and its app-scoped key."""
    return run(state.apps.create_app(
        "Sentiment Analyzer",
        "Classifies text sentiment",
        PromptSettings(system_prompt="Classify the sentiment of the input. Reply in JSON."),
    ))
