"""
Tests for the vendor registry and adapters.

SDK clients are replaced with mocks; no network calls are made.
"""
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from app.config import settings
from app.exceptions import UnknownVendorError, VendorError
from app.providers.llm import create_vendor_registry
from app.providers.llm.anthropic_impl import AnthropicAdapter
from app.providers.llm.gemini_impl import GeminiAdapter
from app.providers.llm.interface import CompletionConfig, ResponseFormat, Vendor
from app.providers.llm.openai_impl import OpenAIAdapter
from app.providers.llm.registry import VendorRegistry, infer_vendor
from app.services.vendor_keys import VendorKeyService
from conftest import FakeAdapter, run

ALL_KEYS = {"openai": "sk-openai", "anthropic": "sk-ant", "gemini": "AIza-gemini"}


@pytest.fixture
def keys(store) -> VendorKeyService:
    return VendorKeyService(store, env_secrets=ALL_KEYS)


def openai_client(content: str = '{"a": 1}', delay: float = 0.0, error: Exception | None = None):
    async def create(**kwargs):
        if delay:
            await asyncio.sleep(delay)
        if error:
            raise error
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=4, total_tokens=14),
        )

    create_mock = AsyncMock(side_effect=create)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create_mock))), create_mock


# =============================================================================
# Registry
# =============================================================================

@pytest.mark.parametrize("model, vendor", [
    ("claude-sonnet-4-20250514", Vendor.ANTHROPIC),
    ("Claude-opus", Vendor.ANTHROPIC),
    ("gemini-2.5-flash", Vendor.GEMINI),
    ("gpt-4o", Vendor.OPENAI),
    ("mistral-large", Vendor.OPENAI),
    (None, Vendor.OPENAI),
    ("", Vendor.OPENAI),
])
def test_infer_vendor(model, vendor):
    assert infer_vendor(model) == vendor


def test_registry_has_every_vendor(keys):
    registry = create_vendor_registry(keys)
    assert set(registry.names()) == {"openai", "anthropic", "gemini"}
    assert isinstance(registry.get("anthropic"), AnthropicAdapter)
    assert isinstance(registry.get_for_model("gemini-2.5-flash"), GeminiAdapter)


def test_registry_unknown_vendor(keys):
    with pytest.raises(UnknownVendorError):
        create_vendor_registry(keys).get("mistral")


def test_incomplete_registry_rejected(keys):
    with pytest.raises(UnknownVendorError):
        VendorRegistry([FakeAdapter(keys, Vendor.OPENAI)])


def test_describe_available_follows_secrets(store):
    registry = create_vendor_registry(VendorKeyService(store, env_secrets={"gemini": "AIza-gemini"}))
    available = run(registry.describe_available())
    assert [info.name for info in available] == ["gemini"]
    assert available[0].models


# =============================================================================
# Adapters
# =============================================================================

def test_missing_secret_is_vendor_error(store):
    adapter = OpenAIAdapter(VendorKeyService(store, env_secrets={}))
    with pytest.raises(VendorError) as exc_info:
        run(adapter.complete("Be brief.", "{}", CompletionConfig(model="gpt-4o")))
    assert exc_info.value.message == "OpenAI API key not configured"
    assert exc_info.value.vendor == "openai"


def test_openai_json_mode_adds_instruction(keys, monkeypatch):
    client, create = openai_client()
    adapter = OpenAIAdapter(keys)
    monkeypatch.setattr(adapter, "_create_client", lambda api_key: client)

    result = run(adapter.complete("Classify the text.", '{"text": "hi"}', CompletionConfig(model="gpt-4o")))

    kwargs = create.call_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][0]["content"].endswith("You must respond with valid JSON.")
    assert kwargs["messages"][1]["content"] == '{"text": "hi"}'
    assert result.content == '{"a": 1}'
    assert (result.token_usage.prompt, result.token_usage.completion, result.token_usage.total) == (10, 4, 14)


def test_openai_prompt_mentioning_json_is_unchanged(keys, monkeypatch):
    client, create = openai_client()
    adapter = OpenAIAdapter(keys)
    monkeypatch.setattr(adapter, "_create_client", lambda api_key: client)

    run(adapter.complete("Return JSON with a label.", "{}", CompletionConfig(model="gpt-4o")))
    assert create.call_args.kwargs["messages"][0]["content"] == "Return JSON with a label."


def test_openai_text_mode(keys, monkeypatch):
    client, create = openai_client(content="plain words")
    adapter = OpenAIAdapter(keys)
    monkeypatch.setattr(adapter, "_create_client", lambda api_key: client)

    config = CompletionConfig(model="gpt-4o", response_format=ResponseFormat.TEXT)
    result = run(adapter.complete("Write a haiku.", "{}", config))
    assert create.call_args.kwargs["response_format"] == {"type": "text"}
    assert create.call_args.kwargs["messages"][0]["content"] == "Write a haiku."
    assert result.content == "plain words"


def test_sdk_error_is_wrapped(keys, monkeypatch):
    client, _ = openai_client(error=RuntimeError("quota exceeded"))
    adapter = OpenAIAdapter(keys)
    monkeypatch.setattr(adapter, "_create_client", lambda api_key: client)

    with pytest.raises(VendorError) as exc_info:
        run(adapter.complete("x", "{}", CompletionConfig(model="gpt-4o")))
    assert exc_info.value.message == "OpenAI API error: quota exceeded"


def test_vendor_timeout_is_vendor_error(keys, monkeypatch):
    client, _ = openai_client(delay=1.0)
    adapter = OpenAIAdapter(keys)
    monkeypatch.setattr(adapter, "_create_client", lambda api_key: client)
    monkeypatch.setattr(settings, "VENDOR_TIMEOUT_SECONDS", 0.05)

    with pytest.raises(VendorError) as exc_info:
        run(adapter.complete("x", "{}", CompletionConfig(model="gpt-4o")))
    assert "timed out" in exc_info.value.message


def test_client_rebuilt_when_secret_changes(keys, monkeypatch):
    built = []
    adapter = OpenAIAdapter(keys)

    def create_client(api_key):
        built.append(api_key)
        return openai_client()[0]

    monkeypatch.setattr(adapter, "_create_client", create_client)
    run(adapter.complete("x", "{}", CompletionConfig(model="gpt-4o")))
    run(adapter.complete("x", "{}", CompletionConfig(model="gpt-4o")))
    run(keys.upsert(Vendor.OPENAI, "sk-rotated"))
    run(adapter.complete("x", "{}", CompletionConfig(model="gpt-4o")))

    assert built == ["sk-openai", "sk-rotated"]


def test_anthropic_always_appends_json_instruction(keys, monkeypatch):
    response = SimpleNamespace(
        content=[SimpleNamespace(type="text", text='{"ok": true}')],
        usage=SimpleNamespace(input_tokens=8, output_tokens=3),
    )
    create = AsyncMock(return_value=response)
    adapter = AnthropicAdapter(keys)
    monkeypatch.setattr(adapter, "_create_client", lambda api_key: SimpleNamespace(messages=SimpleNamespace(create=create)))

    result = run(adapter.complete("Reply in JSON.", "{}", CompletionConfig(model="claude-sonnet-4-20250514")))

    assert "IMPORTANT: You must respond with valid JSON only." in create.call_args.kwargs["system"]
    assert result.content == '{"ok": true}'
    assert result.token_usage.total == 11


def test_anthropic_non_text_block_yields_empty_content(keys, monkeypatch):
    response = SimpleNamespace(
        content=[SimpleNamespace(type="tool_use", input={})],
        usage=SimpleNamespace(input_tokens=8, output_tokens=3),
    )
    adapter = AnthropicAdapter(keys)
    monkeypatch.setattr(
        adapter,
        "_create_client",
        lambda api_key: SimpleNamespace(messages=SimpleNamespace(create=AsyncMock(return_value=response))),
    )

    result = run(adapter.complete("x", "{}", CompletionConfig(model="claude-sonnet-4-20250514")))
    assert result.content == ""


def test_gemini_usage_metadata(keys, monkeypatch):
    response = SimpleNamespace(
        text='{"a": 1}',
        usage_metadata=SimpleNamespace(prompt_token_count=6, candidates_token_count=2, total_token_count=8),
    )
    generate = AsyncMock(return_value=response)
    client = SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate)))
    adapter = GeminiAdapter(keys)
    monkeypatch.setattr(adapter, "_create_client", lambda api_key: client)

    result = run(adapter.complete("Classify.", "{}", CompletionConfig(model="gemini-2.5-flash")))

    gen_config = generate.call_args.kwargs["config"]
    assert gen_config.response_mime_type == "application/json"
    assert gen_config.system_instruction.startswith("Classify.")
    assert result.content == '{"a": 1}'
    assert result.token_usage.total == 8


def test_secret_lookup_failure_is_vendor_error(store, monkeypatch):
    keys = VendorKeyService(store, env_secrets=ALL_KEYS)

    async def unreachable(vendor):
        raise RuntimeError("firestore timeout")

    monkeypatch.setattr(keys, "get_secret", unreachable)
    adapter = AnthropicAdapter(keys)

    with pytest.raises(VendorError) as exc_info:
        run(adapter.complete("x", "{}", CompletionConfig(model="claude-sonnet-4-20250514")))
    assert exc_info.value.message == "Anthropic API key could not be resolved: firestore timeout"
    assert exc_info.value.vendor == "anthropic"


def test_client_construction_failure_is_vendor_error(keys, monkeypatch):
    adapter = GeminiAdapter(keys)

    def broken(api_key):
        raise ValueError("malformed key")

    monkeypatch.setattr(adapter, "_create_client", broken)
    with pytest.raises(VendorError) as exc_info:
        run(adapter.complete("x", "{}", CompletionConfig(model="gemini-2.5-flash")))
    assert exc_info.value.message == "Gemini API error: malformed key"
