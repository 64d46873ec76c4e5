"""Tests for the execution gateway."""
from __future__ import annotations

import json

import pytest

from app.exceptions import AuthInvalidError, AuthMissingError, ConfigError, DatabaseError
from app.providers.database.interface import App, ExecutionStatus
from app.providers.llm.interface import ResponseFormat, Vendor
from app.providers.llm.openai_impl import OpenAIAdapter
from app.providers.llm.registry import VendorRegistry
from app.services import execution
from app.services.apps import PromptSettings
from app.services.execution import (
    TEST_ERROR_CALLER,
    TEST_SUCCESS_CALLER,
    DirectTestRequest,
    success_rate,
)
from app.state import AppState
from conftest import run


def records_for(store, app_id):
    records, _ = run(store.list_executions(app_id, 100))
    return records


def test_success_is_recorded(state, store, adapters, created):
    outcome = run(state.gateway.execute(created.app.id, {"text": "great"}, created.api_key.key, "billing"))

    assert outcome.status == ExecutionStatus.SUCCESS
    assert outcome.output == {"sentiment": "positive"}
    assert outcome.token_usage.total == 17
    assert outcome.version_id == created.version.id

    system_prompt, user_input, config = adapters[Vendor.OPENAI].calls[0]
    assert json.loads(user_input) == {"text": "great"}
    assert config.model == "gpt-4o"

    records = records_for(store, created.app.id)
    assert len(records) == 1
    record = records[0]
    assert record.id == outcome.execution_id
    assert record.status == ExecutionStatus.SUCCESS
    assert record.caller_service == "billing"
    assert record.raw_response == '{"sentiment": "positive"}'
    assert record.input == {"text": "great"}


def test_missing_key_is_recorded_and_raised(state, store, adapters, created):
    with pytest.raises(AuthMissingError):
        run(state.gateway.execute(created.app.id, {"text": "x"}, None))

    (record,) = records_for(store, created.app.id)
    assert record.status == ExecutionStatus.ERROR
    assert record.error_message.startswith("[auth_error] Missing API key")
    assert record.version_id is None
    assert record.latency_ms == 0
    assert adapters[Vendor.OPENAI].calls == []


def test_invalid_key_is_recorded_and_raised(state, store, adapters, created):
    with pytest.raises(AuthInvalidError):
        run(state.gateway.execute(created.app.id, {"text": "x"}, "aak_not-a-real-key"))

    (record,) = records_for(store, created.app.id)
    assert record.error_message.startswith("[auth_error] Invalid API key")
    assert adapters[Vendor.OPENAI].calls == []


def test_key_for_other_app_is_rejected(state, store, created):
    other = run(state.apps.create_app("Other", None, PromptSettings(system_prompt="Echo as JSON.")))
    with pytest.raises(AuthInvalidError):
        run(state.gateway.execute(other.app.id, {}, created.api_key.key))
    assert len(records_for(store, other.app.id)) == 1


def test_app_without_published_version(state, store, adapters):
    run(store.create_app(App(id="draft-abcde", name="Draft")))
    issued = run(state.access.create_global("ops"))

    with pytest.raises(ConfigError):
        run(state.gateway.execute("draft-abcde", {"text": "x"}, issued.key))

    assert records_for(store, "draft-abcde") == []
    assert all(adapter.calls == [] for adapter in adapters.values())


def test_missing_and_deprecated_apps_are_config_errors(state, store, created):
    with pytest.raises(ConfigError):
        run(state.gateway.execute("nope-12345", {}, run(state.access.create_global("ops")).key))

    run(state.apps.deprecate_app(created.app.id))
    with pytest.raises(ConfigError) as exc_info:
        run(state.gateway.execute(created.app.id, {}, created.api_key.key))
    assert exc_info.value.error_code == "APP_NOT_ACTIVE"
    assert records_for(store, created.app.id) == []


def test_vendor_failure_is_error_outcome(state, store, adapters, created):
    adapter = adapters[Vendor.OPENAI]
    adapter.error = "connection reset"
    adapter.delay = 0.05

    outcome = run(state.gateway.execute(created.app.id, {"text": "x"}, created.api_key.key))

    assert outcome.status == ExecutionStatus.ERROR
    assert outcome.error_message == "Openai API error: connection reset"
    assert outcome.output is None
    assert outcome.latency_ms >= 45

    (record,) = records_for(store, created.app.id)
    assert record.status == ExecutionStatus.ERROR
    assert record.id == outcome.execution_id
    assert record.version_id == created.version.id
    assert record.latency_ms == outcome.latency_ms


def test_record_failure_does_not_change_result(state, store, created, monkeypatch):
    async def broken_append(record):
        raise RuntimeError("store offline")

    monkeypatch.setattr(store, "append_execution", broken_append)

    outcome = run(state.gateway.execute(created.app.id, {"text": "x"}, created.api_key.key))
    assert outcome.status == ExecutionStatus.SUCCESS
    assert outcome.output == {"sentiment": "positive"}
    assert not outcome.recorded


def test_text_versions_skip_recovery(state, adapters, created):
    version = run(state.apps.create_version(
        created.app.id,
        PromptSettings(system_prompt="Write a haiku.", model="gpt-4o", response_format=ResponseFormat.TEXT),
    ))
    run(state.apps.publish_version(created.app.id, version.id))
    adapters[Vendor.OPENAI].reply = '{"looks": "like json"}'

    outcome = run(state.gateway.execute(created.app.id, {}, created.api_key.key))
    assert outcome.output is None
    assert outcome.raw_response == '{"looks": "like json"}'


def test_unrecoverable_json_output_is_still_success(state, adapters, created):
    adapters[Vendor.OPENAI].reply = "I cannot help with that."
    outcome = run(state.gateway.execute(created.app.id, {}, created.api_key.key))
    assert outcome.status == ExecutionStatus.SUCCESS
    assert outcome.output is None


def test_test_version_runs_unpublished(state, store, adapters, created):
    draft = run(state.apps.create_version(
        created.app.id,
        PromptSettings(system_prompt="Classify in JSON.", model="claude-sonnet-4-20250514"),
    ))
    outcome = run(state.gateway.test_version(created.app.id, draft.id, {"text": "x"}, "console"))

    assert outcome.version_id == draft.id
    assert len(adapters[Vendor.ANTHROPIC].calls) == 1
    assert records_for(store, created.app.id)[0].version_id == draft.id


def test_test_version_missing(state, created):
    with pytest.raises(ConfigError):
        run(state.gateway.test_version(created.app.id, "pv-missing", {}))


def test_direct_test_defaults_and_no_record(state, store, adapters):
    result = run(state.gateway.test_direct(DirectTestRequest(system_prompt="Echo as JSON.", input={"a": 1})))

    assert result.error is None
    assert result.output == {"sentiment": "positive"}
    _, _, config = adapters[Vendor.OPENAI].calls[0]
    assert (config.model, config.temperature, config.max_tokens) == ("gpt-5.2", 0.7, 4096)
    assert config.response_format == ResponseFormat.JSON
    assert run(store.list_recent_executions(10)) == []


def test_direct_test_infers_vendor_and_records(state, store, adapters, created):
    request = DirectTestRequest(system_prompt="Echo.", input={}, model="gemini-2.5-flash")
    run(state.gateway.test_direct(request, app_id=created.app.id))

    assert len(adapters[Vendor.GEMINI].calls) == 1
    (record,) = records_for(store, created.app.id)
    assert record.caller_service == TEST_SUCCESS_CALLER
    assert record.version_id is None


def test_direct_test_failure_is_returned(state, store, adapters, created):
    adapters[Vendor.OPENAI].error = "bad request"
    result = run(state.gateway.test_direct(
        DirectTestRequest(system_prompt="Echo.", input={}),
        app_id=created.app.id,
    ))

    assert result.error == "Openai API error: bad request"
    assert result.output is None
    (record,) = records_for(store, created.app.id)
    assert record.caller_service == TEST_ERROR_CALLER
    assert record.error_message.startswith("[test_error] ")


@pytest.mark.parametrize("successes, total, rate", [(0, 0, 0.0), (3, 4, 75.0), (5, 5, 100.0), (0, 2, 0.0)])
def test_success_rate(successes, total, rate):
    assert success_rate(successes, total) == rate


def test_stats_and_logs(state, adapters, created):
    key = created.api_key.key
    run(state.gateway.execute(created.app.id, {"n": 1}, key))
    run(state.gateway.execute(created.app.id, {"n": 2}, key))
    adapters[Vendor.OPENAI].error = "boom"
    run(state.gateway.execute(created.app.id, {"n": 3}, key))

    stats = run(state.gateway.get_stats(created.app.id))
    assert (stats.total_executions, stats.success_count, stats.error_count) == (3, 2, 1)
    assert stats.total_tokens == 34

    global_stats = run(state.gateway.get_global_stats())
    assert global_stats.total_apps == 1
    assert global_stats.active_apps == 1
    assert global_stats.success_rate == pytest.approx(200 / 3)

    logs, total = run(state.gateway.get_logs(created.app.id, limit=2))
    assert total == 3
    assert [r.input for r in logs] == [{"n": 3}, {"n": 2}]
    assert run(state.gateway.get_log(logs[0].id)).id == logs[0].id


# =============================================================================
# Failures Outside the Vendor Call
# =============================================================================

@pytest.fixture
def openai_state(store, vendor_keys, adapters):
    """State whose OpenAI slot is the real adapter, so secret lookup runs."""
    registry = VendorRegistry([OpenAIAdapter(vendor_keys), adapters[Vendor.ANTHROPIC], adapters[Vendor.GEMINI]])
    return AppState.build(store, registry=registry, vendor_keys=vendor_keys)


def test_secret_lookup_failure_is_recorded(openai_state, store, created, monkeypatch):
    async def unreachable(vendor):
        raise DatabaseError("Failed to fetch vendor secret", details="firestore timeout")

    monkeypatch.setattr(store, "find_vendor_secret", unreachable)

    outcome = run(openai_state.gateway.execute(created.app.id, {"text": "x"}, created.api_key.key))

    assert outcome.status == ExecutionStatus.ERROR
    assert outcome.error_message.startswith("OpenAI API key could not be resolved")
    (record,) = records_for(store, created.app.id)
    assert record.status == ExecutionStatus.ERROR
    assert record.id == outcome.execution_id


def test_corrupt_stored_secret_is_recorded(openai_state, store, created):
    run(store.upsert_vendor_secret(Vendor.OPENAI, "notbase64"))

    outcome = run(openai_state.gateway.execute(created.app.id, {"text": "x"}, created.api_key.key))

    assert outcome.status == ExecutionStatus.ERROR
    assert len(records_for(store, created.app.id)) == 1


def test_unexpected_adapter_exception_is_recorded(state, store, adapters, created):
    adapters[Vendor.OPENAI].exception = RuntimeError("socket closed")

    outcome = run(state.gateway.execute(created.app.id, {"text": "x"}, created.api_key.key))

    assert outcome.status == ExecutionStatus.ERROR
    assert outcome.error_message == "[execution_error] RuntimeError: socket closed"
    (record,) = records_for(store, created.app.id)
    assert record.error_message == outcome.error_message
    assert record.version_id == created.version.id


def test_deeply_nested_reply_is_a_recovery_miss(state, store, adapters, created):
    adapters[Vendor.OPENAI].reply = "[" * 100000

    outcome = run(state.gateway.execute(created.app.id, {}, created.api_key.key))

    assert outcome.status == ExecutionStatus.SUCCESS
    assert outcome.output is None
    (record,) = records_for(store, created.app.id)
    assert record.status == ExecutionStatus.SUCCESS


def test_recovery_exception_does_not_lose_the_record(state, store, created, monkeypatch):
    def broken(text):
        raise RuntimeError("scanner failure")

    monkeypatch.setattr(execution, "recover_structured_output", broken)

    outcome = run(state.gateway.execute(created.app.id, {}, created.api_key.key))
    assert outcome.status == ExecutionStatus.SUCCESS
    assert outcome.output is None
    assert len(records_for(store, created.app.id)) == 1


def test_direct_test_unexpected_exception_is_returned(state, store, adapters, created):
    adapters[Vendor.OPENAI].exception = KeyError("choices")

    result = run(state.gateway.test_direct(DirectTestRequest(system_prompt="Echo.", input={}), app_id=created.app.id))

    assert result.error == "[execution_error] KeyError: 'choices'"
    (record,) = records_for(store, created.app.id)
    assert record.caller_service == TEST_ERROR_CALLER
