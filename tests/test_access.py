"""Tests for credential issuance and validation."""
from __future__ import annotations

import asyncio

import pytest

from app.exceptions import NotFoundError, ValidationError
from app.services.access import AccessGate
from app.services.apps import PromptSettings
from app.utils import digest_key, generate_api_key
from conftest import run

OTHER_PROMPT = PromptSettings(system_prompt="Summarize the input as JSON.")


@pytest.fixture
def gate(store) -> AccessGate:
    return AccessGate(store)


def test_random_key_is_rejected(gate, created):
    random_key = generate_api_key("aak_", 32)
    decision = run(gate.validate(random_key, created.app.id))
    assert not decision.valid


def test_app_key_valid_only_for_its_app(gate, state, created):
    other = run(state.apps.create_app("Other", None, OTHER_PROMPT))
    key = created.api_key.key

    assert run(gate.validate(key, created.app.id)).valid
    assert not run(gate.validate(key, other.app.id)).valid
    # No target app: any existing key is valid
    assert run(gate.validate(key)).valid


def test_global_key_valid_for_every_app(gate, state, created):
    other = run(state.apps.create_app("Other", None, OTHER_PROMPT))
    issued = run(gate.create_global("CI pipeline"))

    assert issued.app_id is None
    for app_id in (created.app.id, other.app.id, "does-not-exist"):
        decision = run(gate.validate(issued.key, app_id))
        assert decision.valid
        assert decision.is_global
        assert decision.name == "CI pipeline"


def test_only_digest_is_stored(store, created):
    credentials = run(store.list_credentials(created.app.id))
    assert len(credentials) == 1
    assert credentials[0].key_digest == digest_key(created.api_key.key)
    assert created.api_key.key not in repr(credentials[0])


def test_create_for_missing_app(gate):
    with pytest.raises(NotFoundError):
        run(gate.create_for_app("missing-abcde"))


def test_default_app_key_name(gate, created):
    issued = run(gate.create_for_app(created.app.id))
    assert issued.name == f"API Key for {created.app.id}"
    assert issued.key.startswith("aak_")


def test_global_key_requires_name(gate):
    with pytest.raises(ValidationError):
        run(gate.create_global("   "))


def test_rotate_invalidates_old_key(gate, created):
    old_key = created.api_key.key
    rotated = run(gate.rotate(created.api_key.id))

    assert rotated.id == created.api_key.id
    assert rotated.key != old_key
    assert not run(gate.validate(old_key, created.app.id)).valid
    assert run(gate.validate(rotated.key, created.app.id)).valid


def test_rotate_missing_credential(gate):
    assert run(gate.rotate("ak-missing")) is None


def test_delete_revokes_key(gate, created):
    assert run(gate.delete(created.api_key.id))
    assert not run(gate.validate(created.api_key.key, created.app.id)).valid
    assert not run(gate.delete(created.api_key.id))


def test_validation_touches_last_used(gate, store, created):
    async def validate_and_settle():
        await gate.validate(created.api_key.key, created.app.id)
        # Let the detached touch run
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        return await store.find_credential(created.api_key.id)

    credential = run(validate_and_settle())
    assert credential.last_used_at is not None
