"""Tests for vendor secret resolution."""
from __future__ import annotations

import pytest

from app.exceptions import ValidationError
from app.providers.llm.interface import Vendor
from app.services.vendor_keys import SOURCE_DATABASE, SOURCE_ENVIRONMENT
from conftest import run


def test_environment_fallback(vendor_keys):
    assert run(vendor_keys.get_secret(Vendor.OPENAI)) == "sk-env-openai-1234"
    assert run(vendor_keys.get_secret(Vendor.ANTHROPIC)) is None


def test_stored_secret_takes_precedence(vendor_keys):
    run(vendor_keys.upsert(Vendor.OPENAI, "sk-stored-5678"))
    assert run(vendor_keys.get_secret("openai")) == "sk-stored-5678"


def test_delete_restores_environment_fallback(vendor_keys):
    run(vendor_keys.upsert(Vendor.OPENAI, "sk-stored-5678"))
    assert run(vendor_keys.delete(Vendor.OPENAI))
    assert run(vendor_keys.get_secret(Vendor.OPENAI)) == "sk-env-openai-1234"
    assert not run(vendor_keys.delete(Vendor.OPENAI))


def test_secret_is_stored_encoded(vendor_keys, store):
    run(vendor_keys.upsert(Vendor.GEMINI, "AIza-gemini-key"))
    stored = run(store.find_vendor_secret(Vendor.GEMINI))
    assert stored.encoded_key != "AIza-gemini-key"


def test_statuses_mask_keys(vendor_keys):
    run(vendor_keys.upsert(Vendor.ANTHROPIC, "sk-ant-abcd9876"))
    statuses = {s.vendor: s for s in run(vendor_keys.get_statuses())}

    assert statuses[Vendor.ANTHROPIC].source == SOURCE_DATABASE
    assert statuses[Vendor.ANTHROPIC].masked_key == "****9876"
    assert statuses[Vendor.OPENAI].source == SOURCE_ENVIRONMENT
    assert statuses[Vendor.OPENAI].masked_key == "****1234"
    assert not statuses[Vendor.GEMINI].configured
    assert statuses[Vendor.GEMINI].masked_key is None


def test_empty_key_rejected(vendor_keys):
    with pytest.raises(ValidationError):
        run(vendor_keys.upsert(Vendor.OPENAI, "   "))


def test_unknown_vendor_rejected(vendor_keys):
    with pytest.raises(ValueError):
        run(vendor_keys.get_secret("mistral"))
