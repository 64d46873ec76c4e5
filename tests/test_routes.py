"""HTTP-level tests through the FastAPI app."""
from __future__ import annotations

import pytest

from app.providers.llm.interface import Vendor

APP_BODY = {
    "name": "Sentiment Analyzer",
    "description": "Classifies text sentiment",
    "system_prompt": "Classify the sentiment of the input. Reply in JSON.",
}


@pytest.fixture
def new_app(client):
    response = client.post("/api/v1/apps", json=APP_BODY)
    assert response.status_code == 201
    return response.json()


def execute(client, app_id, key=None, body=None, caller=None):
    headers = {}
    if key is not None:
        headers["X-API-Key"] = key
    if caller is not None:
        headers["X-Caller-Service"] = caller
    return client.post(f"/api/v1/execute/{app_id}", json=body or {"input": {"text": "great"}}, headers=headers)


# =============================================================================
# Execute
# =============================================================================

def test_create_and_execute(client, new_app):
    app_id = new_app["app"]["id"]
    assert new_app["app"]["status"] == "active"
    assert new_app["version"]["version"] == 1
    assert new_app["api_key"]["key"].startswith("aak_")

    response = execute(client, app_id, new_app["api_key"]["key"], caller="billing")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["output"] == {"sentiment": "positive"}
    assert body["token_usage"] == {"prompt": 12, "completion": 5, "total": 17}
    assert body["error_message"] is None

    log = client.get(f"/api/v1/logs/{body['execution_id']}").json()
    assert log["caller_service"] == "billing"
    assert log["input"] == {"text": "great"}


def test_execute_without_key(client, new_app):
    response = execute(client, new_app["app"]["id"])
    assert response.status_code == 401
    assert response.json()["error_type"] == "AuthMissingError"


def test_execute_with_wrong_key(client, new_app):
    response = execute(client, new_app["app"]["id"], "aak_wrong")
    assert response.status_code == 403
    assert response.json()["error_type"] == "AuthInvalidError"


def test_execute_unknown_app(client):
    key = client.post("/api/v1/api-keys", json={"name": "ops"}).json()["key"]
    response = execute(client, "missing-abcde", key)
    assert response.status_code == 400
    assert response.json()["error_code"] == "APP_NOT_FOUND"


def test_execute_vendor_failure_is_502(client, adapters, new_app):
    adapters[Vendor.OPENAI].error = "overloaded"
    response = execute(client, new_app["app"]["id"], new_app["api_key"]["key"])

    assert response.status_code == 502
    body = response.json()
    assert body["status"] == "error"
    assert body["error_message"] == "Openai API error: overloaded"
    assert body["output"] is None


def test_execute_requires_input(client, new_app):
    response = client.post(
        f"/api/v1/execute/{new_app['app']['id']}",
        json={"text": "no input wrapper"},
        headers={"X-API-Key": new_app["api_key"]["key"]},
    )
    assert response.status_code == 422


# =============================================================================
# Apps & Versions
# =============================================================================

def test_app_crud(client, new_app):
    app_id = new_app["app"]["id"]
    assert client.post("/api/v1/apps", json=APP_BODY).status_code == 409

    assert [a["id"] for a in client.get("/api/v1/apps", params={"search": "senti"}).json()] == [app_id]
    assert [a["id"] for a in client.get("/api/v1/apps/active").json()] == [app_id]

    updated = client.put(f"/api/v1/apps/{app_id}", json={"description": "v2"}).json()
    assert updated["description"] == "v2"

    assert client.post(f"/api/v1/apps/{app_id}/deprecate").json()["status"] == "deprecated"
    assert client.post(f"/api/v1/apps/{app_id}/activate").json()["status"] == "active"

    assert client.delete(f"/api/v1/apps/{app_id}").json() == {"success": True}
    assert client.get(f"/api/v1/apps/{app_id}").status_code == 404


def test_prompt_versions(client, new_app):
    app_id = new_app["app"]["id"]
    base = f"/api/v1/apps/{app_id}/prompts"

    created = client.post(base, json={"system_prompt": "Be terse.", "model": "gemini-2.5-flash"})
    assert created.status_code == 201
    v2 = created.json()
    assert v2["version"] == 2
    assert v2["vendor"] == "gemini"
    assert not v2["is_published"]

    assert [v["version"] for v in client.get(base).json()] == [2, 1]
    assert client.get(f"{base}/latest").json()["id"] == v2["id"]
    assert client.get(f"{base}/active").json()["version"] == 1
    assert client.get(f"{base}/by-number/2").json()["id"] == v2["id"]
    assert client.get(f"{base}/by-number/7").status_code == 404

    tested = client.post(f"{base}/{v2['id']}/test", json={"input": {"text": "x"}})
    assert tested.status_code == 200

    assert client.post(f"{base}/{v2['id']}/publish").json()["is_published"]
    assert client.get(f"{base}/active").json()["id"] == v2["id"]
    assert client.delete(f"{base}/{v2['id']}").status_code == 409
    assert client.delete(f"{base}/{new_app['version']['id']}").json() == {"success": True}
    assert client.get(f"{base}/{new_app['version']['id']}").status_code == 404


def test_prompt_validation(client, new_app):
    base = f"/api/v1/apps/{new_app['app']['id']}/prompts"
    assert client.post(base, json={"system_prompt": ""}).status_code == 422
    assert client.post(base, json={"system_prompt": "x", "temperature": 3}).status_code == 422
    assert client.post(base, json={"system_prompt": "x", "max_tokens": 0}).status_code == 422
    assert client.post(base, json={"system_prompt": "x", "vendor": "mistral"}).status_code == 422


def test_direct_prompt_test(client, adapters, new_app):
    body = {"system_prompt": "Echo as JSON.", "input": {"a": 1}, "app_id": new_app["app"]["id"]}
    response = client.post("/api/v1/apps/test-prompt", json=body)
    assert response.status_code == 200
    assert response.json()["output"] == {"sentiment": "positive"}

    adapters[Vendor.OPENAI].error = "bad"
    failed = client.post("/api/v1/apps/test-prompt", json=body)
    assert failed.status_code == 502
    assert failed.json()["error"] == "Openai API error: bad"

    logs = client.get(f"/api/v1/apps/{new_app['app']['id']}/logs").json()
    assert logs["total"] == 2


def test_stats_endpoints(client, adapters, new_app):
    app_id, key = new_app["app"]["id"], new_app["api_key"]["key"]
    execute(client, app_id, key)
    adapters[Vendor.OPENAI].error = "down"
    execute(client, app_id, key)

    stats = client.get(f"/api/v1/apps/{app_id}/stats").json()
    assert (stats["total_executions"], stats["success_count"], stats["error_count"]) == (2, 1, 1)

    global_stats = client.get("/api/v1/stats").json()
    assert global_stats["success_rate"] == 50.0
    assert global_stats["total_apps"] == 1

    assert len(client.get("/api/v1/logs", params={"limit": 1}).json()) == 1


# =============================================================================
# Keys
# =============================================================================

def test_api_key_lifecycle(client, new_app):
    app_id = new_app["app"]["id"]
    issued = client.post(f"/api/v1/apps/{app_id}/api-keys", json={"name": "worker"}).json()
    assert issued["name"] == "worker"

    listed = client.get(f"/api/v1/apps/{app_id}/api-keys").json()
    assert {k["id"] for k in listed} == {issued["id"], new_app["api_key"]["id"]}
    assert all("key" not in k for k in listed)

    rotated = client.post(f"/api/v1/api-keys/{issued['id']}/regenerate").json()
    assert execute(client, app_id, issued["key"]).status_code == 403
    assert execute(client, app_id, rotated["key"]).status_code == 200

    assert client.delete(f"/api/v1/api-keys/{issued['id']}").json() == {"success": True}
    assert client.delete(f"/api/v1/api-keys/{issued['id']}").status_code == 404
    assert client.post("/api/v1/api-keys/ak-missing/regenerate").status_code == 404


def test_global_key_requires_name(client):
    assert client.post("/api/v1/api-keys", json={}).status_code == 422


def test_vendor_keys(client):
    statuses = {s["vendor"]: s for s in client.get("/api/v1/vendor-keys").json()}
    assert statuses["openai"]["source"] == "environment"
    assert not statuses["gemini"]["configured"]

    saved = client.put("/api/v1/vendor-keys/gemini", json={"api_key": "AIza-secret-9999"}).json()
    assert saved["masked_key"] == "****9999"
    assert "AIza-secret-9999" not in str(client.get("/api/v1/vendor-keys").json())

    assert client.delete("/api/v1/vendor-keys/gemini").json() == {"success": True}
    assert client.put("/api/v1/vendor-keys/mistral", json={"api_key": "x"}).status_code == 422


# =============================================================================
# Vendors & Health
# =============================================================================

def test_vendor_catalog_lists_configured_only(client):
    catalog = client.get("/api/v1/vendors/catalog").json()
    assert [v["id"] for v in catalog["vendors"]] == ["openai"]
    assert set(catalog["models_by_vendor"]) == {"openai"}

    assert len(client.get("/api/v1/vendors").json()) == 3
    assert client.get("/api/v1/vendors/anthropic/status").json() == {"name": "anthropic", "available": False}
    assert client.get("/api/v1/vendors/mistral").status_code == 404


def test_health_probes(client):
    assert client.get("/ping").json() == {"status": "ok"}

    ready = client.get("/ready")
    assert ready.status_code == 200
    assert ready.json()["checks"]["database"] is True

    health = client.get("/health", params={"deep": True}).json()
    assert health["status"] == "healthy"
    assert health["services"]["vendors"]["openai"]["available"] is True
