"""Tests for the routing API (/api/v1/routing).

All tests run against the in-memory engine from conftest; no PostgreSQL
or Ollama instance is required.
"""

from __future__ import annotations

import httpx
import pytest
from pydantic import SecretStr

from model_routing.main import create_app
from model_routing.routing.engine import build_engine

BASE = "/api/v1/routing"


async def _connect(client: httpx.AsyncClient, provider: str, credential: str | None = "sk-test-1234567890"):
    body = {"provider": provider}
    if credential is not None:
        body["credential"] = credential
    response = await client.post(f"{BASE}/providers", json=body)
    assert response.status_code == 200, response.text
    return response.json()


async def _tiers(client: httpx.AsyncClient) -> dict[str, dict]:
    response = await client.get(f"{BASE}/tiers")
    assert response.status_code == 200
    return {row["tier"]: row for row in response.json()}


# ------------------------------------------------------------------ #
# Authentication
# ------------------------------------------------------------------ #


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, anon_client):
        response = await anon_client.get(f"{BASE}/providers")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_wrong_audience(self, anon_client, token_factory):
        token = token_factory("user-a", audience="some-other-api")
        response = await anon_client.get(
            f"{BASE}/providers", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, anon_client, token_factory):
        token = token_factory("user-a", expires_in=-60)
        response = await anon_client.get(
            f"{BASE}/providers", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_secret(self, anon_client, token_factory):
        token = token_factory("user-a", secret="not-the-test-secret")
        response = await anon_client.get(
            f"{BASE}/providers", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_validates_with_settings_given_to_create_app(
        self, fake_settings, store, engine, token_factory
    ):
        settings = fake_settings.model_copy(update={"jwt_secret": SecretStr("rotated-signing-key-0001")})
        app = create_app(settings, store=store)
        app.state.engine = engine

        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://testserver"
        ) as ac:
            fresh = token_factory("user-a", secret="rotated-signing-key-0001")
            response = await ac.get(f"{BASE}/providers", headers={"Authorization": f"Bearer {fresh}"})
            assert response.status_code == 200

            old = token_factory("user-a")
            response = await ac.get(f"{BASE}/providers", headers={"Authorization": f"Bearer {old}"})
            assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_engine_not_initialised(self, client, test_app):
        test_app.state.engine = None
        response = await client.get(f"{BASE}/providers")
        assert response.status_code == 503


# ------------------------------------------------------------------ #
# Providers
# ------------------------------------------------------------------ #


class TestProviders:
    @pytest.mark.asyncio
    async def test_list_empty(self, client):
        response = await client.get(f"{BASE}/providers")
        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_connect(self, client):
        body = await _connect(client, "OpenAI", "sk-openai-1234567890")
        assert body["provider"] == "openai"
        assert body["is_active"] is True
        assert body["id"]

    @pytest.mark.asyncio
    async def test_list_never_exposes_credential(self, client):
        await _connect(client, "openai", "sk-openai-1234567890")
        response = await client.get(f"{BASE}/providers")
        rows = response.json()
        assert len(rows) == 1
        assert rows[0]["has_credential"] is True
        assert rows[0]["key_prefix"] == "sk-opena"
        assert "sk-openai-1234567890" not in response.text
        assert "credential_encrypted" not in rows[0]

    @pytest.mark.asyncio
    async def test_connect_keyless_provider(self, client):
        await _connect(client, "ollama", credential=None)
        rows = (await client.get(f"{BASE}/providers")).json()
        assert rows[0]["has_credential"] is False
        assert rows[0]["key_prefix"] is None

    @pytest.mark.asyncio
    async def test_connect_validation(self, client):
        response = await client.post(f"{BASE}/providers", json={"provider": ""})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_remove_unknown(self, client):
        response = await client.delete(f"{BASE}/providers/openai")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_remove_returns_notifications(self, client):
        await _connect(client, "openai")
        await _connect(client, "anthropic")
        await client.put(f"{BASE}/tiers/complex", json={"model": "claude-opus-4-6"})

        response = await client.delete(f"{BASE}/providers/anthropic")

        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "notifications": [
                "claude-opus-4-6 is no longer available. Complex is back to automatic mode (o3)."
            ],
        }

    @pytest.mark.asyncio
    async def test_deactivate_all(self, client):
        await _connect(client, "openai")
        await _connect(client, "deepseek")

        response = await client.post(f"{BASE}/providers/deactivate-all")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "notifications": []}
        rows = (await client.get(f"{BASE}/providers")).json()
        assert all(row["is_active"] is False for row in rows)


# ------------------------------------------------------------------ #
# Tiers
# ------------------------------------------------------------------ #


class TestTiers:
    @pytest.mark.asyncio
    async def test_four_tiers_in_order(self, client):
        response = await client.get(f"{BASE}/tiers")
        assert [row["tier"] for row in response.json()] == ["simple", "standard", "complex", "reasoning"]

    @pytest.mark.asyncio
    async def test_auto_assignment_after_connect(self, client):
        await _connect(client, "openai")
        tiers = await _tiers(client)
        assert tiers["simple"]["auto_assigned_model"] == "gpt-4o-mini"
        assert tiers["complex"]["effective_model"] == "o3"
        assert tiers["complex"]["override_model"] is None

    @pytest.mark.asyncio
    async def test_set_override(self, client):
        await _connect(client, "openai")
        response = await client.put(f"{BASE}/tiers/Complex", json={"model": "gpt-4o"})
        assert response.status_code == 200
        body = response.json()
        assert body["tier"] == "complex"
        assert body["override_model"] == "gpt-4o"
        assert body["effective_model"] == "gpt-4o"

    @pytest.mark.asyncio
    async def test_unusable_override_reports_fallback(self, client):
        await _connect(client, "openai")
        response = await client.put(f"{BASE}/tiers/complex", json={"model": "claude-opus-4-6"})
        body = response.json()
        assert body["override_model"] == "claude-opus-4-6"
        assert body["effective_model"] == "o3"

    @pytest.mark.asyncio
    async def test_unknown_tier(self, client):
        response = await client.put(f"{BASE}/tiers/ultra", json={"model": "gpt-4o"})
        assert response.status_code == 404
        response = await client.delete(f"{BASE}/tiers/ultra")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_clear_override(self, client):
        await client.put(f"{BASE}/tiers/simple", json={"model": "gpt-4o"})
        response = await client.delete(f"{BASE}/tiers/simple")
        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert (await _tiers(client))["simple"]["override_model"] is None

    @pytest.mark.asyncio
    async def test_reset_all(self, client):
        await client.put(f"{BASE}/tiers/simple", json={"model": "gpt-4o"})
        await client.put(f"{BASE}/tiers/reasoning", json={"model": "o3"})
        response = await client.post(f"{BASE}/tiers/reset-all")
        assert response.status_code == 200
        assert all(row["override_model"] is None for row in (await _tiers(client)).values())


# ------------------------------------------------------------------ #
# Catalog
# ------------------------------------------------------------------ #


class TestCatalog:
    @pytest.mark.asyncio
    async def test_available_models(self, client):
        await _connect(client, "deepseek")
        response = await client.get(f"{BASE}/available-models")
        assert response.status_code == 200
        models = response.json()
        assert [m["model_name"] for m in models] == ["deepseek-v3", "deepseek-r1"]
        assert models[1]["capability_reasoning"] is True
        assert models[1]["quality_score"] == 4

    @pytest.mark.asyncio
    async def test_available_models_without_providers(self, client):
        assert (await client.get(f"{BASE}/available-models")).json() == []

    @pytest.mark.asyncio
    async def test_catalog_sync(self, client, test_app, store, fake_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"models": [{"name": "llama3.2:latest", "details": {"family": "llama"}}]}
            )

        engine = build_engine(store, fake_settings, ollama_transport=httpx.MockTransport(handler))
        await engine.cache.reload()
        test_app.state.engine = engine

        response = await client.post(f"{BASE}/catalog/sync")

        assert response.status_code == 200
        assert response.json() == {"count": 1}
        await _connect(client, "ollama", credential=None)
        models = (await client.get(f"{BASE}/available-models")).json()
        assert [m["model_name"] for m in models] == ["llama3.2"]

    @pytest.mark.asyncio
    async def test_catalog_sync_skips_malformed_models(self, client, test_app, store, fake_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "models": [
                        {"name": "llama3:latest", "details": {"family": 7}},
                        {"name": ":latest"},
                    ]
                },
            )

        engine = build_engine(store, fake_settings, ollama_transport=httpx.MockTransport(handler))
        await engine.cache.reload()
        test_app.state.engine = engine

        response = await client.post(f"{BASE}/catalog/sync")

        assert response.status_code == 200
        assert response.json() == {"count": 1}
        assert "llama3" in store.pricing

    @pytest.mark.asyncio
    async def test_catalog_sync_unreachable(self, client, test_app, store, fake_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        engine = build_engine(store, fake_settings, ollama_transport=httpx.MockTransport(handler))
        await engine.cache.reload()
        test_app.state.engine = engine

        response = await client.post(f"{BASE}/catalog/sync")
        assert response.status_code == 200
        assert response.json() == {"count": 0}


# ------------------------------------------------------------------ #
# Resolution
# ------------------------------------------------------------------ #


class TestResolve:
    @pytest.mark.asyncio
    async def test_resolve_simple_turn(self, client):
        await _connect(client, "openai")
        response = await client.post(
            f"{BASE}/resolve", json={"messages": [{"role": "user", "content": "hi"}]}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["tier"] == "simple"
        assert body["model"] == "gpt-4o-mini"
        assert body["provider"] == "OpenAI"
        assert body["reason"] == "short_message"

    @pytest.mark.asyncio
    async def test_resolve_with_tools(self, client):
        await _connect(client, "openai")
        response = await client.post(
            f"{BASE}/resolve",
            json={
                "messages": [{"role": "user", "content": "hi"}],
                "tools": [{"type": "function", "function": {"name": "search"}}],
            },
        )
        assert response.json()["tier"] == "standard"

    @pytest.mark.asyncio
    async def test_resolve_without_providers(self, client):
        response = await client.post(
            f"{BASE}/resolve", json={"messages": [{"role": "user", "content": "hi"}]}
        )
        assert response.status_code == 200
        assert response.json()["model"] is None

    @pytest.mark.asyncio
    async def test_resolve_requires_messages(self, client):
        response = await client.post(f"{BASE}/resolve", json={"messages": []})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_heartbeat(self, client):
        await _connect(client, "deepseek")
        response = await client.get(f"{BASE}/resolve/reasoning")
        assert response.status_code == 200
        body = response.json()
        assert body["model"] == "deepseek-r1"
        assert body["reason"] == "heartbeat"
        assert body["confidence"] == 1.0

    @pytest.mark.asyncio
    async def test_heartbeat_unknown_tier(self, client):
        response = await client.get(f"{BASE}/resolve/bogus")
        assert response.status_code == 404


# ------------------------------------------------------------------ #
# Isolation and end-to-end flow
# ------------------------------------------------------------------ #


class TestIsolation:
    @pytest.mark.asyncio
    async def test_users_see_only_their_state(self, client, other_client):
        await _connect(client, "openai")
        await client.put(f"{BASE}/tiers/simple", json={"model": "gpt-4o"})

        assert (await other_client.get(f"{BASE}/providers")).json() == []
        other_tiers = {row["tier"]: row for row in (await other_client.get(f"{BASE}/tiers")).json()}
        assert other_tiers["simple"]["override_model"] is None
        assert other_tiers["simple"]["effective_model"] is None
        assert (await other_client.delete(f"{BASE}/providers/openai")).status_code == 404


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_connect_override_remove_flow(self, client):
        # Connect two providers: cheapest wins simple, best wins complex
        await _connect(client, "openai")
        await _connect(client, "anthropic")
        tiers = await _tiers(client)
        assert tiers["simple"]["effective_model"] == "gpt-4o-mini"
        assert tiers["complex"]["effective_model"] == "o3"

        # Pin opus to reasoning
        await client.put(f"{BASE}/tiers/reasoning", json={"model": "claude-opus-4-6"})
        route = (await client.get(f"{BASE}/resolve/reasoning")).json()
        assert route["model"] == "claude-opus-4-6"
        assert route["provider"] == "Anthropic"

        # Disconnect anthropic: pin is dropped with a notice
        response = await client.delete(f"{BASE}/providers/anthropic")
        assert response.json()["notifications"] == [
            "claude-opus-4-6 is no longer available. Reasoning is back to automatic mode (o3)."
        ]
        route = (await client.get(f"{BASE}/resolve/reasoning")).json()
        assert route["model"] == "o3"

        # Reconnect without a key keeps the old credential
        body = await _connect(client, "anthropic", credential=None)
        assert body["is_active"] is True
        rows = {row["provider"]: row for row in (await client.get(f"{BASE}/providers")).json()}
        assert rows["anthropic"]["has_credential"] is True


class TestObservability:
    @pytest.mark.asyncio
    async def test_metrics_endpoint(self, client):
        await _connect(client, "openai")
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert "routing_recalculations_total" in response.text

    @pytest.mark.asyncio
    async def test_request_id_header(self, client):
        response = await client.get(f"{BASE}/providers")
        assert response.headers["x-request-id"].startswith("req_")

    @pytest.mark.asyncio
    async def test_incoming_request_id_is_reused(self, client):
        response = await client.get(f"{BASE}/providers", headers={"x-request-id": "trace-abc"})
        assert response.headers["x-request-id"] == "trace-abc"
