"""Tests for the public health endpoints."""

from __future__ import annotations

import pytest


class TestHealth:
    @pytest.mark.asyncio
    async def test_liveness(self, anon_client):
        response = await anon_client.get("/health/live")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_readiness_with_in_memory_store(self, anon_client, catalog_entries):
        response = await anon_client.get("/health/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert body["engine"] == "ok"
        assert body["database"] == "not_configured"
        assert body["catalog_models"] == len(catalog_entries)

    @pytest.mark.asyncio
    async def test_readiness_before_startup(self, anon_client, test_app):
        test_app.state.engine = None
        body = (await anon_client.get("/health/ready")).json()
        assert body["status"] == "not_ready"
        assert body["engine"] == "not_initialized"
        assert body["catalog_models"] == 0
