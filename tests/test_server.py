"""Tests for the FastAPI ingress."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from httpx import ASGITransport

from tuya_proxy.config import ServerConfig
from tuya_proxy.server import create_app

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mock_router(result: object = 23.5) -> MagicMock:
    router = MagicMock()
    router.dispatch = AsyncMock(return_value=result)
    return router


async def _client_for(router: MagicMock, config: ServerConfig) -> httpx.AsyncClient:
    app = create_app(_test_state={"router": router, "server_config": config})
    return httpx.AsyncClient(
        transport=ASGITransport(app=app), base_url="http://testserver",
    )


@pytest.fixture
async def client():
    """Async test client with a mocked action router."""
    router = _mock_router()
    config = ServerConfig(api_key="k3y", device_id="dev1")
    async with await _client_for(router, config) as ac:
        yield ac, router


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestApiKeyGate:
    @pytest.mark.parametrize("query", ["", "?api_key=", "?api_key=wrong"])
    async def test_rejects_missing_or_wrong_key(self, client, query) -> None:
        ac, router = client
        resp = await ac.get(f"/data{query}")
        assert resp.status_code == 401
        assert resp.json() == {
            "success": False,
            "message": "Unauthorized: Invalid or missing API key",
        }
        router.dispatch.assert_not_called()

    async def test_rejects_when_no_key_configured(self) -> None:
        router = _mock_router()
        async with await _client_for(router, ServerConfig(api_key="", device_id="dev1")) as ac:
            resp = await ac.get("/tuya?api_key=")
        assert resp.status_code == 401


class TestDataEndpoint:
    async def test_returns_status_value(self, client) -> None:
        ac, router = client
        resp = await ac.get("/data?api_key=k3y")
        assert resp.status_code == 200
        assert resp.json() == 23.5
        router.dispatch.assert_awaited_once_with({"action": "status", "id": "dev1"})

    async def test_missing_device_id(self) -> None:
        router = _mock_router()
        async with await _client_for(router, ServerConfig(api_key="k3y", device_id="")) as ac:
            resp = await ac.get("/data?api_key=k3y")
        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "message": "Server configuration error: Device ID not set",
        }
        router.dispatch.assert_not_called()

    async def test_unexpected_error_returns_500(self, client) -> None:
        ac, router = client
        router.dispatch = AsyncMock(side_effect=RuntimeError("boom"))
        resp = await ac.get("/data?api_key=k3y")
        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "message": "Internal server error",
            "error": "boom",
        }


class TestActionEndpoint:
    async def test_forwards_query_without_api_key(self, client) -> None:
        ac, router = client
        router.dispatch = AsyncMock(return_value={"success": True, "devices": []})
        resp = await ac.get("/tuya?api_key=k3y&action=control&id=dev1&command=on")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "devices": []}
        router.dispatch.assert_awaited_once_with(
            {"action": "control", "id": "dev1", "command": "on"}
        )

    async def test_unexpected_error_returns_json_500(self, client) -> None:
        ac, router = client
        router.dispatch = AsyncMock(side_effect=RuntimeError("boom"))
        resp = await ac.get("/tuya?api_key=k3y&action=devices")
        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "message": "Internal server error",
            "error": "boom",
        }


class TestHealthEndpoint:
    async def test_health_needs_no_key(self, client) -> None:
        ac, router = client
        resp = await ac.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["timestamp"].endswith("Z")
        router.dispatch.assert_not_called()
