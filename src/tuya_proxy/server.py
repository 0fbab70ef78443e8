"""FastAPI ingress for the Tuya proxy.

Exposes the API-key gated ``/data`` shortcut and ``/tuya`` action endpoint,
plus an unauthenticated ``/health`` probe.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from tuya_proxy.actions import ActionRouter
from tuya_proxy.cache import TokenCache
from tuya_proxy.client import TuyaClient
from tuya_proxy.config import RedisConfig, ServerConfig, TuyaConfig

logger = logging.getLogger(__name__)


class UnauthorizedError(Exception):
    """Raised by the API-key gate."""


def create_app(
    server_config: ServerConfig | None = None,
    *,
    _test_state: dict[str, Any] | None = None,
) -> FastAPI:
    """Build and return a configured :class:`FastAPI` application.

    The private ``_test_state`` parameter is used by tests to inject
    pre-built ``router`` and ``server_config`` objects so that the lifespan
    can be skipped.
    """

    # Mutable holders so the lifespan can share state with endpoints.
    state: dict[str, Any] = dict(_test_state) if _test_state else {}
    state.setdefault("server_config", server_config or ServerConfig())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if _test_state:
            yield
            return

        # -- startup ---------------------------------------------------------
        tuya_config = TuyaConfig()
        if not tuya_config.has_credentials:
            logger.warning("Tuya credentials are not configured; actions will fail")
        client = TuyaClient(tuya_config, TokenCache(RedisConfig()))
        state["router"] = ActionRouter(client)
        logger.info("Tuya proxy ready (%s)", tuya_config.base_url)

        yield

        # -- shutdown --------------------------------------------------------
        await client.close()
        logger.info("Server resources released")

    app = FastAPI(
        title="Tuya Proxy",
        lifespan=lifespan,
    )

    # -- helpers ---------------------------------------------------------

    def _router() -> ActionRouter:
        return state["router"]

    def _server_config() -> ServerConfig:
        return state["server_config"]

    def require_api_key(api_key: str | None = Query(None)) -> None:
        expected = _server_config().api_key
        if not api_key or not expected:
            raise UnauthorizedError()
        if not hmac.compare_digest(api_key.encode(), expected.encode()):
            raise UnauthorizedError()

    @app.exception_handler(UnauthorizedError)
    async def _unauthorized(request: Request, exc: UnauthorizedError) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={
                "success": False,
                "message": "Unauthorized: Invalid or missing API key",
            },
        )

    # ===================================================================
    # Endpoints
    # ===================================================================

    @app.get("/data", dependencies=[Depends(require_api_key)])
    async def data() -> Any:
        device_id = _server_config().device_id
        if not device_id:
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "message": "Server configuration error: Device ID not set",
                },
            )
        try:
            return await _router().dispatch({"action": "status", "id": device_id})
        except Exception as exc:
            logger.exception("Error fetching device data")
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "message": "Internal server error",
                    "error": str(exc),
                },
            )

    @app.get("/tuya", dependencies=[Depends(require_api_key)])
    async def tuya_action(request: Request) -> Any:
        params = {
            key: value
            for key, value in request.query_params.items()
            if key != "api_key"
        }
        try:
            return await _router().dispatch(params)
        except Exception as exc:
            logger.exception("Error processing Tuya action")
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "message": "Internal server error",
                    "error": str(exc),
                },
            )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    return app
