"""Signed HTTP client for the Tuya Cloud API with cached-token retry."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from tuya_proxy.auth import TokenProvider, sign_request
from tuya_proxy.cache import TokenCache
from tuya_proxy.config import TuyaConfig

logger = logging.getLogger(__name__)

# Tuya response code for an invalid or expired access token.
INVALID_TOKEN_CODE = 1010

REQUEST_TIMEOUT = 10.0

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class TuyaNetworkError(Exception):
    """Raised when no usable response was received from the Tuya API."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response: Any = None,
    ) -> None:
        self.status_code = status_code
        self.response = response
        super().__init__(message)


class TuyaClient:
    """Async HTTP client for the Tuya Cloud API.

    Every request is signed with a token from :class:`TokenProvider`. When
    Tuya rejects the token (code ``1010``) the cached token is dropped and the
    request is sent once more. Vendor envelopes are returned as-is; callers
    inspect ``success`` and ``code`` themselves.
    """

    def __init__(
        self,
        config: TuyaConfig | None = None,
        cache: TokenCache | None = None,
    ) -> None:
        self.config = config or TuyaConfig()
        self._http = httpx.AsyncClient(base_url=self.config.base_url, timeout=REQUEST_TIMEOUT)
        self.tokens = TokenProvider(self.config, self._http, cache or TokenCache())

        from tuya_proxy.devices import DevicesMixin

        self.devices = DevicesMixin(self)

    async def __aenter__(self) -> TuyaClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    # -- Generic request -----------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        allow_retry: bool = True,
    ) -> dict[str, Any]:
        """Make a signed API request and return the decoded envelope."""
        method = method.upper()
        attempts = 2 if allow_retry else 1
        for attempt in range(1, attempts + 1):
            status, data = await self._send(method, path, body)
            if data.get("code") == INVALID_TOKEN_CODE and attempt < attempts:
                logger.warning(
                    "Invalid token (code %d) for %s %s, dropping cached token and retrying",
                    INVALID_TOKEN_CODE, method, path,
                )
                await self.tokens.invalidate()
                continue
            break

        if status >= 400:
            logger.warning(
                "Tuya API %s %s returned HTTP %d. Code: %s, Msg: %s",
                method, path, status, data.get("code"), data.get("msg"),
            )
        elif not data.get("success"):
            logger.warning(
                "Tuya API %s %s returned success=false. Code: %s, Msg: %s",
                method, path, data.get("code"), data.get("msg"),
            )
        return data

    async def _send(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None,
    ) -> tuple[int, dict[str, Any]]:
        token = await self.tokens.get_access_token()

        send_body = body is not None and method in _BODY_METHODS
        body_str = json.dumps(body, separators=(",", ":")) if send_body else ""
        signature = sign_request(
            self.config,
            method,
            path,
            body=body_str,
            access_token=token,
        )
        headers = signature.headers()
        headers["Content-Type"] = "application/json"

        try:
            resp = await self._http.request(
                method,
                path,
                headers=headers,
                content=body_str if send_body else None,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error("Network error for Tuya API request %s %s: %s", method, path, exc)
            raise TuyaNetworkError(f"Request {method} {path} failed: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.status_code >= 500:
            logger.error(
                "Tuya API %s %s failed with HTTP %d: %s",
                method, path, resp.status_code, resp.text,
            )
            raise TuyaNetworkError(
                f"Request {method} {path} failed with HTTP {resp.status_code}",
                status_code=resp.status_code,
                response=data,
            )
        if not isinstance(data, dict):
            raise TuyaNetworkError(
                f"Request {method} {path} returned a non-JSON response",
                status_code=resp.status_code,
            )
        return resp.status_code, data
