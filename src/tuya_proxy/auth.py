"""HMAC-SHA256 request signing and cache-backed token management for the Tuya Cloud API."""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from tuya_proxy.cache import TOKEN_CACHE_KEY, TokenCache
from tuya_proxy.config import TuyaConfig

logger = logging.getLogger(__name__)

TOKEN_PATH = "/v1.0/token?grant_type=1"

# Seconds shaved off the vendor-reported lifetime before caching.
TOKEN_EXPIRY_MARGIN = 60


class ConfigurationError(Exception):
    """Raised when the Tuya client id or secret is not configured."""


class AuthFetchError(Exception):
    """Raised when the token endpoint fails or returns no token."""

    def __init__(self, message: str, response: dict[str, Any] | None = None) -> None:
        self.response = response
        super().__init__(message)


@dataclass(frozen=True)
class TokenInfo:
    access_token: str
    expire_time: int

    @property
    def cache_ttl(self) -> int:
        """Seconds the token may live in the cache; ``0`` means do not cache."""
        if self.expire_time > TOKEN_EXPIRY_MARGIN:
            return self.expire_time - TOKEN_EXPIRY_MARGIN
        return 0


@dataclass(frozen=True)
class Signature:
    sign: str
    t: str
    client_id: str
    access_token: str = ""

    def headers(self) -> dict[str, str]:
        """Render the signature as Tuya request headers."""
        return {
            "client_id": self.client_id,
            "sign": self.sign,
            "t": self.t,
            "sign_method": "HMAC-SHA256",
            **({"access_token": self.access_token} if self.access_token else {}),
        }


def _sha256(content: str) -> str:
    return hashlib.sha256(content.encode()).hexdigest()


def _hmac_sha256(key: str, msg: str) -> str:
    return hmac.new(key.encode(), msg.encode(), hashlib.sha256).hexdigest().upper()


def sign_request(
    config: TuyaConfig,
    method: str,
    path: str,
    *,
    body: str = "",
    access_token: str = "",
    t: int | None = None,
) -> Signature:
    """Sign a Tuya Cloud API request.

    ``t`` (milliseconds) is generated when omitted; the same value must be
    sent in the ``t`` header, so always take it from the returned
    :class:`Signature`.
    """
    if not config.has_credentials:
        logger.error("Missing TUYA_CLIENT_ID or TUYA_CLIENT_SECRET")
        raise ConfigurationError("Missing Tuya API credentials")

    t = t or int(time.time() * 1000)

    content_hash = _sha256(body)
    string_to_sign = f"{method.upper()}\n{content_hash}\n\n{path}"

    sign_str = config.client_id + access_token + str(t) + string_to_sign
    return Signature(
        sign=_hmac_sha256(config.client_secret, sign_str),
        t=str(t),
        client_id=config.client_id,
        access_token=access_token,
    )


class TokenProvider:
    """Hands out access tokens, preferring the cached one.

    A cache miss triggers exactly one call to the token endpoint; the result
    is written back to the cache when its lifetime allows it.
    """

    def __init__(
        self,
        config: TuyaConfig,
        http: httpx.AsyncClient,
        cache: TokenCache,
    ) -> None:
        self.config = config
        self._http = http
        self._cache = cache

    async def get_access_token(self) -> str:
        """Return a cached token or fetch a fresh one from Tuya."""
        token = await self._cache.get(TOKEN_CACHE_KEY)
        if token:
            return token

        logger.info("Token not found in cache, requesting from Tuya API")
        info = await self._fetch_token()

        ttl = info.cache_ttl
        if ttl > 0:
            await self._cache.set(TOKEN_CACHE_KEY, info.access_token, ttl)
        else:
            logger.warning(
                "Token lifetime %d s is within the expiry margin, not caching",
                info.expire_time,
            )
        return info.access_token

    async def invalidate(self) -> bool:
        """Drop the cached token. Failures are logged and ignored."""
        return await self._cache.delete(TOKEN_CACHE_KEY)

    async def _fetch_token(self) -> TokenInfo:
        signature = sign_request(self.config, "GET", TOKEN_PATH)
        try:
            resp = await self._http.get(TOKEN_PATH, headers=signature.headers())
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AuthFetchError(f"Error getting token: {exc}") from exc

        if not isinstance(data, dict):
            raise AuthFetchError("Error getting token: Invalid response from Tuya API")
        result = data.get("result")
        if not data.get("success") or not isinstance(result, dict) or not result.get("access_token"):
            raise AuthFetchError(
                f"Error getting token: {data.get('msg') or 'Invalid response from Tuya API'}",
                response=data,
            )

        try:
            expire_time = int(result.get("expire_time") or 0)
        except (TypeError, ValueError):
            logger.warning(
                "Unreadable expire_time %r from Tuya API, token will not be cached",
                result.get("expire_time"),
            )
            expire_time = 0

        info = TokenInfo(access_token=result["access_token"], expire_time=expire_time)
        logger.info("Token obtained from Tuya API, cache TTL %d s", info.cache_ttl)
        return info
