"""Tuya Proxy - API-key gated relay to the Tuya Cloud API with a Redis token cache."""

from tuya_proxy.actions import ActionRouter
from tuya_proxy.auth import AuthFetchError, ConfigurationError, TokenProvider, sign_request
from tuya_proxy.cache import CacheUnavailableError, TokenCache
from tuya_proxy.client import TuyaClient, TuyaNetworkError
from tuya_proxy.config import RedisConfig, ServerConfig, TuyaConfig
from tuya_proxy.server import create_app

__all__ = [
    "ActionRouter",
    "AuthFetchError",
    "CacheUnavailableError",
    "ConfigurationError",
    "RedisConfig",
    "ServerConfig",
    "TokenCache",
    "TokenProvider",
    "TuyaClient",
    "TuyaConfig",
    "TuyaNetworkError",
    "create_app",
    "sign_request",
]
