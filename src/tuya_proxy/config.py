"""Process configuration for the proxy, loaded once from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings

_BASE_URLS: dict[str, str] = {
    "cn": "https://openapi.tuyacn.com",
    "us": "https://openapi.tuyaus.com",
    "us-e": "https://openapi-us-e.tuyaus.com",
    "eu": "https://openapi.tuyaeu.com",
    "in": "https://openapi.tuyain.com",
}


class TuyaConfig(BaseSettings):
    """Tuya Cloud API credentials.

    Missing credentials do not fail at load time; callers check
    :attr:`has_credentials` and answer with a configuration error instead.
    """

    model_config = {
        "env_prefix": "TUYA_",
        "env_file": ".env",
        "extra": "ignore",
        "frozen": True,
    }

    client_id: str = ""
    client_secret: str = ""
    api_region: str = "eu"

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def base_url(self) -> str:
        url = _BASE_URLS.get(self.api_region)
        if url is None:
            raise ValueError(
                f"Unknown region '{self.api_region}'. Valid regions: {', '.join(_BASE_URLS)}"
            )
        return url


class RedisConfig(BaseSettings):
    """Connection settings for the Redis token cache."""

    model_config = {
        "env_prefix": "REDIS_",
        "env_file": ".env",
        "extra": "ignore",
        "frozen": True,
    }

    host: str = ""
    port: int | None = None
    password: str = ""
    connect_timeout: float = 5.0
    max_retries: int = 3


class ServerConfig(BaseSettings):
    """HTTP ingress settings: API key gate, default device and listen address."""

    model_config = {"env_file": ".env", "extra": "ignore", "frozen": True}

    api_key: str = ""
    device_id: str = ""
    host: str = "0.0.0.0"
    port: int = 3000
