"""Shared fixtures: an in-memory stand-in for the Redis token cache."""

from __future__ import annotations

from typing import Any

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from tuya_proxy.cache import TokenCache
from tuya_proxy.config import RedisConfig, TuyaConfig


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedisServer:
    """Keyspace shared by every connection, with TTL expiry on a fake clock.

    Set ``down = True`` to make every command fail like an unreachable host.
    """

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock or FakeClock()
        self.data: dict[str, tuple[str, float | None]] = {}
        self.down = False
        self.opened = 0
        self.closed = 0
        self.commands: list[tuple[Any, ...]] = []

    def connect(self) -> FakeRedisConnection:
        self.opened += 1
        return FakeRedisConnection(self)


class FakeRedisConnection:
    def __init__(self, server: FakeRedisServer) -> None:
        self._server = server

    def _check(self) -> None:
        if self._server.down:
            raise RedisConnectionError("Error connecting to fake redis")

    async def get(self, key: str) -> str | None:
        self._check()
        self._server.commands.append(("get", key))
        entry = self._server.data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._server.clock() >= expires_at:
            del self._server.data[key]
            return None
        return value

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self._server.commands.append(("set", key, value, ex))
        expires_at = self._server.clock() + ex if ex else None
        self._server.data[key] = (value, expires_at)
        return True

    async def delete(self, key: str) -> int:
        self._check()
        self._server.commands.append(("delete", key))
        return 1 if self._server.data.pop(key, None) is not None else 0

    async def aclose(self) -> None:
        self._server.closed += 1


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def redis_server(clock: FakeClock) -> FakeRedisServer:
    return FakeRedisServer(clock)


@pytest.fixture
def token_cache(redis_server: FakeRedisServer) -> TokenCache:
    return TokenCache(
        RedisConfig(host="localhost", port=6379, password="pw"),
        client_factory=redis_server.connect,
    )


@pytest.fixture
def tuya_config() -> TuyaConfig:
    return TuyaConfig(client_id="test_id", client_secret="test_secret", api_region="eu")
