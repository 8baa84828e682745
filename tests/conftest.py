"""Pytest configuration and fixtures for config_cache.

Tests run against InMemoryKeyStore; Redis itself is only exercised through
mocked redis.asyncio clients in tests/unit/test_redis_key_store.py.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from config_cache.application.config_cache import ConfigCache
from config_cache.core.config import get_settings
from config_cache.core.constants import EVENT_NAMES
from config_cache.infrastructure.key_store.memory_key_store import InMemoryKeyStore

TEST_HASH_KEY = "super-dope-test"

_ENV_VARS = (
    "REDIS_HOST",
    "REDIS_PORT",
    "REDIS_DB",
    "REDIS_PASSWORD",
    "REDIS_SOCKET_CONNECT_TIMEOUT",
    "CONFIG_HASH_KEY_PREFIX",
    "CONFIG_SCAN_COUNT",
    "CONFIG_REFRESH_INTERVAL_MS",
    "DEBUG",
    "LOG_LEVEL",
)


class EventRecorder:
    """Collects (message, *args) for every event a ConfigCache emits."""

    def __init__(self) -> None:
        self.events: dict[str, list[str]] = {name: [] for name in EVENT_NAMES}

    @property
    def listeners(self) -> dict[str, Callable[..., None]]:
        return {name: self._recorder(name) for name in EVENT_NAMES}

    def _recorder(self, name: str) -> Callable[..., None]:
        def record(message: str, *args: Any) -> None:
            self.events[name].append(message)

        return record

    def messages(self, name: str, containing: str = "") -> list[str]:
        return [m for m in self.events[name] if containing in m]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll predicate until it holds or timeout expires (then fail)."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not reached before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Any:
    """Clear env-driven settings and any .env so defaults are deterministic."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def key_store() -> InMemoryKeyStore:
    """Connected in-memory store."""
    return InMemoryKeyStore("test", connected=True)


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
async def config_cache(
    key_store: InMemoryKeyStore, recorder: EventRecorder
) -> AsyncIterator[ConfigCache]:
    """Started ConfigCache (scan_count=10) over the in-memory store."""
    cache = ConfigCache(
        key_store,
        label="test",
        hash_key=TEST_HASH_KEY,
        scan_count=10,
        listeners=recorder.listeners,
    )
    await cache.start()
    yield cache
    await cache.stop()
