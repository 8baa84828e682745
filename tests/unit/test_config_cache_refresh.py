"""Tests for the key refresh protocol (cursor scan, blocking listing, single-flight)."""

import asyncio

import pytest

from config_cache.application.config_cache import ConfigCache
from config_cache.infrastructure.exceptions import ConnectionFaultException
from config_cache.infrastructure.key_store.memory_key_store import InMemoryKeyStore
from tests.conftest import TEST_HASH_KEY, EventRecorder

TEST_KEY_COUNT = 100
TEST_KEY_PREFIX = "test-key-"


class CountingKeyStore(InMemoryKeyStore):
    """Counts scan and listing round trips."""

    def __init__(self) -> None:
        super().__init__("counting", connected=True)
        self.scan_calls = 0
        self.list_calls = 0

    async def scan_fields(self, hash_key, cursor, count):
        self.scan_calls += 1
        return await super().scan_fields(hash_key, cursor, count)

    async def list_fields(self, hash_key):
        self.list_calls += 1
        return await super().list_fields(hash_key)


class GatedKeyStore(CountingKeyStore):
    """First scan call waits on a gate so a refresh can be held in flight."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()

    async def scan_fields(self, hash_key, cursor, count):
        if self.scan_calls == 0:
            self.scan_calls += 1
            await self.gate.wait()
            return await InMemoryKeyStore.scan_fields(self, hash_key, cursor, count)
        return await super().scan_fields(hash_key, cursor, count)


class FlakyScanKeyStore(CountingKeyStore):
    """Connection drops on the second scan page once armed."""

    def __init__(self) -> None:
        super().__init__()
        self.armed = False

    async def scan_fields(self, hash_key, cursor, count):
        if self.armed and str(cursor) != "0":
            raise ConnectionFaultException("HSCAN", "Connection reset by peer")
        return await super().scan_fields(hash_key, cursor, count)


class DuplicatingKeyStore(InMemoryKeyStore):
    """Returns every page twice, as HSCAN may during a rehash."""

    async def scan_fields(self, hash_key, cursor, count):
        next_cursor, entries = await super().scan_fields(hash_key, cursor, count)
        return next_cursor, entries + entries


def _cache(key_store: InMemoryKeyStore, recorder: EventRecorder | None = None, **options) -> ConfigCache:
    options.setdefault("scan_count", 10)
    cache = ConfigCache(key_store, hash_key=TEST_HASH_KEY, label="test", **options)
    if recorder is not None:
        cache.events.register(recorder.listeners)
    return cache


@pytest.mark.asyncio
async def test_refresh_collects_all_keys_across_batches(config_cache: ConfigCache) -> None:
    """scan_count=10 over 100 keys needs several cursor pages."""
    for idx in range(TEST_KEY_COUNT):
        await config_cache.set(f"{TEST_KEY_PREFIX}{idx}", {"foo": "bar", "idx": idx})

    assert await config_cache.refresh() is True

    assert len(config_cache.keys) == TEST_KEY_COUNT
    assert config_cache.last_updated is not None


@pytest.mark.asyncio
async def test_concurrent_writes_then_refresh() -> None:
    key_store = CountingKeyStore()
    cache = _cache(key_store)
    await asyncio.gather(
        *(cache.set(f"{TEST_KEY_PREFIX}{idx}", {"idx": idx}) for idx in range(TEST_KEY_COUNT))
    )
    await cache.refresh()
    assert len(cache.keys) == TEST_KEY_COUNT
    assert key_store.scan_calls == TEST_KEY_COUNT // 10


@pytest.mark.asyncio
async def test_has_key_matches_exactly_the_keys_set(config_cache: ConfigCache) -> None:
    written = [f"{TEST_KEY_PREFIX}{idx}" for idx in range(5)]
    for key in written:
        await config_cache.set(key, {"foo": "quux"})

    assert not config_cache.has_key(written[0])
    await config_cache.refresh()

    for key in written:
        assert config_cache.has_key(key)
    assert not config_cache.has_key(f"{TEST_KEY_PREFIX}99")
    assert config_cache.keys == frozenset(written)


@pytest.mark.asyncio
async def test_refresh_of_empty_hash_is_one_round_trip() -> None:
    key_store = CountingKeyStore()
    cache = _cache(key_store)

    assert await cache.refresh() is True

    assert key_store.scan_calls == 1
    assert cache.keys == frozenset()
    assert cache.snapshot.is_populated


@pytest.mark.asyncio
async def test_refresh_drops_deleted_keys(config_cache: ConfigCache) -> None:
    await config_cache.set("a", {})
    await config_cache.set("b", {})
    await config_cache.refresh()
    await config_cache.delete("a")

    assert config_cache.has_key("a")
    await config_cache.refresh()
    assert not config_cache.has_key("a")
    assert config_cache.has_key("b")


@pytest.mark.asyncio
async def test_refresh_replaces_snapshot_wholesale(config_cache: ConfigCache) -> None:
    await config_cache.set("a", {})
    await config_cache.refresh()
    before = config_cache.snapshot

    await config_cache.set("b", {})
    await config_cache.refresh()

    assert config_cache.snapshot is not before
    assert before.keys == frozenset({"a"})
    assert config_cache.keys == frozenset({"a", "b"})


@pytest.mark.asyncio
async def test_duplicate_scan_results_collapse() -> None:
    key_store = DuplicatingKeyStore("dups", connected=True)
    cache = _cache(key_store, scan_count=2)
    for key in ("a", "b", "c"):
        await cache.set(key, {})
    await cache.refresh()
    assert cache.keys == frozenset({"a", "b", "c"})


@pytest.mark.asyncio
async def test_blocking_refresh_lists_fields_in_one_call() -> None:
    key_store = CountingKeyStore()
    cache = _cache(key_store)
    for idx in range(25):
        await cache.set(f"{TEST_KEY_PREFIX}{idx}", {})

    assert await cache.blocking_refresh() is True

    assert len(cache.keys) == 25
    assert key_store.list_calls == 1
    assert key_store.scan_calls == 0


@pytest.mark.asyncio
async def test_refresh_keys_follows_use_blocking_refresh() -> None:
    blocking_store = CountingKeyStore()
    await _cache(blocking_store, use_blocking_refresh=True).refresh_keys()
    assert (blocking_store.list_calls, blocking_store.scan_calls) == (1, 0)

    scanning_store = CountingKeyStore()
    await _cache(scanning_store).refresh_keys()
    assert (scanning_store.list_calls, scanning_store.scan_calls) == (0, 1)


@pytest.mark.asyncio
async def test_refresh_skipped_when_disconnected(recorder: EventRecorder) -> None:
    key_store = CountingKeyStore()
    cache = _cache(key_store, recorder)
    await cache.set("a", {})
    await cache.refresh()
    before = cache.snapshot
    await key_store.close()

    assert await cache.refresh() is False

    assert key_store.scan_calls == 1
    assert cache.snapshot is before
    assert recorder.messages("error", "No connection for test, not updating keys...")


@pytest.mark.asyncio
async def test_fault_mid_scan_keeps_previous_snapshot(recorder: EventRecorder) -> None:
    key_store = FlakyScanKeyStore()
    cache = _cache(key_store, recorder, scan_count=2)
    for key in ("a", "b", "c", "d"):
        await cache.set(key, {})
    await cache.refresh()
    before = cache.snapshot

    await cache.set("e", {})
    key_store.armed = True
    assert await cache.refresh() is False

    assert cache.snapshot is before
    assert recorder.messages("error", "Key refresh failed => test")


@pytest.mark.asyncio
async def test_disabled_local_storage_never_populates(recorder: EventRecorder) -> None:
    key_store = CountingKeyStore()
    cache = _cache(key_store, recorder, disable_local_key_storage=True)
    await cache.set("a", {})

    assert await cache.refresh() is False
    assert await cache.blocking_refresh() is False
    assert not cache.has_key("a")

    assert key_store.scan_calls == 0
    assert key_store.list_calls == 0
    assert recorder.messages("error", "Local key storage disabled for test")
    assert recorder.messages("error", "has_key('a') on test: local key storage is disabled")


@pytest.mark.asyncio
async def test_explicit_refreshes_are_serialized() -> None:
    """A second refresh queues behind the one in flight instead of overlapping it."""
    key_store = GatedKeyStore()
    cache = _cache(key_store)
    await cache.set("a", {})

    first = asyncio.create_task(cache.refresh())
    await asyncio.sleep(0)
    second = asyncio.create_task(cache.refresh())
    for _ in range(5):
        await asyncio.sleep(0)
    assert key_store.scan_calls == 1

    await cache.set("b", {})
    key_store.gate.set()
    assert await asyncio.gather(first, second) == [True, True]

    assert key_store.scan_calls == 2
    assert cache.keys == frozenset({"a", "b"})


@pytest.mark.asyncio
async def test_timer_tick_skips_while_refresh_in_flight(recorder: EventRecorder) -> None:
    key_store = CountingKeyStore()
    cache = _cache(key_store, recorder)

    async with cache._refresh_lock:
        assert await cache._scheduled_refresh() is False

    assert key_store.scan_calls == 0
    assert recorder.messages("debug", "Key refresh already in flight for test, skipping tick")
