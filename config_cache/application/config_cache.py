"""ConfigCache: local key-presence cache over a configuration hash.

Keeps a snapshot of the field names of one hash so has_key() answers without
a round trip. The snapshot is refreshed once on start() and then every
refresh_interval milliseconds, either by a cursor scan (HSCAN, the default)
or a single blocking listing (HKEYS). get/set/delete go straight to the
store and only show up in the snapshot after the next refresh.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import datetime
from typing import Any, TypeVar

from config_cache.application.events import EventHandler, EventNotifier
from config_cache.core.config import CacheConfiguration, build_configuration
from config_cache.core.constants import EVENT_DEBUG, EVENT_ERROR, EVENT_READY, SCAN_CURSOR_DONE
from config_cache.domain.exceptions import InvalidArgumentException
from config_cache.domain.records import ConfigRecord, decode_record, encode_record, stamp_record
from config_cache.domain.snapshot import CacheSnapshot
from config_cache.infrastructure.exceptions import ConnectionFaultException
from config_cache.infrastructure.key_store.protocol import KeyStoreClient
from config_cache.shared.utils.datetime import utc_now, utc_now_ms

logger = logging.getLogger(__name__)

T = TypeVar("T")

ErrorReporter = Callable[[str, Exception | None, CacheConfiguration], Any]


class ConfigCache:
    """Key-set cache and JSON record access for one configuration hash.

    Usage:
        cache = ConfigCache(RedisKeyStore(), hash_key="billing")
        await cache.start()
        if cache.has_key("feature-x"):
            record = await cache.get("feature-x")
        await cache.stop()

    Connection faults are reported on the "error" event (and to
    error_reporter); CRUD calls re-raise them, refreshes and start() do not.
    """

    def __init__(
        self,
        key_store: KeyStoreClient,
        configuration: CacheConfiguration | None = None,
        *,
        listeners: Mapping[str, EventHandler] | None = None,
        error_reporter: ErrorReporter | None = None,
        **options: Any,
    ) -> None:
        """Initialize the cache. No I/O happens until start().

        Args:
            key_store: Store exposing the hash primitives.
            configuration: Prebuilt configuration; otherwise built from options.
            listeners: Optional mapping of event name -> handler, registered on start().
            error_reporter: Optional callable(message, exc, configuration) for faults.
            **options: CacheConfiguration fields (hash_key is required).

        Raises:
            InvalidArgumentException: Missing hash_key, bad option, or both
                configuration and options given.
        """
        if configuration is not None and options:
            raise InvalidArgumentException(
                "Pass either configuration or keyword options, not both",
                argument="configuration",
            )
        self._configuration = configuration or build_configuration(**options)
        self._key_store = key_store
        self._events = EventNotifier()
        self._listeners = dict(listeners) if listeners else {}
        self._listeners_registered = False
        self._error_reporter = error_reporter

        self._snapshot = CacheSnapshot.empty()
        self._refresh_lock = asyncio.Lock()
        self._refresh_task: asyncio.Task[None] | None = None
        self._started = False
        self._pending_refreshes: set[asyncio.Task[bool]] = set()

    # ---- State ----

    @property
    def configuration(self) -> CacheConfiguration:
        return self._configuration

    @property
    def key_store(self) -> KeyStoreClient:
        return self._key_store

    @property
    def events(self) -> EventNotifier:
        return self._events

    @property
    def label(self) -> str:
        return self._configuration.label

    @property
    def snapshot(self) -> CacheSnapshot:
        """Result of the last completed refresh."""
        return self._snapshot

    @property
    def keys(self) -> frozenset[str]:
        return self._snapshot.keys

    @property
    def last_updated(self) -> datetime | None:
        return self._snapshot.last_updated

    @property
    def is_started(self) -> bool:
        """True between start() and stop(), whether or not a timer is scheduled."""
        return self._started

    @property
    def is_running(self) -> bool:
        """True while the recurring refresh is scheduled."""
        return self._refresh_task is not None and not self._refresh_task.done()

    # ---- Lifecycle ----

    async def start(self) -> None:
        """Connect, load fixtures, refresh once, then schedule recurring refreshes.

        Connection faults are reported, not raised: on an outage the snapshot
        simply stays empty until a later tick reconnects.
        """
        if self._started:
            self._events.emit(EVENT_DEBUG, f"start() ignored, {self.label} already running")
            return
        self._started = True
        self._register_listeners()
        await self._connect()
        await self.load_fixture_data()
        if not self._configuration.disable_local_key_storage:
            await self.refresh_keys()
            self._refresh_task = asyncio.create_task(
                self._run_refresh_loop(),
                name=f"config-cache-refresh:{self._configuration.storage_key}",
            )
        self._events.emit(EVENT_DEBUG, f"---> start completed for {self.label}")

    async def stop(self) -> None:
        """Cancel the recurring refresh. Idempotent; the snapshot stays readable.

        A refresh already spawned by the timer finishes on its own.
        """
        self._started = False
        task = self._refresh_task
        if task is None:
            return
        self._refresh_task = None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._events.emit(EVENT_DEBUG, f"Key refresh stopped for {self.label}")

    async def __aenter__(self) -> ConfigCache:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def _register_listeners(self) -> None:
        if self._listeners_registered:
            return
        self._events.register(self._listeners)
        self._listeners_registered = True

    async def _connect(self) -> bool:
        """Connect the store and emit ready; report and return False on a fault."""
        try:
            await self._key_store.connect()
        except ConnectionFaultException as exc:
            self._report_fault("Key store error", exc)
            return False
        self._events.emit(
            EVENT_READY, f"Redis connected => {self.label} to {self._key_store.describe()}"
        )
        return True

    def _report_fault(self, message: str, exc: Exception) -> None:
        msg = f"{message} => {self.label} : {exc}"
        self._events.emit(EVENT_ERROR, msg)
        if self._error_reporter is not None:
            try:
                self._error_reporter(msg, exc, self._configuration)
            except Exception:
                logger.exception("Error reporter failed for %s", self.label)

    # ---- Refresh ----

    async def _run_refresh_loop(self) -> None:
        interval = self._configuration.refresh_interval / 1000
        while True:
            await asyncio.sleep(interval)
            task = asyncio.create_task(self._scheduled_refresh())
            self._pending_refreshes.add(task)
            task.add_done_callback(self._pending_refreshes.discard)

    async def _scheduled_refresh(self) -> bool:
        """Timer tick. Nothing awaits this task, so every failure is reported here."""
        try:
            if not self._key_store.is_connected():
                await self._connect()
            if self._refresh_lock.locked():
                self._events.emit(
                    EVENT_DEBUG, f"Key refresh already in flight for {self.label}, skipping tick"
                )
                return False
            return await self.refresh_keys()
        except Exception as exc:
            logger.exception("Scheduled key refresh failed for %s", self.label)
            self._report_fault("Key refresh failed", exc)
            return False

    async def refresh_keys(self) -> bool:
        """Refresh with the configured strategy (scan unless use_blocking_refresh)."""
        if self._configuration.use_blocking_refresh:
            return await self.blocking_refresh()
        return await self.refresh()

    async def refresh(self) -> bool:
        """Rebuild the key snapshot with a full cursor scan.

        Returns:
            True if the snapshot was replaced; False if the refresh was skipped
            (local storage disabled, store disconnected) or a fault cut it short.
        """
        return await self._refresh_with(self._scan_all_fields)

    async def blocking_refresh(self) -> bool:
        """Rebuild the key snapshot from a single HKEYS-style listing."""
        return await self._refresh_with(self._list_all_fields)

    async def _refresh_with(self, collect: Callable[[], Awaitable[list[str]]]) -> bool:
        if self._configuration.disable_local_key_storage:
            self._events.emit(
                EVENT_ERROR, f"Local key storage disabled for {self.label}, not updating keys..."
            )
            return False
        async with self._refresh_lock:
            if not self._key_store.is_connected():
                self._events.emit(
                    EVENT_ERROR, f"No connection for {self.label}, not updating keys..."
                )
                return False
            self._events.emit(EVENT_DEBUG, f"Updating config keys for {self.label} ...")
            try:
                fields = await collect()
            except ConnectionFaultException as exc:
                self._report_fault("Key refresh failed", exc)
                return False
            self._snapshot = CacheSnapshot.from_keys(fields, utc_now())
        self._events.emit(
            EVENT_DEBUG, f"Config keys updated for {self.label}: {len(self._snapshot)} keys"
        )
        return True

    async def _scan_all_fields(self) -> list[str]:
        hash_key = self._configuration.storage_key
        count = self._configuration.scan_count
        found: list[str] = []
        cursor: int | str = 0
        while True:
            cursor, entries = await self._key_store.scan_fields(hash_key, cursor, count)
            # entries alternate field, value
            found.extend(entries[::2])
            if str(cursor) == SCAN_CURSOR_DONE:
                return found

    async def _list_all_fields(self) -> list[str]:
        return list(await self._key_store.list_fields(self._configuration.storage_key))

    def has_key(self, key: str) -> bool:
        """Return True if key was present at the last completed refresh. No I/O."""
        if self._configuration.disable_local_key_storage:
            self._events.emit(
                EVENT_ERROR,
                f"has_key({key!r}) on {self.label}: local key storage is disabled, "
                "the key set is never populated",
            )
            return False
        return key in self._snapshot

    # ---- Records ----

    async def _call(self, operation: str, command: Awaitable[T]) -> T:
        try:
            return await command
        except ConnectionFaultException as exc:
            self._report_fault(f"{operation} failed", exc)
            raise

    async def get(self, key: str) -> ConfigRecord | None:
        """Fetch and decode one record; None when the key does not exist.

        Raises:
            DecodeException: Stored value is not valid JSON.
            ConnectionFaultException: Store unreachable.
        """
        hash_key = self._configuration.storage_key
        self._events.emit(EVENT_DEBUG, f"get: {key}")
        raw = await self._call("get", self._key_store.get_field(hash_key, key))
        self._events.emit(EVENT_DEBUG, f"get {hash_key}, {key}, {raw}")
        if raw is None:
            return None
        return decode_record(key, raw)

    async def get_many(self, keys: Sequence[str]) -> list[ConfigRecord | None]:
        """Fetch records for keys in one round trip, same order and length.

        Raises:
            InvalidArgumentException: keys is not a sequence (str/bytes rejected).
            DecodeException: Any stored value is not valid JSON.
        """
        if not isinstance(keys, Sequence) or isinstance(keys, (str, bytes)):
            raise InvalidArgumentException(
                f"keys must be a sequence of strings, got {type(keys).__name__}",
                argument="keys",
            )
        if not keys:
            return []
        hash_key = self._configuration.storage_key
        self._events.emit(EVENT_DEBUG, f"get_many: {len(keys)} keys from {hash_key}")
        raws = await self._call("get_many", self._key_store.get_fields(hash_key, keys))
        return [
            None if raw is None else decode_record(key, raw)
            for key, raw in zip(keys, raws, strict=True)
        ]

    async def set(self, key: str, value: Mapping[str, Any]) -> bool:
        """Stamp lastUpdated onto a copy of value and store it as JSON.

        Raises:
            InvalidArgumentException: value is not a JSON-serializable mapping.
        """
        record = stamp_record(value, utc_now_ms())
        serialized = encode_record(record)
        hash_key = self._configuration.storage_key
        await self._call("set", self._key_store.set_field(hash_key, key, serialized))
        self._events.emit(EVENT_DEBUG, f"set {hash_key}, {key}, {serialized}")
        return True

    async def delete(self, key: str) -> bool:
        """Remove key from the hash. Succeeds whether or not it existed."""
        hash_key = self._configuration.storage_key
        removed = await self._call("delete", self._key_store.delete_field(hash_key, key))
        self._events.emit(EVENT_DEBUG, f"delete {hash_key}, {key} (removed={removed})")
        return True

    async def load_fixture_data(self) -> None:
        """Write configured fixture records one at a time.

        Skipped with an error event when the store is disconnected; a fault
        midway is reported and stops the load.
        """
        fixtures = self._configuration.fixture_data
        if not fixtures:
            return
        if not self._key_store.is_connected():
            self._events.emit(
                EVENT_ERROR, f"No connection for {self.label}, fixture data not loaded"
            )
            return
        for key, record in fixtures.items():
            try:
                await self.set(key, record)
            except ConnectionFaultException:
                # already reported by _call
                return
            self._events.emit(EVENT_DEBUG, f"Fixture data loaded for {self.label}: {key}")
