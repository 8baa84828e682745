"""In-memory key store.

Suitable for development and testing. Data is lost on restart. Implements the
same cursor contract as HSCAN: start at 0, stop when the cursor comes back as
"0"; fields added or removed mid-scan may be missed or repeated.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from config_cache.core.constants import SCAN_CURSOR_DONE
from config_cache.infrastructure.exceptions import ConnectionFaultException


class InMemoryKeyStore:
    """Hashes kept in a dict of dicts, with a connection flag.

    close() drops the connection (commands then raise ConnectionFaultException)
    without discarding data, so an outage can be simulated and recovered from
    with connect().
    """

    def __init__(self, name: str = "local", *, connected: bool = False) -> None:
        self.name = name
        self._hashes: dict[str, dict[str, str]] = {}
        self._connected = connected

    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    def describe(self) -> str:
        return f"memory://{self.name}"

    def _require_connection(self, operation: str) -> None:
        if not self._connected:
            raise ConnectionFaultException(operation, f"memory store {self.name!r} is closed")

    async def scan_fields(
        self, hash_key: str, cursor: int | str, count: int
    ) -> tuple[str, list[str]]:
        self._require_connection("HSCAN")
        # yield like a network round trip would
        await asyncio.sleep(0)
        data = self._hashes.get(hash_key, {})
        fields = sorted(data)
        start = int(cursor)
        batch = fields[start : start + count]
        end = start + count
        next_cursor = str(end) if end < len(fields) else SCAN_CURSOR_DONE
        entries: list[str] = []
        for field in batch:
            entries.extend((field, data[field]))
        return next_cursor, entries

    async def get_field(self, hash_key: str, field: str) -> str | None:
        self._require_connection("HGET")
        return self._hashes.get(hash_key, {}).get(field)

    async def get_fields(self, hash_key: str, fields: Sequence[str]) -> list[str | None]:
        self._require_connection("HMGET")
        data = self._hashes.get(hash_key, {})
        return [data.get(field) for field in fields]

    async def set_field(self, hash_key: str, field: str, value: str) -> None:
        self._require_connection("HSET")
        self._hashes.setdefault(hash_key, {})[field] = value

    async def delete_field(self, hash_key: str, field: str) -> int:
        self._require_connection("HDEL")
        data = self._hashes.get(hash_key)
        if data is None or field not in data:
            return 0
        del data[field]
        if not data:
            del self._hashes[hash_key]
        return 1

    async def list_fields(self, hash_key: str) -> list[str]:
        self._require_connection("HKEYS")
        return list(self._hashes.get(hash_key, {}))
