"""Key store protocol consumed by ConfigCache."""

from collections.abc import Sequence
from typing import Protocol


class KeyStoreClient(Protocol):
    """Hash primitives of a key-value store (e.g. Redis).

    Commands raise ConnectionFaultException when the store is unreachable.
    """

    def is_connected(self) -> bool:
        """Return True if the last connect or command succeeded."""
        ...

    async def connect(self) -> None:
        """Connect and wait until ready. No-op when already connected."""
        ...

    async def close(self) -> None:
        """Release the connection."""
        ...

    def describe(self) -> str:
        """Human-readable location, e.g. redis://host:6379/db1 v7.2.4."""
        ...

    async def scan_fields(
        self, hash_key: str, cursor: int | str, count: int
    ) -> tuple[str, list[str]]:
        """One HSCAN step: next cursor and a flat [field, value, ...] list."""
        ...

    async def get_field(self, hash_key: str, field: str) -> str | None:
        ...

    async def get_fields(self, hash_key: str, fields: Sequence[str]) -> list[str | None]:
        """Values for fields, in the same order; None where missing."""
        ...

    async def set_field(self, hash_key: str, field: str, value: str) -> None:
        ...

    async def delete_field(self, hash_key: str, field: str) -> int:
        """Remove field; return number of fields removed (0 or 1)."""
        ...

    async def list_fields(self, hash_key: str) -> list[str]:
        """Every field name of the hash in one blocking call (HKEYS)."""
        ...
