"""Local snapshot of the field names known to exist in the config hash."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class CacheSnapshot:
    """Result of the last completed key refresh.

    Immutable: a refresh builds a new snapshot and swaps it in with a single
    assignment, so readers never see a half-updated key set.
    """

    keys: frozenset[str] = field(default_factory=frozenset)
    last_updated: datetime | None = None

    @classmethod
    def empty(cls) -> CacheSnapshot:
        return cls()

    @classmethod
    def from_keys(cls, keys: Iterable[str], last_updated: datetime) -> CacheSnapshot:
        """Build a snapshot; duplicate keys from a cursor scan collapse."""
        return cls(keys=frozenset(keys), last_updated=last_updated)

    @property
    def is_populated(self) -> bool:
        """True once any refresh has completed (even if the hash was empty)."""
        return self.last_updated is not None

    def __contains__(self, key: object) -> bool:
        return key in self.keys

    def __len__(self) -> int:
        return len(self.keys)
