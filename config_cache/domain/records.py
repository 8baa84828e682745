"""Config records: arbitrary JSON objects stored as hash field values.

No schema beyond "a JSON object". Writes get a lastUpdated stamp in epoch
milliseconds.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, TypeAlias

from config_cache.core.constants import LAST_UPDATED_FIELD
from config_cache.domain.exceptions import DecodeException, InvalidArgumentException

ConfigValue: TypeAlias = (
    str | int | float | bool | None | list["ConfigValue"] | dict[str, "ConfigValue"]
)
ConfigRecord: TypeAlias = dict[str, ConfigValue]


def stamp_record(value: Any, now_ms: int) -> ConfigRecord:
    """Return a copy of value with LAST_UPDATED_FIELD set to now_ms.

    Args:
        value: Caller payload; must be a mapping.
        now_ms: Epoch milliseconds.

    Raises:
        InvalidArgumentException: value is not a mapping.
    """
    if not isinstance(value, Mapping):
        raise InvalidArgumentException(
            f"Config value must be a mapping, got {type(value).__name__}",
            argument="value",
        )
    record = dict(value)
    record[LAST_UPDATED_FIELD] = now_ms
    return record


def encode_record(record: ConfigRecord) -> str:
    """Serialize a record to the JSON string stored in the hash."""
    try:
        return json.dumps(record)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentException(
            f"Config value is not JSON serializable: {e}", argument="value"
        ) from e


def decode_record(key: str, raw: str) -> ConfigRecord:
    """Parse a stored JSON string.

    Raises:
        DecodeException: raw is not valid JSON.
    """
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise DecodeException(key, str(e)) from e
