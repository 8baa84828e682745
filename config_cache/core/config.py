"""Configuration: environment settings and the per-instance cache configuration.

Settings is the single source of environment-driven values (Redis connection,
defaults for the refresh loop, logging). CacheConfiguration is the immutable
per-ConfigCache configuration, built by build_configuration() from an ordered
merge of model defaults, Settings and caller overrides.
"""

import logging
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from config_cache.core.constants import (
    DEFAULT_LABEL,
    DEFAULT_REFRESH_INTERVAL_MS,
    DEFAULT_SCAN_COUNT,
    HASH_KEY_PREFIX,
)
from config_cache.domain.exceptions import InvalidArgumentException


class Settings(BaseSettings):
    """Settings loaded from environment and .env.

    Nothing here is required; the hash key is supplied per ConfigCache.
    """

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: SecretStr | None = None
    redis_socket_connect_timeout: float = 5

    # Refresh loop defaults
    config_hash_key_prefix: str = HASH_KEY_PREFIX
    config_scan_count: int = DEFAULT_SCAN_COUNT
    config_refresh_interval_ms: int = DEFAULT_REFRESH_INTERVAL_MS

    # Logging
    debug: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_ranges(self) -> "Settings":
        """Reject values the refresh loop or logging cannot use."""
        if self.config_scan_count <= 0:
            raise ValueError(
                f"CONFIG_SCAN_COUNT must be positive, got: {self.config_scan_count}"
            )
        if self.config_refresh_interval_ms <= 0:
            raise ValueError(
                f"CONFIG_REFRESH_INTERVAL_MS must be positive, got: {self.config_refresh_interval_ms}"
            )
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"LOG_LEVEL is not a logging level: {self.log_level!r}")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings. Call get_settings.cache_clear() after env changes."""
    return Settings()


class CacheConfiguration(BaseModel):
    """Immutable configuration of one ConfigCache.

    The effective Redis key is hash_key_prefix + hash_key (see storage_key).
    refresh_interval is in milliseconds.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    label: str = DEFAULT_LABEL
    hash_key_prefix: str = HASH_KEY_PREFIX
    hash_key: str
    scan_count: int = Field(default=DEFAULT_SCAN_COUNT, gt=0)
    refresh_interval: int = Field(default=DEFAULT_REFRESH_INTERVAL_MS, gt=0)
    fixture_data: dict[str, dict[str, Any]] | None = None
    disable_local_key_storage: bool = False
    use_blocking_refresh: bool = False

    @field_validator("hash_key")
    @classmethod
    def hash_key_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("hash_key must be a non-empty string")
        return value

    @property
    def storage_key(self) -> str:
        """Redis key of the hash holding the configuration set."""
        return f"{self.hash_key_prefix}{self.hash_key}"


def build_configuration(settings: Settings | None = None, **overrides: Any) -> CacheConfiguration:
    """Build a CacheConfiguration from defaults, settings and caller overrides.

    Later sources win; overrides given as None are ignored so callers can pass
    optional values straight through.

    Args:
        settings: Settings to merge; defaults to get_settings().
        **overrides: CacheConfiguration fields (hash_key is required).

    Returns:
        Validated, frozen CacheConfiguration.

    Raises:
        InvalidArgumentException: Unknown option, missing hash_key, or a value
            that fails validation.
    """
    unknown = sorted(set(overrides) - set(CacheConfiguration.model_fields))
    if unknown:
        raise InvalidArgumentException(
            f"Unknown configuration option(s): {', '.join(unknown)}", argument=unknown[0]
        )

    hash_key = overrides.get("hash_key")
    if not isinstance(hash_key, str) or not hash_key:
        raise InvalidArgumentException(
            "hash_key is required and must be a non-empty string", argument="hash_key"
        )

    if settings is None:
        try:
            settings = get_settings()
        except ValidationError as e:
            raise _invalid_configuration(e) from e
    merged: dict[str, Any] = {
        "hash_key_prefix": settings.config_hash_key_prefix,
        "scan_count": settings.config_scan_count,
        "refresh_interval": settings.config_refresh_interval_ms,
    }
    merged.update({name: value for name, value in overrides.items() if value is not None})

    try:
        return CacheConfiguration(**merged)
    except ValidationError as e:
        raise _invalid_configuration(e) from e


def _invalid_configuration(error: ValidationError) -> InvalidArgumentException:
    first = error.errors()[0]
    argument = ".".join(str(part) for part in first.get("loc", ())) or None
    return InvalidArgumentException(
        f"Invalid configuration: {first.get('msg', str(error))}", argument=argument
    )
