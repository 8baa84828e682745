"""Domain exceptions for config_cache.

Raised synchronously for bad call shapes and for stored values that cannot
be decoded. Transport faults live in config_cache.infrastructure.exceptions.
"""

from typing import Any


class ConfigCacheException(Exception):
    """Base exception for all config_cache errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. argument, key).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class InvalidArgumentException(ConfigCacheException):
    """Raised when a call or the configuration has the wrong shape."""

    def __init__(self, message: str, argument: str | None = None) -> None:
        """Initialize with message and optional argument name.

        Args:
            message: Description of the problem.
            argument: Optional name of the offending argument or option.
        """
        details = {"argument": argument} if argument else {}
        super().__init__(message, "INVALID_ARGUMENT", details)


class DecodeException(ConfigCacheException):
    """Raised when a stored value is not valid JSON."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(
            f"Stored value for config key {key!r} is not valid JSON",
            "DECODE_ERROR",
            {"key": key, "reason": reason},
        )
