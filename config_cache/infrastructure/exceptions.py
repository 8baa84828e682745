"""Infrastructure exceptions for key store operations.

Connection faults extend ConfigCacheException so callers can catch every
config_cache error with one clause.
"""

from config_cache.domain.exceptions import ConfigCacheException


class ConnectionFaultException(ConfigCacheException):
    """Key store unreachable, or the connection dropped mid-command."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            f"Key store connection fault during {operation}: {reason}",
            "CONNECTION_FAULT",
            {"operation": operation, "reason": reason},
        )
