"""config-cache: local key-presence cache for configuration stored in a Redis hash.

ConfigCache keeps a snapshot of the field names of one hash, refreshed on a
timer, so callers can ask has_key() without a round trip. Values are read and
written straight through to the store as JSON.
"""

from config_cache.application.config_cache import ConfigCache
from config_cache.application.events import EventNotifier
from config_cache.core.config import CacheConfiguration, Settings, build_configuration, get_settings
from config_cache.domain.exceptions import (
    ConfigCacheException,
    DecodeException,
    InvalidArgumentException,
)
from config_cache.domain.snapshot import CacheSnapshot
from config_cache.infrastructure.exceptions import ConnectionFaultException
from config_cache.infrastructure.key_store import (
    InMemoryKeyStore,
    KeyStoreClient,
    RedisKeyStore,
)

__version__ = "1.0.0"

__all__ = [
    "CacheConfiguration",
    "CacheSnapshot",
    "ConfigCache",
    "ConfigCacheException",
    "ConnectionFaultException",
    "DecodeException",
    "EventNotifier",
    "InMemoryKeyStore",
    "InvalidArgumentException",
    "KeyStoreClient",
    "RedisKeyStore",
    "Settings",
    "build_configuration",
    "get_settings",
]
