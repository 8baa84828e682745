"""Key stores: the hash primitives ConfigCache is built on.

KeyStoreClient is the protocol; RedisKeyStore talks to Redis through
redis.asyncio and InMemoryKeyStore keeps hashes in process.
"""

from config_cache.infrastructure.key_store.memory_key_store import InMemoryKeyStore
from config_cache.infrastructure.key_store.protocol import KeyStoreClient
from config_cache.infrastructure.key_store.redis_key_store import RedisKeyStore

__all__ = ["InMemoryKeyStore", "KeyStoreClient", "RedisKeyStore"]
