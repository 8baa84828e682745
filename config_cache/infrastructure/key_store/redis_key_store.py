"""Redis-backed key store over redis.asyncio.

Connection settings come from config_cache.core.config, overridable per
instance. Pass redis_client to reuse an existing (already connected) client.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Sequence
from typing import TypeVar

import redis.asyncio as redis

from config_cache.core.config import Settings, get_settings
from config_cache.domain.exceptions import InvalidArgumentException
from config_cache.infrastructure.exceptions import ConnectionFaultException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RedisKeyStore:
    """Hash commands (HSCAN, HGET, HMGET, HSET, HDEL, HKEYS) against Redis.

    Connection errors and timeouts become ConnectionFaultException and mark
    the store disconnected; the next successful command marks it connected
    again (redis-py reconnects on its own). Other Redis errors propagate.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        *,
        host: str | None = None,
        port: int | None = None,
        db: int | None = None,
        password: str | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize key store.

        Args:
            redis_client: Optional existing client; treated as already connected.
                Must be created with decode_responses=True.
            host: Overrides settings.redis_host.
            port: Overrides settings.redis_port.
            db: Overrides settings.redis_db.
            password: Overrides settings.redis_password.
            settings: Settings to read defaults from; defaults to get_settings().

        Raises:
            InvalidArgumentException: redis_client returns bytes.
        """
        self.settings = settings or get_settings()
        self.redis = redis_client
        self._owns_client = redis_client is None
        self._connected = redis_client is not None
        self._server_version: str | None = None

        if redis_client is not None:
            conn_kwargs = redis_client.connection_pool.connection_kwargs
            # field names must come back as str to match has_key() lookups
            if not conn_kwargs.get("decode_responses"):
                raise InvalidArgumentException(
                    "redis_client must be created with decode_responses=True",
                    argument="redis_client",
                )
            self.host = conn_kwargs.get("host", self.settings.redis_host)
            self.port = conn_kwargs.get("port", self.settings.redis_port)
            self.db = conn_kwargs.get("db", self.settings.redis_db)
        else:
            self.host = host if host is not None else self.settings.redis_host
            self.port = port if port is not None else self.settings.redis_port
            self.db = db if db is not None else self.settings.redis_db
        if password is not None:
            self._password = password
        elif self.settings.redis_password:
            self._password = self.settings.redis_password.get_secret_value()
        else:
            self._password = None

    async def connect(self) -> None:
        """Create the client if needed, PING it and read the server version."""
        if self._connected:
            return
        if self.redis is None:
            self.redis = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self._password,
                decode_responses=True,
                socket_connect_timeout=self.settings.redis_socket_connect_timeout,
                socket_keepalive=True,
            )
        try:
            await self.redis.ping()
            info = await self.redis.info("server")
        except (redis.ConnectionError, redis.TimeoutError) as e:
            self._connected = False
            logger.warning("Redis connection failed: %s:%s: %s", self.host, self.port, e)
            raise ConnectionFaultException("connect", str(e)) from e
        self._server_version = info.get("redis_version")
        self._connected = True
        logger.info("Redis key store connected: %s:%s", self.host, self.port)

    async def close(self) -> None:
        """Close the client if this store created it."""
        if self.redis is not None and self._owns_client:
            await self.redis.aclose()
            self.redis = None
            logger.info("Redis key store disconnected")
        self._connected = False

    def is_connected(self) -> bool:
        """Return True if Redis answered the last command."""
        return self._connected and self.redis is not None

    def describe(self) -> str:
        location = f"redis://{self.host}:{self.port}"
        if self.db:
            location += f"/db{self.db}"
        if self._server_version:
            location += f" v{self._server_version}"
        return location

    def _client(self, operation: str) -> redis.Redis:
        if self.redis is None:
            raise ConnectionFaultException(operation, "client not connected")
        return self.redis

    async def _run(self, operation: str, command: Awaitable[T]) -> T:
        try:
            result = await command
        except (redis.ConnectionError, redis.TimeoutError) as e:
            self._connected = False
            logger.warning("Redis %s failed (disconnected): %s", operation, e)
            raise ConnectionFaultException(operation, str(e)) from e
        self._connected = True
        return result

    async def scan_fields(
        self, hash_key: str, cursor: int | str, count: int
    ) -> tuple[str, list[str]]:
        """HSCAN one batch, flattened to [field, value, field, value, ...]."""
        client = self._client("HSCAN")
        next_cursor, found = await self._run(
            "HSCAN", client.hscan(hash_key, cursor=int(cursor), count=count)
        )
        entries = [item for pair in found.items() for item in pair]
        return str(next_cursor), entries

    async def get_field(self, hash_key: str, field: str) -> str | None:
        client = self._client("HGET")
        return await self._run("HGET", client.hget(hash_key, field))

    async def get_fields(self, hash_key: str, fields: Sequence[str]) -> list[str | None]:
        client = self._client("HMGET")
        return await self._run("HMGET", client.hmget(hash_key, list(fields)))

    async def set_field(self, hash_key: str, field: str, value: str) -> None:
        client = self._client("HSET")
        await self._run("HSET", client.hset(hash_key, field, value))

    async def delete_field(self, hash_key: str, field: str) -> int:
        client = self._client("HDEL")
        return int(await self._run("HDEL", client.hdel(hash_key, field)))

    async def list_fields(self, hash_key: str) -> list[str]:
        client = self._client("HKEYS")
        return await self._run("HKEYS", client.hkeys(hash_key))
