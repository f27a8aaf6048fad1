"""CacheRedis Redis Backend - Redis Key-Value Store.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from cacheredis_core.store.backend import Backend, BackendConfig

logger = logging.getLogger(__name__)

# KEYS[1] - lock name
# ARGV[1] - token
# ARGV[2] - timeout in milliseconds, empty for none
# Returns 1 if the lock was acquired, otherwise 0
ACQUIRE_LOCK_SCRIPT = """
if redis.call('setnx', KEYS[1], ARGV[1]) == 1 then
    if ARGV[2] ~= '' then
        redis.call('pexpire', KEYS[1], ARGV[2])
    end
    return 1
end
return 0
"""


@dataclass
class RedisConfig(BackendConfig):
    """Redis-specific configuration.

    Attributes:
        host: Redis host
        port: Redis port
        db: Redis database number
        password: Redis password
        socket_timeout: Socket timeout
        socket_connect_timeout: Connection timeout
        ssl: Enable SSL
        ssl_ca_certs: CA certificates path
        max_connections: Connection pool size
    """

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    ssl: bool = False
    ssl_ca_certs: Optional[str] = None
    max_connections: int = 10


class RedisBackend(Backend):
    """Redis backend.

    Entries go through SETEX, tag stamps through SET, and the stampede
    lock through a Lua script so that SETNX and PEXPIRE happen as one
    step. Client errors are logged and counted, never raised.

    Example:
        backend = RedisBackend(RedisConfig(host="redis.local", port=6379))
        backend.set_with_expiry("key", b"data", 60)
        data = backend.get("key")
    """

    def __init__(self, config: Optional[RedisConfig] = None, client: Optional[Any] = None):
        """Initialize Redis backend.

        Args:
            config: Redis configuration
            client: Existing redis.Redis client to use instead of a pool
        """
        super().__init__(config)
        self.config: RedisConfig = config or RedisConfig()
        self._client: Optional[Any] = client
        self._pool: Optional[Any] = None
        self._acquire_script: Optional[Any] = None

    def _ensure_connected(self) -> Any:
        """Ensure Redis connection exists.

        Returns:
            Redis client
        """
        if self._client is not None:
            return self._client

        try:
            import redis
        except ImportError:
            raise ImportError("Redis package not installed. Run: pip install redis")

        try:
            pool_kwargs = dict(
                host=self.config.host,
                port=self.config.port,
                db=self.config.db,
                password=self.config.password,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.socket_connect_timeout,
                max_connections=self.config.max_connections,
                decode_responses=False,  # Entries are bytes
            )
            if self.config.ssl:
                pool_kwargs["connection_class"] = redis.SSLConnection
                pool_kwargs["ssl_ca_certs"] = self.config.ssl_ca_certs

            self._pool = redis.ConnectionPool(**pool_kwargs)
            self._client = redis.Redis(connection_pool=self._pool)

            # Test connection
            self._client.ping()
            logger.info(f"Connected to Redis at {self.config.host}:{self.config.port}")

            return self._client

        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self._client = None
            raise

    def _script(self) -> Any:
        """Get the registered lock acquisition script."""
        if self._acquire_script is None:
            client = self._ensure_connected()
            self._acquire_script = client.register_script(ACQUIRE_LOCK_SCRIPT)
        return self._acquire_script

    def get(self, key: str) -> Optional[bytes]:
        try:
            client = self._ensure_connected()
            self._stats.reads += 1
            return client.get(self._make_key(key))

        except Exception as e:
            logger.error(f"Redis get error: {e}")
            self._stats.record_error(str(e))
            return None

    def set(self, key: str, value: Any) -> bool:
        try:
            client = self._ensure_connected()
            result = client.set(self._make_key(key), value)
            self._stats.writes += 1
            return bool(result)

        except Exception as e:
            logger.error(f"Redis set error: {e}")
            self._stats.record_error(str(e))
            return False

    def set_with_expiry(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        try:
            client = self._ensure_connected()
            result = client.setex(self._make_key(key), ttl_seconds, value)
            self._stats.writes += 1
            return bool(result)

        except Exception as e:
            logger.error(f"Redis setex error: {e}")
            self._stats.record_error(str(e))
            return False

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            client = self._ensure_connected()
            result = client.delete(*(self._make_key(k) for k in keys))
            self._stats.deletes += 1
            return int(result)

        except Exception as e:
            logger.error(f"Redis delete error: {e}")
            self._stats.record_error(str(e))
            return 0

    def multi_get(self, keys: Sequence[str]) -> List[Optional[bytes]]:
        if not keys:
            return []
        try:
            client = self._ensure_connected()
            self._stats.reads += len(keys)
            return list(client.mget([self._make_key(k) for k in keys]))

        except Exception as e:
            logger.error(f"Redis mget error: {e}")
            self._stats.record_error(str(e))
            return [None] * len(keys)

    def set_if_absent_with_expiry(self, key: str, token: Any, ttl_seconds: Optional[int]) -> bool:
        # The script expires the lock with PEXPIRE, which takes milliseconds
        ttl_ms = int(ttl_seconds * 1000) if ttl_seconds else ""
        try:
            script = self._script()
            result = script(keys=[self._make_key(key)], args=[token, ttl_ms])
            self._stats.writes += 1
            return int(result) == 1

        except Exception as e:
            logger.error(f"Redis lock error: {e}")
            self._stats.record_error(str(e))
            return False

    def exists(self, key: str) -> bool:
        try:
            client = self._ensure_connected()
            return client.exists(self._make_key(key)) > 0

        except Exception as e:
            logger.error(f"Redis exists error: {e}")
            self._stats.record_error(str(e))
            return False

    def ttl(self, key: str) -> Optional[float]:
        try:
            client = self._ensure_connected()
            ttl_ms = client.pttl(self._make_key(key))

            if ttl_ms < 0:
                return None

            return ttl_ms / 1000

        except Exception as e:
            logger.error(f"Redis pttl error: {e}")
            self._stats.record_error(str(e))
            return None

    def close(self) -> None:
        """Close Redis connection."""
        if self._pool:
            self._pool.disconnect()
            self._pool = None
            self._client = None
            self._acquire_script = None

    def __repr__(self) -> str:
        return f"RedisBackend(host={self.config.host}, port={self.config.port})"


__all__ = ["RedisBackend", "RedisConfig", "ACQUIRE_LOCK_SCRIPT"]
