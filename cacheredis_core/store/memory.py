"""CacheRedis Memory Backend - In-Process Key-Value Store.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from cacheredis_core.store.backend import Backend, BackendConfig, to_bytes

logger = logging.getLogger(__name__)


class MemoryBackend(Backend):
    """In-memory backend with Redis-like expiry.

    Keeps (bytes, expires_at) pairs in a dictionary. Expired keys are
    dropped lazily when touched. All operations hold one RLock, which
    makes set_if_absent_with_expiry atomic across threads.

    Best for tests and single-process applications.

    Example:
        backend = MemoryBackend()
        backend.set_with_expiry("key", b"data", 60)
        data = backend.get("key")
    """

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize memory backend.

        Args:
            config: Backend configuration
            clock: Time source in seconds
        """
        super().__init__(config)
        self._clock = clock
        self._data: Dict[str, Tuple[bytes, Optional[float]]] = {}
        self._lock = threading.RLock()

    def _live(self, redis_key: str) -> Optional[bytes]:
        """Get value if present and not expired. Caller holds the lock."""
        item = self._data.get(redis_key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[redis_key]
            return None
        return value

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            self._stats.reads += 1
            return self._live(self._make_key(key))

    def set(self, key: str, value: Any) -> bool:
        with self._lock:
            self._data[self._make_key(key)] = (to_bytes(value), None)
            self._stats.writes += 1
            return True

    def set_with_expiry(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        with self._lock:
            if ttl_seconds <= 0:
                self._stats.record_error(f"invalid expire time: {ttl_seconds}")
                logger.error(f"Memory set error: invalid expire time {ttl_seconds} for {key}")
                return False

            self._data[self._make_key(key)] = (to_bytes(value), self._clock() + ttl_seconds)
            self._stats.writes += 1
            return True

    def delete(self, *keys: str) -> int:
        count = 0
        with self._lock:
            for key in keys:
                redis_key = self._make_key(key)
                if self._live(redis_key) is not None:
                    del self._data[redis_key]
                    count += 1
            self._stats.deletes += 1
        return count

    def multi_get(self, keys: Sequence[str]) -> List[Optional[bytes]]:
        with self._lock:
            self._stats.reads += len(keys)
            return [self._live(self._make_key(k)) for k in keys]

    def set_if_absent_with_expiry(self, key: str, token: Any, ttl_seconds: Optional[int]) -> bool:
        redis_key = self._make_key(key)
        with self._lock:
            if self._live(redis_key) is not None:
                return False
            expires_at = self._clock() + ttl_seconds if ttl_seconds else None
            self._data[redis_key] = (to_bytes(token), expires_at)
            self._stats.writes += 1
            return True

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(self._make_key(key)) is not None

    def ttl(self, key: str) -> Optional[float]:
        redis_key = self._make_key(key)
        with self._lock:
            if self._live(redis_key) is None:
                return None
            expires_at = self._data[redis_key][1]
            if expires_at is None:
                return None
            return expires_at - self._clock()

    def clear(self) -> int:
        """Clear all keys.

        Returns:
            Number cleared
        """
        with self._lock:
            count = len(self._data)
            self._data.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for k in list(self._data) if self._live(k) is not None)

    def __repr__(self) -> str:
        return f"MemoryBackend(keys={len(self._data)})"


__all__ = ["MemoryBackend"]
