"""CacheRedis Backend - Abstract Key-Value Store Interface.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class BackendConfig:
    """Backend configuration.

    Attributes:
        name: Backend name
        prefix: Prefix applied to every key, entries, locks and tags alike
    """

    name: str = "backend"
    prefix: str = ""


@dataclass
class BackendStats:
    """Backend statistics.

    Attributes:
        reads: Number of read operations
        writes: Number of write operations
        deletes: Number of delete operations
        errors: Number of errors
    """

    reads: int = 0
    writes: int = 0
    deletes: int = 0
    errors: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    def record_error(self, error: str) -> None:
        """Record an error."""
        self.errors += 1
        self.last_error = error
        self.last_error_at = datetime.now()


def to_bytes(value: Any) -> bytes:
    """Coerce a stored value to bytes the way Redis does."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    return str(value).encode("utf-8")


class Backend(ABC):
    """Abstract key-value store with expiring keys.

    The cache only needs plain reads and writes plus a single atomic
    primitive, set_if_absent_with_expiry, which decides which caller
    refreshes a stale entry. Everything else may be non-transactional.

    Implementations:
    - MemoryBackend: In-process dictionary
    - RedisBackend: Redis server
    """

    def __init__(self, config: Optional[BackendConfig] = None):
        """Initialize backend.

        Args:
            config: Backend configuration
        """
        self.config = config or BackendConfig()
        self._stats = BackendStats()

    def _make_key(self, key: str) -> str:
        """Make prefixed key."""
        return f"{self.config.prefix}{key}"

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Get raw value.

        Args:
            key: Key

        Returns:
            Stored bytes or None
        """
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> bool:
        """Store value without expiry.

        Args:
            key: Key
            value: Bytes, str or number

        Returns:
            True if successful
        """
        pass

    @abstractmethod
    def set_with_expiry(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        """Store value that expires after ttl_seconds.

        Args:
            key: Key
            value: Bytes to store
            ttl_seconds: Physical TTL in seconds

        Returns:
            True if successful
        """
        pass

    @abstractmethod
    def delete(self, *keys: str) -> int:
        """Delete keys.

        Args:
            keys: Keys to delete

        Returns:
            Number of keys removed
        """
        pass

    @abstractmethod
    def multi_get(self, keys: Sequence[str]) -> List[Optional[bytes]]:
        """Get several values.

        Args:
            keys: Keys to read

        Returns:
            Values in request order, None where absent
        """
        pass

    @abstractmethod
    def set_if_absent_with_expiry(self, key: str, token: Any, ttl_seconds: Optional[int]) -> bool:
        """Atomically create key unless it exists.

        Args:
            key: Key
            token: Value to store
            ttl_seconds: Expiry in seconds, None for no expiry

        Returns:
            True if this call created the key
        """
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if key exists."""
        pass

    @abstractmethod
    def ttl(self, key: str) -> Optional[float]:
        """Get remaining TTL in seconds, None if absent or persistent."""
        pass

    def close(self) -> None:
        """Release resources."""

    def get_stats(self) -> BackendStats:
        """Get backend statistics.

        Returns:
            BackendStats instance
        """
        return self._stats

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._stats = BackendStats()

    def health_check(self) -> bool:
        """Check backend health.

        Returns:
            True if healthy
        """
        try:
            # Simple write/read/delete test
            test_key = "__health_check__"
            self.set_with_expiry(test_key, b"test", 10)
            result = self.get(test_key)
            self.delete(test_key)
            return result == b"test"
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False


__all__ = ["Backend", "BackendConfig", "BackendStats", "to_bytes"]
