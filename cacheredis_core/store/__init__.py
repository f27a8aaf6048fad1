"""Store module - Key-value backends."""

from cacheredis_core.store.backend import (
    Backend,
    BackendConfig,
    BackendStats,
)
from cacheredis_core.store.memory import MemoryBackend
from cacheredis_core.store.redis import RedisBackend, RedisConfig

__all__ = [
    "Backend",
    "BackendConfig",
    "BackendStats",
    "MemoryBackend",
    "RedisBackend",
    "RedisConfig",
]
