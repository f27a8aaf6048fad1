"""CacheRedis - Stampede-Safe Tagged Cache over Redis.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A caching façade over a key-value store with:
- Dogpile prevention: one caller refreshes a stale entry, the rest get
  the stale value instead of piling onto the data source
- Tag invalidation: bump a tag to invalidate every entry written with it
- Fetch-or-compute for callers
- Pluggable entry codecs (pickle, msgpack, JSON)
- Memory and Redis backends

Architecture:
    ┌─────────────────────────────────────────────────────────────────┐
    │                        CacheRedis System                        │
    ├─────────────────────────────────────────────────────────────────┤
    │  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐             │
    │  │ CacheStore  │  │    Entry    │  │  CacheKeys  │   CACHE     │
    │  │ read/write  │  │  lifetime   │  │ _lock/_tag  │   LAYER     │
    │  │ fetch/tags  │  │  tag stamps │  │             │             │
    │  └──────┬──────┘  └──────┬──────┘  └─────────────┘             │
    │         │                │                                      │
    │  ┌──────┴────────────────┴───────────────────────┐             │
    │  │                  Entry Codecs                  │   PROTOCOL  │
    │  │      ┌─────────┐  ┌──────┐  ┌────────┐        │   LAYER     │
    │  │      │ MsgPack │  │ JSON │  │ Pickle │        │             │
    │  │      └─────────┘  └──────┘  └────────┘        │             │
    │  └──────────────────────┬────────────────────────┘             │
    │                         │                                       │
    │  ┌──────────────────────┴────────────────────────┐             │
    │  │                   Backends                     │   STORAGE   │
    │  │          ┌────────┐      ┌────────┐           │   LAYER     │
    │  │          │ Memory │      │ Redis  │           │             │
    │  │          └────────┘      └────────┘           │             │
    │  └───────────────────────────────────────────────┘             │
    └─────────────────────────────────────────────────────────────────┘

Example Usage:
    from cacheredis_core import CacheStore, RedisBackend, RedisConfig

    cache = CacheStore(RedisBackend(RedisConfig(host="redis.local")))

    cache.write("user:1", {"name": "John"}, expire_in=300, tags=["users"])
    user = cache.read("user:1")

    # Fetch or compute
    user = cache.fetch("user:1", lambda: load_user(1), expire_in=300)

    # Invalidate by tag
    cache.invalidate_tags(["users"])

    # Cache decorator
    @cache.cached(expire_in=60)
    def get_expensive_data(id: str):
        return fetch_from_database(id)
"""

__version__ = "1.0.0"
__author__ = "BlackRoad OS"

from cacheredis_core.cache.entry import (
    Entry,
    EntryState,
    DEFAULT_LIFETIME,
)
from cacheredis_core.cache.keys import CacheKeys
from cacheredis_core.cache.cache import (
    CacheStore,
    CacheConfig,
    CacheStats,
)
from cacheredis_core.cache.decorator import cached
from cacheredis_core.store.backend import (
    Backend,
    BackendConfig,
    BackendStats,
)
from cacheredis_core.store.memory import MemoryBackend
from cacheredis_core.store.redis import RedisBackend, RedisConfig
from cacheredis_core.protocol.codec import (
    EntryCodec,
    CodecError,
    MsgPackCodec,
    JSONCodec,
    PickleCodec,
    get_codec,
)

__all__ = [
    # Cache
    "CacheStore",
    "CacheConfig",
    "CacheStats",
    "CacheKeys",
    "Entry",
    "EntryState",
    "DEFAULT_LIFETIME",
    "cached",
    # Storage
    "Backend",
    "BackendConfig",
    "BackendStats",
    "MemoryBackend",
    "RedisBackend",
    "RedisConfig",
    # Protocol
    "EntryCodec",
    "CodecError",
    "MsgPackCodec",
    "JSONCodec",
    "PickleCodec",
    "get_codec",
]
