"""Cache module - Entry model and the cache protocol.

This module provides the cache store, its entries and key schema.
"""

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

__all__ = [
    "Entry",
    "EntryState",
    "DEFAULT_LIFETIME",
    "CacheKeys",
    "CacheStore",
    "CacheConfig",
    "CacheStats",
    "cached",
]
