"""CacheRedis Cache - Read/Write/Lock/Invalidate Protocol.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional, Union

from cacheredis_core.cache.entry import DEFAULT_LIFETIME, Entry, EntryState
from cacheredis_core.cache.keys import CacheKeys
from cacheredis_core.protocol.codec import CodecError, EntryCodec, get_codec
from cacheredis_core.store.backend import Backend

logger = logging.getLogger(__name__)


@dataclass
class CacheConfig:
    """Cache configuration.

    Attributes:
        name: Cache name
        dogpile_prevention: Keep entries alive past their lifetime so one
            caller can refresh while others are served the stale value
        dogpile_prevention_factor: Physical TTL multiplier
        default_lifetime: Lifetime in seconds when none is given
        lock_ttl_seconds: Stampede lock expiry in seconds, None to use
            the stale entry's lifetime
    """

    name: str = "cache"
    dogpile_prevention: bool = True
    dogpile_prevention_factor: float = 2
    default_lifetime: int = DEFAULT_LIFETIME
    lock_ttl_seconds: Optional[int] = None

    def __post_init__(self):
        if self.dogpile_prevention_factor <= 0:
            raise ValueError(
                f"dogpile_prevention_factor must be positive, got {self.dogpile_prevention_factor}"
            )


@dataclass
class CacheStats:
    """Cache statistics.

    Attributes:
        hits: Fresh values returned
        misses: Reads that found nothing usable
        stale_hits: Stale values served while another caller refreshes
        refreshes: Stale reads that won the lock and must recompute
        writes: Successful writes
        write_failures: Writes the backend did not acknowledge
        decode_errors: Stored values that could not be decoded
        invalidations: Tags bumped
        deletes: Delete operations
        started_at: When the cache was created
    """

    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    refreshes: int = 0
    writes: int = 0
    write_failures: int = 0
    decode_errors: int = 0
    invalidations: int = 0
    deletes: int = 0
    started_at: Optional[datetime] = None

    @property
    def hit_rate(self) -> float:
        """Share of reads answered with a value, stale or not."""
        served = self.hits + self.stale_hits
        total = served + self.misses + self.refreshes
        return served / total if total > 0 else 0.0

    def reset(self) -> None:
        """Reset statistics."""
        self.hits = 0
        self.misses = 0
        self.stale_hits = 0
        self.refreshes = 0
        self.writes = 0
        self.write_failures = 0
        self.decode_errors = 0
        self.invalidations = 0
        self.deletes = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stale_hits": self.stale_hits,
            "refreshes": self.refreshes,
            "writes": self.writes,
            "write_failures": self.write_failures,
            "decode_errors": self.decode_errors,
            "invalidations": self.invalidations,
            "deletes": self.deletes,
            "hit_rate": self.hit_rate,
        }


class CacheStore:
    """Caching façade with stampede protection and tag invalidation.

    The store holds no coordination state of its own. Which caller
    refreshes a stale entry is decided by the backend's atomic
    set-if-absent primitive on the entry's lock key; everyone else is
    served the stale value until the refresh is written.

    With dogpile prevention on, entries live in the backend for
    lifetime * factor seconds, while staleness is judged against the
    lifetime recorded inside the entry. The gap between the two is when
    stale values remain servable.

    Example:
        cache = CacheStore(RedisBackend(RedisConfig(host="redis.local")))

        cache.write("user:1", user, expire_in=60, tags=["users"])
        user = cache.read("user:1")

        # Fetch or compute
        report = cache.fetch("report", build_report, expire_in=600)

        # Invalidate everything tagged "users"
        cache.invalidate_tags(["users"])
    """

    def __init__(
        self,
        backend: Backend,
        config: Optional[CacheConfig] = None,
        codec: Optional[EntryCodec] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize cache.

        Args:
            backend: Key-value backend
            config: Cache configuration
            codec: Entry codec, pickle by default
            clock: Time source in seconds
        """
        self.backend = backend
        self.config = config or CacheConfig()
        self.codec = codec or get_codec()
        self._clock = clock
        self._stats = CacheStats(started_at=datetime.now())
        self._stats_lock = threading.Lock()

    def _now(self) -> int:
        return int(self._clock())

    def _count(self, name: str, amount: int = 1) -> None:
        with self._stats_lock:
            setattr(self._stats, name, getattr(self._stats, name) + amount)

    def read(self, id: Any) -> Any:
        """Read value from cache.

        Args:
            id: Entry id

        Returns:
            Cached value, possibly stale, or None when the caller must
            recompute
        """
        entry = self._read_entry(id)
        return None if entry is None else entry.value

    def write(
        self,
        id: Any,
        value: Any,
        expire_in: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> bool:
        """Write value and release the entry's stampede lock.

        Args:
            id: Entry id
            value: Value to cache
            expire_in: Lifetime in seconds
            tags: Tag names to stamp the entry with

        Returns:
            True if the backend stored the entry
        """
        lifetime = expire_in if expire_in is not None else self.config.default_lifetime
        entry = Entry(
            value=value,
            creation_time=self._now(),
            lifetime=lifetime,
            tags=self.bump_tags(tags) if tags is not None else {},
        )

        try:
            data = self.codec.encode(entry)
        except CodecError as e:
            logger.error(f"Cache {self.config.name} cannot encode {id!r}: {e}")
            data = None

        stored = False
        if data is not None:
            stored = self.backend.set_with_expiry(
                CacheKeys.entry_key(id), data, self.physical_ttl(lifetime)
            )

        self.unlock(id)

        if stored:
            self._count("writes")
        else:
            self._count("write_failures")
            logger.warning(f"Cache {self.config.name} failed to store {id!r}")
        return stored

    def fetch(
        self,
        id: Any,
        compute: Optional[Callable[[], Any]] = None,
        expire_in: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Any:
        """Get cached value or compute, store and return it.

        A stored None counts as a value; only a miss or a won refresh
        triggers compute.

        Args:
            id: Entry id
            compute: Zero-argument function producing the value
            expire_in: Lifetime in seconds for a computed value
            tags: Tag names for a computed value

        Returns:
            Cached or computed value, None if neither is available
        """
        entry = self._read_entry(id)
        if entry is not None:
            return entry.value

        if compute is None:
            return None

        data = compute()
        self.write(id, data, expire_in=expire_in, tags=tags)
        return data

    def delete(self, id: Any) -> int:
        """Delete entry. The stampede lock is left alone.

        Args:
            id: Entry id

        Returns:
            Number of keys removed
        """
        self._count("deletes")
        return self.backend.delete(CacheKeys.entry_key(id))

    def bump_tags(self, names: Iterable[str]) -> Dict[str, int]:
        """Stamp each tag's registry key with the current time.

        Args:
            names: Tag names

        Returns:
            Ordered mapping of tag name -> new timestamp
        """
        now = self._now()
        snapshot: Dict[str, int] = {}
        for name in names:
            self.backend.set(CacheKeys.tag_key(name), now)
            snapshot[name] = now
        return snapshot

    def invalidate_tags(self, names: Union[str, Iterable[str]]) -> Dict[str, int]:
        """Invalidate every entry written with any of the given tags.

        Invalidation is lazy: entries are judged on their next read.

        Args:
            names: Tag name or names

        Returns:
            Ordered mapping of tag name -> new timestamp
        """
        if isinstance(names, str):
            names = [names]
        snapshot = self.bump_tags(names)
        self._count("invalidations", len(snapshot))
        logger.debug(f"Cache {self.config.name} invalidated tags {list(snapshot)}")
        return snapshot

    def tags_invalid(self, tags: Dict[str, int]) -> bool:
        """Check an entry's tag snapshot against the registry.

        Args:
            tags: Tag name -> timestamp recorded at write time

        Returns:
            True if any tag was bumped or is missing
        """
        if not tags:
            return False

        keys = [CacheKeys.tag_key(name) for name in tags]
        current = [self._parse_stamp(raw) for raw in self.backend.multi_get(keys)]
        return list(tags.values()) != current

    def physical_ttl(self, lifetime: int) -> int:
        """Get the backend TTL for an entry with the given lifetime.

        Args:
            lifetime: Logical lifetime in seconds

        Returns:
            TTL in whole seconds
        """
        if not self.config.dogpile_prevention:
            return lifetime
        return int(math.ceil(lifetime * self.config.dogpile_prevention_factor))

    def lock(self, id: Any, ttl_seconds: int) -> bool:
        """Try to become the caller that refreshes ``id``.

        Args:
            id: Entry id
            ttl_seconds: Lock expiry in seconds

        Returns:
            True if acquired
        """
        if self.config.lock_ttl_seconds is not None:
            ttl_seconds = self.config.lock_ttl_seconds
        # A lock must always self-expire in case its holder dies
        ttl_seconds = max(int(ttl_seconds), 1)
        return self.backend.set_if_absent_with_expiry(
            CacheKeys.lock_key(id), self._now(), ttl_seconds
        )

    def unlock(self, id: Any) -> int:
        """Release the stampede lock, whoever holds it.

        Args:
            id: Entry id

        Returns:
            Number of keys removed
        """
        return self.backend.delete(CacheKeys.lock_key(id))

    def judge(self, entry: Entry) -> EntryState:
        """Decide whether an entry may be served as fresh.

        Args:
            entry: Decoded entry

        Returns:
            EntryState verdict
        """
        if entry.smelled(self._now()):
            return EntryState.SMELLED
        if self.tags_invalid(entry.tags):
            return EntryState.TAGS_INVALID
        return EntryState.FRESH

    def cached(
        self,
        expire_in: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
        key_builder: Optional[Callable[..., str]] = None,
        key_prefix: Optional[str] = None,
    ):
        """Decorator caching function results through fetch.

        Args:
            expire_in: Lifetime in seconds
            tags: Tag names for every cached result
            key_builder: Function to build the entry id
            key_prefix: Prefix for generated ids

        Returns:
            Decorator function
        """
        from cacheredis_core.cache.decorator import cached

        return cached(
            self,
            expire_in=expire_in,
            tags=tags,
            key_builder=key_builder,
            key_prefix=key_prefix,
        )

    def get_stats(self) -> CacheStats:
        """Get cache statistics.

        Returns:
            CacheStats instance
        """
        return self._stats

    def reset_stats(self) -> None:
        """Reset statistics."""
        with self._stats_lock:
            self._stats.reset()

    def _read_entry(self, id: Any) -> Optional[Entry]:
        """Read and judge the entry, taking the lock when it is stale."""
        raw = self.backend.get(CacheKeys.entry_key(id))
        if raw is None:
            self._count("misses")
            return None

        try:
            entry = self.codec.decode(raw)
        except CodecError as e:
            logger.warning(f"Cache {self.config.name} ignoring undecodable value at {id!r}: {e}")
            self._count("decode_errors")
            self._count("misses")
            return None

        state = self.judge(entry)
        if state is EntryState.FRESH:
            self._count("hits")
            return entry

        if self.lock(id, entry.lifetime):
            logger.debug(f"Cache {self.config.name} {id!r} is {state.name}, refreshing")
            self._count("refreshes")
            return None

        logger.debug(f"Cache {self.config.name} {id!r} is {state.name}, serving stale value")
        self._count("stale_hits")
        return entry

    @staticmethod
    def _parse_stamp(raw: Optional[bytes]) -> int:
        """Parse a tag registry value, treating absent or garbage as 0."""
        if raw is None:
            return 0
        try:
            return int(raw)
        except (TypeError, ValueError):
            return 0

    def __repr__(self) -> str:
        return f"CacheStore(name={self.config.name!r}, backend={self.backend!r})"


__all__ = ["CacheStore", "CacheConfig", "CacheStats"]
