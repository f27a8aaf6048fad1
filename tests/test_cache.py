"""Tests for CacheStore.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import datetime
import pickle
import threading
from unittest.mock import ANY, MagicMock

import pytest

from cacheredis_core.cache.cache import CacheConfig, CacheStore
from cacheredis_core.cache.entry import DEFAULT_LIFETIME, Entry, EntryState
from cacheredis_core.store.backend import Backend


class TestRead:
    """Tests for read."""

    def test_round_trip(self, cache):
        """Test a fresh write reads back."""
        value = ["string", 789, {"nested": True}]
        assert cache.write("key", value)
        assert cache.read("key") == value

    def test_round_trip_keeps_types(self, cache):
        """Test tuples and dates read back with their original types."""
        assert cache.write("pair", ("a", 1))
        assert cache.write("day", datetime.date(2024, 1, 1))

        assert cache.read("pair") == ("a", 1)
        assert cache.read("day") == datetime.date(2024, 1, 1)

    def test_missing_key(self, cache):
        """Test reading an absent id."""
        assert cache.read("missing") is None

    def test_integer_ids(self, cache):
        """Test ids are stringified consistently."""
        cache.write(42, "x")
        assert cache.read(42) == "x"
        assert cache.read("42") == "x"

    def test_garbage_is_a_miss(self, cache, backend):
        """Test undecodable bytes never raise."""
        backend.set_with_expiry("key", b"\xc1\xff not an entry", 60)

        assert cache.read("key") is None
        assert cache.get_stats().decode_errors == 1

    def test_foreign_value_is_a_miss(self, cache, backend):
        """Test well-formed bytes that are not an entry."""
        backend.set_with_expiry("key", pickle.dumps([1, 2, 3]), 60)
        assert cache.read("key") is None

    def test_fresh_until_lifetime_boundary(self, cache, clock):
        """Test an entry is fresh up to and including creation + lifetime."""
        cache.write("key", "value", expire_in=10)

        clock.advance(10)
        assert cache.read("key") == "value"
        assert cache.get_stats().refreshes == 0

    def test_first_stale_reader_refreshes(self, cache, clock, backend):
        """Test the first reader past the lifetime gets None."""
        cache.write("key", "value", expire_in=10)

        clock.advance(11)
        assert cache.read("key") is None
        assert backend.exists("key_lock")

    def test_concurrent_stale_readers_get_old_value(self, cache, clock):
        """Test readers arriving during a refresh are served the stale value."""
        cache.write("key", "value", expire_in=10)

        clock.advance(11)
        assert cache.read("key") is None
        assert cache.read("key") == "value"
        assert cache.read("key") == "value"

        stats = cache.get_stats()
        assert stats.refreshes == 1
        assert stats.stale_hits == 2

    def test_stale_lock_uses_entry_lifetime(self, cache, clock, backend):
        """Test the lock expires after the entry's lifetime."""
        cache.write("key", "value", expire_in=10)

        clock.advance(11)
        cache.read("key")
        assert backend.ttl("key_lock") == 10

    def test_configured_lock_ttl(self, backend, clock):
        """Test an explicit lock TTL overrides the lifetime."""
        cache = CacheStore(backend, CacheConfig(lock_ttl_seconds=3), clock=clock)
        cache.write("key", "value", expire_in=10)

        clock.advance(11)
        cache.read("key")
        assert backend.ttl("key_lock") == 3

    def test_abandoned_lock_expires(self, backend, clock):
        """Test a refresher that never writes does not block others forever."""
        cache = CacheStore(backend, CacheConfig(lock_ttl_seconds=3), clock=clock)
        cache.write("key", "value", expire_in=10)

        clock.advance(11)
        assert cache.read("key") is None

        clock.advance(1)
        assert cache.read("key") == "value"

        clock.advance(3)
        assert cache.read("key") is None

    def test_non_positive_lifetime_lock_still_expires(self, cache, backend, clock):
        """Test a lock is never created without an expiry."""
        backend.set_with_expiry(
            "key", cache.codec.encode(Entry(value="old", creation_time=int(clock()), lifetime=-30)), 60
        )

        assert cache.read("key") is None
        assert backend.ttl("key_lock") == 1

    def test_only_one_thread_refreshes(self, cache, clock):
        """Test at most one concurrent reader wins the refresh."""
        cache.write("key", "value", expire_in=10)
        clock.advance(11)

        barrier = threading.Barrier(10)
        results = []
        results_lock = threading.Lock()

        def reader():
            barrier.wait()
            value = cache.read("key")
            with results_lock:
                results.append(value)

        threads = [threading.Thread(target=reader) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(None) == 1
        assert results.count("value") == 9


class TestWrite:
    """Tests for write."""

    def test_default_lifetime_doubled(self, cache, backend):
        """Test physical TTL is twice the default lifetime."""
        assert cache.write("key", "value")
        assert backend.ttl("key") == DEFAULT_LIFETIME * 2

    def test_expire_in_doubled(self, cache, backend):
        """Test physical TTL is twice expire_in."""
        cache.write("key", "value", expire_in=3600)

        assert backend.ttl("key") == 7200
        entry = cache.codec.decode(backend.get("key"))
        assert entry.lifetime == 3600

    def test_dogpile_prevention_disabled(self, backend, clock):
        """Test physical TTL equals expire_in without dogpile prevention."""
        cache = CacheStore(backend, CacheConfig(dogpile_prevention=False), clock=clock)
        cache.write("key", "value", expire_in=3600)

        assert backend.ttl("key") == 3600

    def test_custom_factor(self, backend, clock):
        """Test the factor scales the TTL and fractions round up."""
        cache = CacheStore(backend, CacheConfig(dogpile_prevention_factor=1.5), clock=clock)

        assert cache.physical_ttl(3) == 5
        assert cache.physical_ttl(10) == 15

    def test_invalid_factor(self):
        """Test factor must be positive."""
        with pytest.raises(ValueError):
            CacheConfig(dogpile_prevention_factor=0)

    def test_write_releases_lock(self, cache, clock, backend):
        """Test a write clears the lock taken by a stale read."""
        cache.write("key", "old", expire_in=10)
        clock.advance(11)
        cache.read("key")
        assert backend.exists("key_lock")

        assert cache.write("key", "new", expire_in=10)
        assert not backend.exists("key_lock")
        assert cache.read("key") == "new"

    def test_write_releases_any_lock(self, cache, backend):
        """Test release is unconditional, not owner-checked."""
        backend.set_if_absent_with_expiry("key_lock", "someone-else", 60)

        cache.write("key", "value")
        assert not backend.exists("key_lock")

    def test_failed_store_still_releases_lock(self, cache, backend):
        """Test a rejected store reports False but unlocks."""
        backend.set_if_absent_with_expiry("key_lock", 1, 60)

        assert not cache.write("key", "value", expire_in=0)
        assert not backend.exists("key_lock")
        assert cache.get_stats().write_failures == 1

    def test_unencodable_value(self, cache):
        """Test a value the codec cannot represent fails the write."""
        assert not cache.write("key", lambda: None)
        assert cache.read("key") is None

    def test_entry_records_creation_time(self, cache, backend, clock):
        """Test the stored entry carries the write time."""
        cache.write("key", "value")

        entry = cache.codec.decode(backend.get("key"))
        assert entry.creation_time == int(clock())


class TestTags:
    """Tests for tag stamping and invalidation."""

    def test_write_with_tags(self, cache, backend, clock):
        """Test tags are stamped in the registry and in the entry."""
        now = int(clock())
        cache.write("key", "value", tags=["tagone", "tagtwo"], expire_in=10)

        assert backend.get("tagone_tag") == str(now).encode()
        assert backend.get("tagtwo_tag") == str(now).encode()
        entry = cache.codec.decode(backend.get("key"))
        assert entry.tags == {"tagone": now, "tagtwo": now}
        assert list(entry.tags) == ["tagone", "tagtwo"]

    def test_valid_tags_return_value(self, cache):
        """Test an untouched tag snapshot reads as fresh."""
        cache.write("key", "value", tags=["a", "b"])
        assert cache.read("key") == "value"

    def test_invalidate_tags(self, cache, clock):
        """Test bumping a tag invalidates entries written with it."""
        cache.write("key", "value", tags=["a", "b"])
        cache.write("other", "kept", tags=["b"])

        clock.advance(1)
        cache.invalidate_tags(["a"])

        assert cache.read("key") is None
        assert cache.read("key") == "value"
        assert cache.read("other") == "kept"

    def test_invalidate_returns_snapshot(self, cache, clock):
        """Test invalidate_tags returns the new stamps in order."""
        now = int(clock())
        assert cache.invalidate_tags(["tag_1", "tag_2"]) == {"tag_1": now, "tag_2": now}
        assert cache.invalidate_tags("tag_1") == {"tag_1": now}
        assert cache.get_stats().invalidations == 3

    def test_tags_invalid_empty(self, cache):
        """Test an empty snapshot is always valid."""
        assert not cache.tags_invalid({})

    def test_tags_invalid_missing_registry(self, cache, clock):
        """Test a registry entry that vanished reads as 0."""
        assert cache.tags_invalid({"gone": int(clock())})
        assert not cache.tags_invalid({"gone": 0})

    def test_tags_invalid_partial(self, cache, backend):
        """Test one mismatching tag is enough."""
        backend.set("tag_1_tag", 100)
        backend.set("tag_2_tag", 100)

        assert not cache.tags_invalid({"tag_1": 100, "tag_2": 100})
        assert cache.tags_invalid({"tag_1": 100, "tag_2": 99})

    def test_judge(self, cache, clock):
        """Test the verdicts for fresh, smelled and invalidated entries."""
        now = int(clock())
        cache.bump_tags(["a"])

        assert cache.judge(Entry(creation_time=now, lifetime=10)) is EntryState.FRESH
        assert cache.judge(Entry(creation_time=now - 11, lifetime=10)) is EntryState.SMELLED
        assert cache.judge(
            Entry(creation_time=now, lifetime=10, tags={"a": now - 5})
        ) is EntryState.TAGS_INVALID


class TestFetch:
    """Tests for fetch."""

    def test_returns_cached(self, cache):
        """Test a hit never calls compute."""
        cache.write("key", 42)
        compute = MagicMock(return_value=0)

        assert cache.fetch("key", compute) == 42
        compute.assert_not_called()

    def test_computes_on_miss(self, cache, backend):
        """Test a miss computes, stores and unlocks."""
        calls = [0]

        def compute():
            calls[0] += 1
            return "computed"

        assert cache.fetch("key", compute) == "computed"
        assert cache.fetch("key", compute) == "computed"
        assert calls[0] == 1
        assert backend.ttl("key") == DEFAULT_LIFETIME * 2
        assert not backend.exists("key_lock")

    def test_passes_options(self, cache, backend, clock):
        """Test expire_in and tags apply to the computed entry."""
        cache.fetch("key", lambda: "v", expire_in=10, tags=["t"])

        entry = cache.codec.decode(backend.get("key"))
        assert entry.lifetime == 10
        assert entry.tags == {"t": int(clock())}
        assert backend.ttl("key") == 20

    def test_no_compute(self, cache):
        """Test a miss without compute yields None."""
        assert cache.fetch("key") is None

    def test_stored_none_is_a_hit(self, cache):
        """Test a cached None is returned without recomputing."""
        cache.write("key", None)
        compute = MagicMock(return_value="computed")

        assert cache.fetch("key", compute) is None
        compute.assert_not_called()

    def test_replaces_stale_entry(self, cache, clock, backend):
        """Test the refresh winner recomputes and others see the old value."""
        cache.write("key", "old", expire_in=10)
        clock.advance(11)

        assert cache.fetch("key", lambda: "new", expire_in=10) == "new"
        assert not backend.exists("key_lock")
        assert cache.read("key") == "new"

    def test_stale_loser_does_not_compute(self, cache, clock):
        """Test a caller that loses the lock race gets the stale value."""
        cache.write("key", "old", expire_in=10)
        clock.advance(11)
        cache.read("key")  # takes the lock
        compute = MagicMock(return_value="new")

        assert cache.fetch("key", compute) == "old"
        compute.assert_not_called()


class TestDelete:
    """Tests for delete."""

    def test_delete(self, cache):
        """Test deleting an id."""
        cache.write("key", "value")

        assert cache.delete("key") == 1
        assert cache.read("key") is None

    def test_delete_missing(self, cache):
        """Test deleting an absent id is harmless."""
        assert cache.delete("missing") == 0

    def test_delete_leaves_lock(self, cache, backend):
        """Test delete does not touch the stampede lock."""
        cache.write("key", "value")
        backend.set_if_absent_with_expiry("key_lock", 1, 60)

        cache.delete("key")
        assert backend.exists("key_lock")


class TestBackendProtocol:
    """Tests asserting the exact backend calls."""

    @pytest.fixture
    def mock_backend(self):
        backend = MagicMock(spec=Backend)
        backend.set_with_expiry.return_value = True
        backend.delete.return_value = 1
        return backend

    def test_scenario(self, mock_backend, clock):
        """Test write, fresh read, stale winner and stale loser for id 42."""
        store = CacheStore(mock_backend, clock=clock)

        assert store.write(42, "x", expire_in=10)
        mock_backend.set_with_expiry.assert_called_once_with("42", ANY, 20)
        mock_backend.delete.assert_called_once_with("42_lock")

        data = mock_backend.set_with_expiry.call_args[0][1]
        entry = store.codec.decode(data)
        assert entry.lifetime == 10
        assert entry.creation_time == int(clock())

        mock_backend.get.return_value = data
        assert store.read(42) == "x"
        mock_backend.set_if_absent_with_expiry.assert_not_called()

        clock.advance(11)
        mock_backend.set_if_absent_with_expiry.return_value = True
        assert store.read(42) is None
        mock_backend.set_if_absent_with_expiry.assert_called_with("42_lock", int(clock()), 10)

        mock_backend.set_if_absent_with_expiry.return_value = False
        assert store.read(42) == "x"

    def test_write_reports_backend_failure(self, mock_backend, clock):
        """Test write returns the backend acknowledgement."""
        mock_backend.set_with_expiry.return_value = False
        store = CacheStore(mock_backend, clock=clock)

        assert store.write("key", "value") is False
        mock_backend.delete.assert_called_once_with("key_lock")

    def test_tag_check_uses_multi_get(self, mock_backend, clock):
        """Test tag snapshots are compared positionally against mget."""
        store = CacheStore(mock_backend, clock=clock)
        mock_backend.multi_get.return_value = [b"5", None]

        assert store.tags_invalid({"tag_1": 5, "tag_2": 5})
        mock_backend.multi_get.assert_called_once_with(["tag_1_tag", "tag_2_tag"])

    def test_delete_passes_through(self, mock_backend, clock):
        """Test delete returns the backend count."""
        store = CacheStore(mock_backend, clock=clock)

        assert store.delete(7) == 1
        mock_backend.delete.assert_called_once_with("7")


class TestCacheStats:
    """Tests for cache statistics."""

    def test_hit_rate(self, cache):
        """Test hit rate calculation."""
        cache.write("key", "value")
        cache.read("key")  # hit
        cache.read("key")  # hit
        cache.read("missing")  # miss

        stats = cache.get_stats()
        assert stats.hits == 2
        assert stats.misses == 1
        assert stats.hit_rate == pytest.approx(2 / 3, rel=0.01)

    def test_reset_stats(self, cache):
        """Test stats reset."""
        cache.write("key", "value")
        cache.read("key")

        cache.reset_stats()
        stats = cache.get_stats()

        assert stats.hits == 0
        assert stats.writes == 0
        assert stats.to_dict()["hit_rate"] == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
