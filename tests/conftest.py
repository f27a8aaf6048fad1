"""Shared fixtures.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import pytest

from cacheredis_core.cache.cache import CacheConfig, CacheStore
from cacheredis_core.store.memory import MemoryBackend


class FakeClock:
    """Controllable time source shared by a store and its backend."""

    def __init__(self, now: float = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend(clock):
    return MemoryBackend(clock=clock)


@pytest.fixture
def cache(backend, clock):
    return CacheStore(backend, CacheConfig(), clock=clock)
