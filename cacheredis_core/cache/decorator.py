"""CacheRedis Decorators - Caching Function Results.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import functools
import hashlib
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, TypeVar

if TYPE_CHECKING:
    from cacheredis_core.cache.cache import CacheStore

F = TypeVar("F", bound=Callable[..., Any])

# Longer ids are hashed
MAX_KEY_LENGTH = 250


def _make_key(
    func: Callable,
    args: tuple,
    kwargs: dict,
    key_prefix: Optional[str] = None,
    key_builder: Optional[Callable[..., str]] = None,
) -> str:
    """Build entry id from function call.

    Args:
        func: Function being cached
        args: Positional arguments
        kwargs: Keyword arguments
        key_prefix: Optional prefix
        key_builder: Custom key builder

    Returns:
        Entry id
    """
    if key_builder:
        return key_builder(*args, **kwargs)

    parts = [key_prefix or func.__module__, func.__qualname__]
    parts.extend(str(arg) for arg in args)
    # Sorted for consistency
    parts.extend(f"{k}={kwargs[k]}" for k in sorted(kwargs))

    key = ":".join(parts)

    if len(key) > MAX_KEY_LENGTH:
        key = hashlib.sha256(key.encode()).hexdigest()

    return key


def cached(
    store: "CacheStore",
    expire_in: Optional[int] = None,
    tags: Optional[Iterable[str]] = None,
    key_builder: Optional[Callable[..., str]] = None,
    key_prefix: Optional[str] = None,
) -> Callable[[F], F]:
    """Decorator caching function results in a CacheStore.

    Results are obtained through store.fetch, so a stale result is
    recomputed by one caller while concurrent callers get the old one.

    Args:
        store: Cache store
        expire_in: Lifetime in seconds
        tags: Tag names for every cached result
        key_builder: Custom key builder
        key_prefix: Key prefix

    Returns:
        Decorated function

    Example:
        @cached(store, expire_in=300, tags=["users"])
        def get_user(user_id: int) -> dict:
            return db.get_user(user_id)

        @cached(store, key_builder=lambda id: f"user:{id}")
        def get_user_v2(user_id: int) -> dict:
            return db.get_user(user_id)
    """
    tag_names = list(tags) if tags is not None else None

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = _make_key(
                func, args, kwargs,
                key_prefix=key_prefix,
                key_builder=key_builder,
            )
            return store.fetch(
                cache_key,
                lambda: func(*args, **kwargs),
                expire_in=expire_in,
                tags=tag_names,
            )

        def cache_key(*args, **kwargs) -> str:
            """Get entry id for arguments."""
            return _make_key(
                func, args, kwargs,
                key_prefix=key_prefix,
                key_builder=key_builder,
            )

        def invalidate(*args, **kwargs) -> int:
            """Delete the cached result for arguments."""
            return store.delete(cache_key(*args, **kwargs))

        wrapper.cache_key = cache_key
        wrapper.invalidate = invalidate
        wrapper.__wrapped__ = func

        return wrapper  # type: ignore

    return decorator


__all__ = ["cached"]
