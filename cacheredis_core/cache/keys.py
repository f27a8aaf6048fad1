"""CacheRedis Keys - Cache Key Schema.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

Key format, all in the same namespace as the entries themselves:
- entry: "<id>"
- stampede lock: "<id>_lock"
- tag registry: "<tag>_tag"

These names are shared with data already written by other clients, so
they must not change.
"""

from __future__ import annotations

from typing import Any


class CacheKeys:
    """Derived key naming for entries, locks and tags."""

    LOCK_SUFFIX = "_lock"
    TAG_SUFFIX = "_tag"

    @classmethod
    def entry_key(cls, id: Any) -> str:
        """Key holding the encoded entry."""
        return str(id)

    @classmethod
    def lock_key(cls, id: Any) -> str:
        """Key whose presence means a refresh of ``id`` is in flight."""
        return f"{id}{cls.LOCK_SUFFIX}"

    @classmethod
    def tag_key(cls, name: str) -> str:
        """Key holding a tag's valid-as-of timestamp."""
        return f"{name}{cls.TAG_SUFFIX}"


__all__ = ["CacheKeys"]
