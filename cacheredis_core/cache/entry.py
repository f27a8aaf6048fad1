"""CacheRedis Entry - Versioned Cache Payload with Staleness Metadata.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

DEFAULT_LIFETIME = 300

# Bumped when the persisted layout changes incompatibly
FORMAT_VERSION = 1


def _now() -> int:
    return int(time.time())


class EntryState(Enum):
    """Verdict reached when judging a stored entry."""

    FRESH = auto()          # Within lifetime, tags intact
    SMELLED = auto()        # Past its lifetime
    TAGS_INVALID = auto()   # A tag was bumped after the entry was written


@dataclass(frozen=True)
class Entry:
    """A cached value plus what is needed to judge it stale.

    The entry never changes after construction. Tags hold the registry
    timestamps observed at write time and are compared against the
    current registry on every read.

    Attributes:
        value: Cached payload
        creation_time: Unix timestamp (seconds) of construction
        lifetime: Freshness window in seconds
        tags: Tag name -> valid-as-of timestamp, in insertion order
    """

    value: Any = None
    creation_time: int = field(default_factory=_now)
    lifetime: int = DEFAULT_LIFETIME
    tags: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        # Read-only copy of the write-time snapshot
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    @property
    def expires_at(self) -> int:
        """Get the logical expiry timestamp."""
        return self.creation_time + self.lifetime

    def smelled(self, now: Optional[float] = None) -> bool:
        """Check whether the entry is past its lifetime.

        Args:
            now: Current timestamp, defaults to wall clock

        Returns:
            True if stale
        """
        if now is None:
            now = _now()
        return now > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain, codec-friendly dictionary.

        Tags become a list of pairs so their order survives formats
        that do not preserve mapping order.
        """
        return {
            "v": FORMAT_VERSION,
            "value": self.value,
            "creation_time": self.creation_time,
            "lifetime": self.lifetime,
            "tags": [[name, stamp] for name, stamp in self.tags.items()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entry":
        """Create from a dictionary produced by to_dict.

        Unknown keys are ignored.

        Args:
            data: Dictionary data

        Returns:
            Entry instance

        Raises:
            KeyError: Required field missing
            TypeError: Field has the wrong type
            ValueError: Unsupported format version
        """
        if not isinstance(data, dict):
            raise TypeError(f"expected dict, got {type(data).__name__}")

        version = data.get("v", FORMAT_VERSION)
        if version != FORMAT_VERSION:
            raise ValueError(f"unsupported entry format version: {version!r}")

        creation_time = data["creation_time"]
        lifetime = data["lifetime"]
        for name, number in (("creation_time", creation_time), ("lifetime", lifetime)):
            if isinstance(number, bool) or not isinstance(number, int):
                raise TypeError(f"{name} must be an int, got {type(number).__name__}")

        tags: Dict[str, int] = {}
        for pair in data.get("tags") or []:
            name, stamp = pair
            if not isinstance(name, str) or isinstance(stamp, bool) or not isinstance(stamp, int):
                raise TypeError(f"malformed tag pair: {pair!r}")
            tags[name] = stamp

        return cls(
            value=data["value"],
            creation_time=creation_time,
            lifetime=lifetime,
            tags=tags,
        )

    def __repr__(self) -> str:
        return (
            f"Entry(creation_time={self.creation_time}, lifetime={self.lifetime}, "
            f"tags={list(self.tags)})"
        )


__all__ = ["Entry", "EntryState", "DEFAULT_LIFETIME", "FORMAT_VERSION"]
