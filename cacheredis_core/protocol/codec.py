"""CacheRedis Codec - Entry Encoding.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import json
import logging
import pickle
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from cacheredis_core.cache.entry import Entry

logger = logging.getLogger(__name__)


class CodecError(ValueError):
    """Raised when an entry cannot be encoded or decoded."""


class EntryCodec(ABC):
    """Abstract codec turning entries into bytes and back.

    Implementations only choose the wire format. The entry schema itself
    comes from Entry.to_dict / Entry.from_dict, so every codec round-trips
    value, creation time, lifetime and ordered tags.
    """

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Get format name."""
        pass

    @abstractmethod
    def dumps(self, data: Dict[str, Any]) -> bytes:
        """Serialize a plain dictionary to bytes."""
        pass

    @abstractmethod
    def loads(self, data: bytes) -> Any:
        """Deserialize bytes to a plain object."""
        pass

    def encode(self, entry: Entry) -> bytes:
        """Encode entry to bytes.

        Args:
            entry: Entry to encode

        Returns:
            Encoded bytes

        Raises:
            CodecError: If the value cannot be represented
        """
        try:
            return self.dumps(entry.to_dict())
        except ImportError:
            raise
        except Exception as e:
            raise CodecError(f"{self.format_name} encode failed: {e}") from e

    def decode(self, data: bytes) -> Entry:
        """Decode bytes to entry.

        Args:
            data: Encoded bytes

        Returns:
            Entry instance

        Raises:
            CodecError: If the bytes are not a well-formed entry
        """
        try:
            return Entry.from_dict(self.loads(data))
        except ImportError:
            raise
        except Exception as e:
            raise CodecError(f"{self.format_name} decode failed: {e}") from e


class MsgPackCodec(EntryCodec):
    """MessagePack codec.

    Compact binary format. Tuples come back as lists and only msgpack
    native types are supported.
    Requires msgpack package.
    """

    @property
    def format_name(self) -> str:
        return "msgpack"

    def dumps(self, data: Dict[str, Any]) -> bytes:
        try:
            import msgpack
        except ImportError:
            raise ImportError("msgpack package not installed. Run: pip install msgpack")
        return msgpack.packb(data, use_bin_type=True)

    def loads(self, data: bytes) -> Any:
        try:
            import msgpack
        except ImportError:
            raise ImportError("msgpack package not installed. Run: pip install msgpack")
        return msgpack.unpackb(data, raw=False, strict_map_key=False)


class JSONCodec(EntryCodec):
    """JSON codec.

    Human-readable and interoperable; limited to JSON-compatible values.
    """

    @property
    def format_name(self) -> str:
        return "json"

    def dumps(self, data: Dict[str, Any]) -> bytes:
        return json.dumps(data, separators=(",", ":")).encode("utf-8")

    def loads(self, data: bytes) -> Any:
        return json.loads(data.decode("utf-8"))


class PickleCodec(EntryCodec):
    """Pickle codec.

    The default: supports any picklable value and keeps its type.
    Not safe for untrusted data.
    """

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL):
        """Initialize pickle codec.

        Args:
            protocol: Pickle protocol version
        """
        self.protocol = protocol

    @property
    def format_name(self) -> str:
        return "pickle"

    def dumps(self, data: Dict[str, Any]) -> bytes:
        return pickle.dumps(data, protocol=self.protocol)

    def loads(self, data: bytes) -> Any:
        return pickle.loads(data)


class CodecRegistry:
    """Registry of codecs."""

    def __init__(self):
        self._codecs: dict[str, EntryCodec] = {}
        self._default: str = "pickle"

        self.register(MsgPackCodec())
        self.register(JSONCodec())
        self.register(PickleCodec())

    def register(self, codec: EntryCodec) -> None:
        """Register a codec.

        Args:
            codec: Codec to register
        """
        self._codecs[codec.format_name] = codec

    def get(self, format_name: str) -> EntryCodec:
        """Get codec by format.

        Args:
            format_name: Format name

        Returns:
            Codec instance

        Raises:
            KeyError: If format not found
        """
        if format_name not in self._codecs:
            raise KeyError(f"Unknown codec format: {format_name}")
        return self._codecs[format_name]

    def get_default(self) -> EntryCodec:
        """Get default codec."""
        return self._codecs[self._default]


# Global registry
_registry = CodecRegistry()


def get_codec(format_name: Optional[str] = None) -> EntryCodec:
    """Get codec by format.

    Args:
        format_name: Format name or None for default

    Returns:
        Codec instance
    """
    if format_name is None:
        return _registry.get_default()
    return _registry.get(format_name)


__all__ = [
    "EntryCodec",
    "CodecError",
    "MsgPackCodec",
    "JSONCodec",
    "PickleCodec",
    "CodecRegistry",
    "get_codec",
]
