"""Protocol module - Entry codecs."""

from cacheredis_core.protocol.codec import (
    EntryCodec,
    CodecError,
    MsgPackCodec,
    JSONCodec,
    PickleCodec,
    get_codec,
)

__all__ = [
    "EntryCodec",
    "CodecError",
    "MsgPackCodec",
    "JSONCodec",
    "PickleCodec",
    "get_codec",
]
