"""Binary record header encoding and decoding.

Layout of every record file::

    [signature]       optional fixed magic bytes
    [expiry tag]      1 byte, see ExpiryTag
    [expiry value]    0/1/2/4/8 bytes, little-endian absolute expiry (ms)
    [payload kind]    1 byte, see PayloadKind
    [payload]         raw bytes until end of file

The same ``decode_header`` serves live reads and the background sweep, so the
two can never disagree about what a valid record is.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import TypeVar

from filecache_core.constants import DEFAULT_SIGNATURE, MILLISECONDS_PER_SECOND
from filecache_core.exceptions import CorruptRecordError, InvalidTTLError


class ExpiryTag(IntEnum):
    """Width of the stored expiry timestamp."""

    NONE = 0
    UINT8 = 1
    UINT16 = 2
    UINT32 = 3
    UINT64 = 4


class PayloadKind(IntEnum):
    """How the payload was written and must be read back."""

    INLINE = 0
    STREAMED = 1


# Narrowest first; encode picks the first format whose range fits.
_EXPIRY_FORMATS: dict[ExpiryTag, struct.Struct] = {
    ExpiryTag.UINT8: struct.Struct("<B"),
    ExpiryTag.UINT16: struct.Struct("<H"),
    ExpiryTag.UINT32: struct.Struct("<I"),
    ExpiryTag.UINT64: struct.Struct("<Q"),
}

_TAG_SIZE = 1
_KIND_SIZE = 1
_MAX_EXPIRY_SIZE = _EXPIRY_FORMATS[ExpiryTag.UINT64].size
_MAX_EXPIRE_AT = 2 ** (8 * _MAX_EXPIRY_SIZE) - 1

# Longest TTL whose expiry can still be stored when written at the epoch.
MAX_TTL_SECONDS = _MAX_EXPIRE_AT // MILLISECONDS_PER_SECOND

_E = TypeVar("_E", bound=IntEnum)


@dataclass(frozen=True)
class RecordHeader:
    """Decoded header of a record file."""

    expire_at: int | None
    payload_kind: PayloadKind
    size: int

    def is_expired(self, now: int) -> bool:
        """A record expires at its timestamp, so a zero TTL is never a hit."""
        return self.expire_at is not None and now >= self.expire_at


def validate_ttl(ttl_seconds: object) -> None:
    """Reject anything but None or an int between 0 and MAX_TTL_SECONDS."""
    if ttl_seconds is None:
        return
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int):
        msg = f"Invalid cache TTL ({ttl_seconds!r}); integer >= 0 or None required"
        raise InvalidTTLError(msg)
    if ttl_seconds < 0:
        msg = f"Invalid cache TTL ({ttl_seconds}); integer >= 0 or None required"
        raise InvalidTTLError(msg)
    if ttl_seconds > MAX_TTL_SECONDS:
        msg = f"Invalid cache TTL ({ttl_seconds}); at most {MAX_TTL_SECONDS} seconds"
        raise InvalidTTLError(msg)


class RecordCodec:
    """Encodes and decodes record headers for one signature."""

    def __init__(self, signature: bytes | None = DEFAULT_SIGNATURE) -> None:
        """Initialize with the magic prefix; None or b"" disables it."""
        self._signature = bytes(signature or b"")

    @property
    def signature(self) -> bytes:
        """Magic prefix of every record."""
        return self._signature

    @property
    def max_header_size(self) -> int:
        """Bytes a reader must fetch to decode any header."""
        return len(self._signature) + _TAG_SIZE + _MAX_EXPIRY_SIZE + _KIND_SIZE

    def encode_header(
        self,
        ttl_seconds: int | None,
        now: int,
        payload_kind: PayloadKind = PayloadKind.INLINE,
    ) -> bytes:
        """Build the header for a record written at ``now`` (epoch ms)."""
        validate_ttl(ttl_seconds)
        if ttl_seconds is None:
            expiry = bytes([ExpiryTag.NONE])
        else:
            expire_at = now + ttl_seconds * MILLISECONDS_PER_SECOND
            expiry = _encode_expiry(expire_at)
        return self._signature + expiry + bytes([payload_kind])

    def decode_header(self, buffer: bytes) -> RecordHeader:
        """Parse a header from the first bytes of a record file.

        Raises:
            CorruptRecordError: on signature mismatch, a missing or unknown
                tag, or a truncated expiry value.
        """
        if not buffer:
            msg = "Invalid cache file (empty)"
            raise CorruptRecordError(msg)

        offset = len(self._signature)
        if offset and buffer[:offset] != self._signature:
            msg = "Invalid cache file (signature mismatch)"
            raise CorruptRecordError(msg)

        if len(buffer) < offset + _TAG_SIZE:
            msg = "Invalid cache file (expiry tag missing)"
            raise CorruptRecordError(msg)
        tag = _parse_enum(ExpiryTag, buffer[offset], "expiry tag")
        offset += _TAG_SIZE

        expire_at: int | None = None
        if tag is not ExpiryTag.NONE:
            fmt = _EXPIRY_FORMATS[tag]
            if len(buffer) < offset + fmt.size:
                msg = f"Invalid cache file (expiry value truncated, tag {tag.name})"
                raise CorruptRecordError(msg)
            (expire_at,) = fmt.unpack_from(buffer, offset)
            offset += fmt.size

        if len(buffer) < offset + _KIND_SIZE:
            msg = "Invalid cache file (payload kind missing)"
            raise CorruptRecordError(msg)
        kind = _parse_enum(PayloadKind, buffer[offset], "payload kind")
        offset += _KIND_SIZE

        return RecordHeader(expire_at=expire_at, payload_kind=kind, size=offset)


def _encode_expiry(expire_at: int) -> bytes:
    """Tag plus value in the narrowest unsigned width that holds expire_at."""
    if expire_at > _MAX_EXPIRE_AT:
        msg = f"Cache expiry {expire_at} does not fit in 64 bits"
        raise InvalidTTLError(msg)
    tag = next(tag for tag, fmt in _EXPIRY_FORMATS.items() if expire_at < 2 ** (8 * fmt.size))
    return bytes([tag]) + _EXPIRY_FORMATS[tag].pack(expire_at)


def _parse_enum(enum_cls: type[_E], value: int, what: str) -> _E:
    """Map a raw byte onto an enum member or fail the record."""
    try:
        return enum_cls(value)
    except ValueError as e:
        msg = f"Invalid cache file (unknown {what} {value})"
        raise CorruptRecordError(msg) from e
