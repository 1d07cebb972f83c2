"""Key to filename mapping."""

from __future__ import annotations

import hashlib
import re
import secrets

from filecache_core.constants import (
    CACHE_FILENAME_LENGTH,
    FILENAME_SUFFIX,
    HASH_HEX_LENGTH,
    TEMP_SUFFIX,
    TEMP_TOKEN_BYTES,
)

_TEMP_PATTERN = re.compile(
    rf"^[0-9a-f]{{{HASH_HEX_LENGTH}}}{re.escape(FILENAME_SUFFIX)}"
    rf"\.[0-9a-f]{{{TEMP_TOKEN_BYTES * 2}}}{re.escape(TEMP_SUFFIX)}$"
)


def filename_for(key: str) -> str:
    """Return the record filename for a cache key; lone surrogates are hashed as-is."""
    digest = hashlib.sha256(key.encode("utf-8", "surrogatepass")).hexdigest()
    return digest + FILENAME_SUFFIX


def is_cache_filename(name: str) -> bool:
    """Check whether a directory entry looks like a record file."""
    return len(name) == CACHE_FILENAME_LENGTH and name.endswith(FILENAME_SUFFIX)


def temp_filename_for(filename: str) -> str:
    """Return a fresh name for an in-progress write of filename."""
    return f"{filename}.{secrets.token_hex(TEMP_TOKEN_BYTES)}{TEMP_SUFFIX}"


def is_temp_filename(name: str) -> bool:
    """Check whether a directory entry is an in-progress write."""
    return _TEMP_PATTERN.match(name) is not None


def record_filename_of(temp_name: str) -> str:
    """Return the record filename a temp file was going to replace."""
    return temp_name[:CACHE_FILENAME_LENGTH]
