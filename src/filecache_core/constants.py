"""Shared constants for filecache."""

from __future__ import annotations

# Record files: sha256 hex digest + suffix
FILENAME_SUFFIX = ".cache"
HASH_HEX_LENGTH = 64
CACHE_FILENAME_LENGTH = HASH_HEX_LENGTH + len(FILENAME_SUFFIX)

# In-progress writes: <record filename>.<8 hex>.tmp
TEMP_SUFFIX = ".tmp"
TEMP_TOKEN_BYTES = 4

# Magic prefix written before every header; bump when the layout changes
DEFAULT_SIGNATURE = b"filecache-v1"

# Owner-only permissions for the cache directory and record files
DIRECTORY_MODE = 0o700
FILE_MODE = 0o600

DEFAULT_SWEEP_INTERVAL_SECONDS = 300.0
DEFAULT_READ_CHUNK_SIZE = 8192
DEFAULT_STALE_TEMP_SECONDS = 3600.0

MILLISECONDS_PER_SECOND = 1000
