"""Custom exception hierarchy for filecache."""

from __future__ import annotations


class CacheError(Exception):
    """Base exception for all filecache errors."""


class InvalidTTLError(CacheError, ValueError):
    """Raised when a TTL is negative, not an integer, or too large to store."""


class UnsupportedValueError(CacheError, TypeError):
    """Raised when a value passed to set() is neither bytes nor a chunk source."""


class CorruptRecordError(CacheError):
    """Raised when a cache file header cannot be decoded."""


class CacheWriteError(CacheError):
    """Raised when a cache record cannot be written to disk."""


class CacheDeleteError(CacheError):
    """Raised when a cache record exists but cannot be removed."""
