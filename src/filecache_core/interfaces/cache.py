"""Abstract cache interface."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheClient(Protocol):
    """Byte-oriented cache interface with per-entry TTL."""

    async def get(self, key: str) -> Any:
        """Retrieve a value by key, or None if not found."""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store a value with optional TTL."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete a key; return whether anything was removed."""
        ...

    async def exists(self, key: str) -> bool:
        """Check if a key exists in the cache."""
        ...
