"""Key-namespacing wrapper around any CacheClient."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from filecache_core.interfaces.cache import CacheClient


class PrefixCache:
    """Cache view that prepends a fixed prefix to every key."""

    def __init__(self, cache: CacheClient, prefix: str) -> None:
        """Initialize with the wrapped cache and the key prefix."""
        self._cache = cache
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        """Prefix applied to every key."""
        return self._prefix

    def _key(self, key: str) -> str:
        """Generate the namespaced key."""
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Any:
        """Retrieve a value by key."""
        return await self._cache.get(self._key(key))

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store a value with optional TTL."""
        await self._cache.set(self._key(key), value, ttl_seconds=ttl_seconds)

    async def delete(self, key: str) -> bool:
        """Delete a key from the cache."""
        return await self._cache.delete(self._key(key))

    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        return await self._cache.exists(self._key(key))
