"""Per-filename locking for cache operations."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

from filecache_core.interfaces.mutex import KeyedMutex, Lock
from filecache_infra.sync.keyed_mutex import LocalKeyedMutex

T = TypeVar("T")


class LockCoordinator:
    """Guarantees at most one in-flight operation per record filename.

    Locks are never nested and never span more than one file.
    """

    def __init__(self, mutex: KeyedMutex | None = None) -> None:
        """Initialize with a keyed mutex, defaulting to an in-process one."""
        self._mutex: KeyedMutex = mutex if mutex is not None else LocalKeyedMutex()

    @property
    def mutex(self) -> KeyedMutex:
        """Underlying keyed mutex."""
        return self._mutex

    async def acquire(self, filename: str) -> Lock:
        """Take the lock for filename; the caller owns its release.

        Used when ownership moves into a long-lived handle such as a
        CacheStream.
        """
        return await self._mutex.acquire(filename)

    @asynccontextmanager
    async def locked(self, filename: str) -> AsyncIterator[None]:
        """Hold the lock for filename for the duration of the block."""
        lock = await self._mutex.acquire(filename)
        try:
            yield
        finally:
            lock.release()

    async def run_locked(self, filename: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Run operation while holding the lock for filename."""
        async with self.locked(filename):
            return await operation()
