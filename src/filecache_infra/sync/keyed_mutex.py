"""In-process keyed mutex built on asyncio.Lock."""

from __future__ import annotations

import asyncio


class LocalLock:
    """A held lock from LocalKeyedMutex. Releasing twice is a no-op."""

    def __init__(self, mutex: LocalKeyedMutex, key: str) -> None:
        """Initialize with the owning mutex and key."""
        self._mutex = mutex
        self._key = key
        self._released = False

    @property
    def key(self) -> str:
        """Key this lock guards."""
        return self._key

    @property
    def released(self) -> bool:
        """Whether release() has been called."""
        return self._released

    def release(self) -> None:
        """Release the lock and wake the next waiter."""
        if self._released:
            return
        self._released = True
        self._mutex._release(self._key)


class LocalKeyedMutex:
    """Per-key mutual exclusion within a single event loop.

    Entries are dropped once no task holds or waits for a key, so the
    table stays proportional to the number of keys currently in use.
    """

    def __init__(self) -> None:
        """Initialize with an empty lock table."""
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    async def acquire(self, key: str) -> LocalLock:
        """Wait for the lock on key and take it."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._forget(key)
            raise
        return LocalLock(self, key)

    def is_locked(self, key: str) -> bool:
        """Check whether some task currently holds key."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        """Number of keys held or waited on."""
        return len(self._locks)

    def _release(self, key: str) -> None:
        self._locks[key].release()
        self._forget(key)

    def _forget(self, key: str) -> None:
        remaining = self._users[key] - 1
        if remaining:
            self._users[key] = remaining
        else:
            del self._users[key]
            del self._locks[key]
