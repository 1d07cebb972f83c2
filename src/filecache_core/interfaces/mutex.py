"""Abstract keyed mutex interface."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Lock(Protocol):
    """A held lock."""

    def release(self) -> None:
        """Release the lock."""
        ...


@runtime_checkable
class KeyedMutex(Protocol):
    """Mutual exclusion scoped to an arbitrary string key."""

    async def acquire(self, key: str) -> Lock:
        """Wait until the lock for key is free and take it."""
        ...
