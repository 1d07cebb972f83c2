"""Keyed locking for the cache engine."""

from filecache_infra.sync.keyed_mutex import LocalKeyedMutex, LocalLock
from filecache_infra.sync.lock_coordinator import LockCoordinator

__all__ = [
    "LocalKeyedMutex",
    "LocalLock",
    "LockCoordinator",
]
