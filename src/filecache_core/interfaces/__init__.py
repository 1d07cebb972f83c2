"""Public interface re-exports for filecache_core."""

from filecache_core.interfaces.cache import CacheClient
from filecache_core.interfaces.filesystem import FileHandle, Filesystem
from filecache_core.interfaces.mutex import KeyedMutex, Lock

__all__ = [
    "CacheClient",
    "FileHandle",
    "Filesystem",
    "KeyedMutex",
    "Lock",
]
