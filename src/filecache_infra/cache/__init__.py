"""Filesystem cache engine: store, streams, sweeper and key namespacing."""

from filecache_infra.cache.file_cache import FileCache, wall_clock_ms
from filecache_infra.cache.prefix_cache import PrefixCache
from filecache_infra.cache.stream import CacheStream
from filecache_infra.cache.sweeper import Sweeper, SweepReport

__all__ = [
    "CacheStream",
    "FileCache",
    "PrefixCache",
    "SweepReport",
    "Sweeper",
    "wall_clock_ms",
]
