"""Periodic background sweep of the cache directory."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from filecache_infra.codec.key_codec import is_cache_filename, is_temp_filename

if TYPE_CHECKING:
    from filecache_infra.cache.file_cache import FileCache

logger = structlog.get_logger()


@dataclass
class SweepReport:
    """Outcome of one sweep."""

    scanned: int = 0
    evicted: int = 0
    failed: int = 0
    temp_removed: int = 0


class Sweeper:
    """Evicts expired and corrupt records independently of live reads.

    Each candidate is checked with the same validate-and-evict routine as
    ``FileCache.get``, under the same per-filename lock. Errors never
    escape a sweep: one bad file is logged and skipped, and a missing
    directory simply yields an empty report.
    """

    def __init__(self, cache: FileCache, interval_seconds: float) -> None:
        """Initialize for a cache, sweeping every interval_seconds once started."""
        self._cache = cache
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Whether the periodic task is scheduled."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule a sweep now and then every interval on the running loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"filecache-sweeper:{self._cache.directory}"
        )

    async def stop(self) -> None:
        """Cancel the periodic task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def sweep_once(self) -> SweepReport:
        """Scan the directory once and evict every invalid record."""
        report = SweepReport()
        directory = self._cache.directory
        try:
            names = await self._cache.filesystem.list_dir(directory)
        except OSError as e:
            logger.debug("cache_sweep_skipped", directory=str(directory), error=str(e))
            return report

        for name in names:
            if is_cache_filename(name):
                report.scanned += 1
                try:
                    if not await self._cache.validate_file(name):
                        report.evicted += 1
                except Exception as e:
                    report.failed += 1
                    logger.warning("cache_sweep_file_failed", filename=name, error=str(e))
            elif is_temp_filename(name):
                try:
                    if await self._cache.discard_stale_temp(name):
                        report.temp_removed += 1
                except Exception as e:
                    report.failed += 1
                    logger.warning("cache_sweep_file_failed", filename=name, error=str(e))

        logger.info(
            "cache_sweep_complete",
            directory=str(directory),
            scanned=report.scanned,
            evicted=report.evicted,
            failed=report.failed,
            temp_removed=report.temp_removed,
        )
        return report

    async def _run(self) -> None:
        while True:
            try:
                await self.sweep_once()
            except Exception as e:
                logger.error("cache_sweep_failed", error=str(e))
            await asyncio.sleep(self._interval)
