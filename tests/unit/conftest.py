"""Shared pytest fixtures for unit tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from filecache_infra.cache.file_cache import FileCache
from tests.mocks.mock_filesystem import FakeClock, FaultyFilesystem


@pytest.fixture
def clock() -> FakeClock:
    """Return a fake clock pinned to a fixed instant."""
    return FakeClock()


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Return a cache directory path that does not exist yet."""
    return tmp_path / "cache"


@pytest.fixture
def faulty_fs() -> FaultyFilesystem:
    """Return a filesystem whose methods can be made to fail."""
    return FaultyFilesystem()


@pytest_asyncio.fixture
async def file_cache(cache_dir: Path, clock: FakeClock) -> AsyncGenerator[FileCache, None]:
    """Create a FileCache on a temp directory with the sweeper off."""
    cache = FileCache(cache_dir, clock=clock, start_sweeper=False)
    yield cache
    await cache.close()


@pytest_asyncio.fixture
async def faulty_cache(
    cache_dir: Path, clock: FakeClock, faulty_fs: FaultyFilesystem
) -> AsyncGenerator[FileCache, None]:
    """Create a FileCache whose filesystem can be made to fail."""
    cache = FileCache(cache_dir, clock=clock, filesystem=faulty_fs, start_sweeper=False)
    yield cache
    faulty_fs.failures.clear()
    await cache.close()
