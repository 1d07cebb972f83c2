"""Local-disk implementation of Filesystem.

Blocking calls run in the default thread pool via asyncio.to_thread so the
event loop is never stalled by disk I/O.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import BinaryIO

from filecache_core.constants import FILE_MODE


class LocalFileHandle:
    """An open local file."""

    def __init__(self, file: BinaryIO, *, durable: bool = False) -> None:
        """Wrap a binary file object; durable handles fsync on close."""
        self._file = file
        self._durable = durable

    async def read(self, size: int) -> bytes:
        """Read up to size bytes."""
        return await asyncio.to_thread(self._file.read, size)

    async def seek(self, offset: int) -> None:
        """Move to an absolute offset."""
        await asyncio.to_thread(self._file.seek, offset)

    async def write(self, data: bytes) -> None:
        """Write all of data."""
        await asyncio.to_thread(self._file.write, data)

    async def close(self) -> None:
        """Flush and close; a second call is a no-op."""
        if self._file.closed:
            return
        await asyncio.to_thread(self._close_sync)

    def _close_sync(self) -> None:
        try:
            if self._durable:
                self._file.flush()
                os.fsync(self._file.fileno())
        finally:
            self._file.close()


class LocalFilesystem:
    """Filesystem backed by the local disk."""

    async def is_dir(self, path: Path) -> bool:
        """Return whether path is an existing directory."""
        return await asyncio.to_thread(path.is_dir)

    async def make_dirs(self, path: Path, mode: int) -> None:
        """Create path and any missing parents with the given mode."""
        await asyncio.to_thread(path.mkdir, mode=mode, parents=True, exist_ok=True)

    async def list_dir(self, path: Path) -> list[str]:
        """Return the entry names directly under path."""
        return await asyncio.to_thread(os.listdir, path)

    async def open_read(self, path: Path) -> LocalFileHandle:
        """Open an existing file for reading."""
        file = await asyncio.to_thread(open, path, "rb")
        return LocalFileHandle(file)

    async def open_write(self, path: Path) -> LocalFileHandle:
        """Create a new owner-only file for writing."""
        file = await asyncio.to_thread(_create_exclusive, path)
        return LocalFileHandle(file, durable=True)

    async def rename(self, source: Path, target: Path) -> None:
        """Atomically replace target with source."""
        await asyncio.to_thread(os.replace, source, target)

    async def delete(self, path: Path) -> bool:
        """Remove a file; return False if it was already absent."""
        try:
            await asyncio.to_thread(os.unlink, path)
        except FileNotFoundError:
            return False
        return True

    async def mtime(self, path: Path) -> float:
        """Return the modification time of path."""
        result = await asyncio.to_thread(os.stat, path)
        return result.st_mtime


def _create_exclusive(path: Path) -> BinaryIO:
    """Open path for writing, failing if it exists."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, FILE_MODE)
    return os.fdopen(fd, "wb")
