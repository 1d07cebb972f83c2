"""Abstract non-blocking filesystem used by the cache engine.

Every method may raise ``OSError``. Implementations must not block the
event loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pathlib import Path


@runtime_checkable
class FileHandle(Protocol):
    """An open file."""

    async def read(self, size: int) -> bytes:
        """Read up to size bytes; b"" at end of file."""
        ...

    async def seek(self, offset: int) -> None:
        """Move to an absolute offset."""
        ...

    async def write(self, data: bytes) -> None:
        """Write all of data."""
        ...

    async def close(self) -> None:
        """Flush and close the file."""
        ...


@runtime_checkable
class Filesystem(Protocol):
    """Filesystem primitives the cache needs."""

    async def is_dir(self, path: Path) -> bool:
        """Return whether path is an existing directory."""
        ...

    async def make_dirs(self, path: Path, mode: int) -> None:
        """Create path and any missing parents."""
        ...

    async def list_dir(self, path: Path) -> list[str]:
        """Return the entry names directly under path."""
        ...

    async def open_read(self, path: Path) -> FileHandle:
        """Open an existing file for reading; FileNotFoundError if absent."""
        ...

    async def open_write(self, path: Path) -> FileHandle:
        """Create a new file for writing; FileExistsError if present."""
        ...

    async def rename(self, source: Path, target: Path) -> None:
        """Atomically replace target with source."""
        ...

    async def delete(self, path: Path) -> bool:
        """Remove a file; return False if it was already absent."""
        ...

    async def mtime(self, path: Path) -> float:
        """Return the modification time in seconds since the epoch."""
        ...
