"""Tests for LocalFilesystem."""

from __future__ import annotations

import stat
from pathlib import Path

import pytest

from filecache_infra.fs.local_filesystem import LocalFilesystem


@pytest.fixture
def fs() -> LocalFilesystem:
    """Return a LocalFilesystem."""
    return LocalFilesystem()


@pytest.mark.unit
class TestLocalFilesystem:
    """Test LocalFilesystem operations."""

    @pytest.mark.asyncio
    async def test_write_rename_read(self, fs: LocalFilesystem, tmp_path: Path) -> None:
        """A written temp file can be renamed into place and read back."""
        temp = tmp_path / "a.tmp"
        target = tmp_path / "a.cache"
        handle = await fs.open_write(temp)
        await handle.write(b"hello ")
        await handle.write(b"world")
        await handle.close()
        await fs.rename(temp, target)

        reader = await fs.open_read(target)
        await reader.seek(6)
        assert await reader.read(100) == b"world"
        assert await reader.read(100) == b""
        await reader.close()
        assert temp.exists() is False

    @pytest.mark.asyncio
    async def test_open_write_is_exclusive(self, fs: LocalFilesystem, tmp_path: Path) -> None:
        """An existing file is never reopened for writing."""
        path = tmp_path / "taken"
        path.write_bytes(b"x")
        with pytest.raises(FileExistsError):
            await fs.open_write(path)

    @pytest.mark.asyncio
    async def test_new_files_are_owner_only(self, fs: LocalFilesystem, tmp_path: Path) -> None:
        """Files are created with mode 0600."""
        handle = await fs.open_write(tmp_path / "private")
        await handle.close()
        assert stat.S_IMODE((tmp_path / "private").stat().st_mode) & 0o077 == 0

    @pytest.mark.asyncio
    async def test_close_twice(self, fs: LocalFilesystem, tmp_path: Path) -> None:
        """Closing an already closed handle is a no-op."""
        handle = await fs.open_write(tmp_path / "f")
        await handle.close()
        await handle.close()

    @pytest.mark.asyncio
    async def test_open_read_missing(self, fs: LocalFilesystem, tmp_path: Path) -> None:
        """Opening a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            await fs.open_read(tmp_path / "missing")

    @pytest.mark.asyncio
    async def test_delete(self, fs: LocalFilesystem, tmp_path: Path) -> None:
        """Delete reports whether a file was removed."""
        path = tmp_path / "f"
        path.write_bytes(b"x")
        assert await fs.delete(path) is True
        assert await fs.delete(path) is False

    @pytest.mark.asyncio
    async def test_make_dirs_and_list(self, fs: LocalFilesystem, tmp_path: Path) -> None:
        """Nested directories are created and listed."""
        directory = tmp_path / "a" / "b"
        assert await fs.is_dir(directory) is False
        await fs.make_dirs(directory, 0o700)
        assert await fs.is_dir(directory) is True
        (directory / "one").write_bytes(b"1")
        assert await fs.list_dir(directory) == ["one"]
        assert stat.S_IMODE(directory.stat().st_mode) & 0o077 == 0

    @pytest.mark.asyncio
    async def test_mtime(self, fs: LocalFilesystem, tmp_path: Path) -> None:
        """mtime matches os.stat."""
        path = tmp_path / "f"
        path.write_bytes(b"x")
        assert await fs.mtime(path) == path.stat().st_mtime
