"""Lazily-read payload handle that owns its record's lock."""

from __future__ import annotations

from types import TracebackType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from filecache_core.interfaces.filesystem import FileHandle
    from filecache_core.interfaces.mutex import Lock


class CacheStream:
    """Chunked reader over a cached payload.

    The stream is created holding the lock of the record it reads, so no
    set, delete or sweep can touch that record while it is open. Closing
    the stream or reading it to the end is the only way that lock is
    released; callers must do one of the two. ``async with`` does it
    for you:

        stream = await cache.get_stream("report")
        if stream is not None:
            async with stream:
                async for chunk in stream:
                    sink.write(chunk)

    Do not write the same key from inside the loop; that waits on the lock
    the stream holds.
    """

    def __init__(self, handle: FileHandle, lock: Lock, *, chunk_size: int) -> None:
        """Take ownership of an open handle positioned at the payload, and its lock."""
        self._handle = handle
        self._lock = lock
        self._chunk_size = chunk_size
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether the handle is closed and the lock released."""
        return self._closed

    async def read(self) -> bytes | None:
        """Return the next chunk, or None once the payload is exhausted."""
        if self._closed:
            return None
        try:
            chunk = await self._handle.read(self._chunk_size)
        except BaseException:
            await self.aclose()
            raise
        if not chunk:
            await self.aclose()
            return None
        return chunk

    async def buffer(self) -> bytes:
        """Read the rest of the payload into memory."""
        return b"".join([chunk async for chunk in self])

    async def aclose(self) -> None:
        """Close the handle and release the lock, once."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._handle.close()
        finally:
            self._lock.release()

    def __aiter__(self) -> CacheStream:
        return self

    async def __anext__(self) -> bytes:
        chunk = await self.read()
        if chunk is None:
            raise StopAsyncIteration
        return chunk

    async def __aenter__(self) -> CacheStream:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

