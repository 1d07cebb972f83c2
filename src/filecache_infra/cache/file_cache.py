"""Filesystem-backed cache with per-entry TTL and streamed payloads."""

from __future__ import annotations

import time
from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any, cast

import structlog

from filecache_core.constants import (
    DEFAULT_READ_CHUNK_SIZE,
    DEFAULT_SIGNATURE,
    DEFAULT_STALE_TEMP_SECONDS,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
    DIRECTORY_MODE,
    MILLISECONDS_PER_SECOND,
)
from filecache_core.exceptions import (
    CacheDeleteError,
    CacheWriteError,
    CorruptRecordError,
    UnsupportedValueError,
)
from filecache_infra.cache.stream import CacheStream
from filecache_infra.cache.sweeper import Sweeper, SweepReport
from filecache_infra.codec.key_codec import filename_for, record_filename_of, temp_filename_for
from filecache_infra.codec.record_codec import PayloadKind, RecordCodec, RecordHeader, validate_ttl
from filecache_infra.fs.local_filesystem import LocalFilesystem
from filecache_infra.sync.lock_coordinator import LockCoordinator

if TYPE_CHECKING:
    from filecache_core.config.settings import CacheSettings
    from filecache_core.interfaces.filesystem import FileHandle, Filesystem
    from filecache_core.interfaces.mutex import KeyedMutex, Lock

logger = structlog.get_logger()

ChunkSource = Iterable[bytes] | AsyncIterable[bytes]

_BYTES_TYPES = (bytes, bytearray, memoryview)


def wall_clock_ms() -> int:
    """Milliseconds since the Unix epoch; shared by every process using a directory."""
    return time.time_ns() // 1_000_000


class FileCache:
    """Durable key/value cache storing one file per key.

    Every operation on a key holds that key's lock for its whole duration,
    so same-key operations serialize (last writer wins) while distinct keys
    never contend. Reads fail safe: a record that is expired, corrupt or
    unreadable is reported as a miss and removed, never returned.

    A background Sweeper runs once at construction (or on the first
    operation when no event loop is running yet) and then every
    ``sweep_interval_seconds``. Call ``close()`` or use ``async with`` to
    stop it; closing runs one last sweep.
    """

    def __init__(
        self,
        directory: Path | str,
        *,
        mutex: KeyedMutex | None = None,
        filesystem: Filesystem | None = None,
        signature: bytes | None = DEFAULT_SIGNATURE,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        stale_temp_seconds: float = DEFAULT_STALE_TEMP_SECONDS,
        clock: Callable[[], int] | None = None,
        start_sweeper: bool = True,
    ) -> None:
        """Initialize the cache rooted at directory.

        Args:
            directory: Where record files live; created on the first set().
            mutex: Keyed mutex guarding records; in-process by default.
            filesystem: Non-blocking filesystem; local disk by default.
            signature: Magic prefix of every record; None or b"" disables it.
            sweep_interval_seconds: Delay between background sweeps.
            read_chunk_size: Bytes per read when buffering or streaming.
            stale_temp_seconds: Age at which the sweep removes orphaned temp files.
            clock: Returns the current time in epoch milliseconds.
            start_sweeper: Run the periodic sweep.
        """
        if read_chunk_size <= 0:
            msg = f"read_chunk_size must be positive, got {read_chunk_size}"
            raise ValueError(msg)
        if sweep_interval_seconds <= 0:
            msg = f"sweep_interval_seconds must be positive, got {sweep_interval_seconds}"
            raise ValueError(msg)

        self._directory = Path(directory)
        self._fs: Filesystem = filesystem if filesystem is not None else LocalFilesystem()
        self._locks = LockCoordinator(mutex)
        self._codec = RecordCodec(signature)
        self._chunk_size = read_chunk_size
        self._stale_temp_seconds = stale_temp_seconds
        self._clock = clock if clock is not None else wall_clock_ms
        self._sweeper = Sweeper(self, sweep_interval_seconds)
        self._auto_sweep = start_sweeper
        self._closed = False
        self._ensure_sweeper()

    @classmethod
    def from_settings(cls, settings: CacheSettings, **overrides: Any) -> FileCache:
        """Build a cache from CacheSettings; keyword overrides win."""
        options: dict[str, Any] = {
            "signature": settings.signature_bytes,
            "sweep_interval_seconds": settings.sweep_interval_seconds,
            "read_chunk_size": settings.read_chunk_size,
            "stale_temp_seconds": settings.stale_temp_seconds,
        }
        options.update(overrides)
        return cls(settings.cache_dir, **options)

    @property
    def directory(self) -> Path:
        """Directory holding the record files."""
        return self._directory

    @property
    def filesystem(self) -> Filesystem:
        """Filesystem the cache reads and writes through."""
        return self._fs

    @property
    def lock_coordinator(self) -> LockCoordinator:
        """Per-filename lock coordinator."""
        return self._locks

    @property
    def sweeper(self) -> Sweeper:
        """Background sweeper owned by this cache."""
        return self._sweeper

    def path_for(self, key: str) -> Path:
        """Return the record path of key."""
        return self._directory / filename_for(key)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> bytes | CacheStream | None:
        """Retrieve a value by key, or None if missing, expired or invalid.

        Records written inline come back as bytes. Records written from a
        chunk source come back as an open CacheStream holding the key's
        lock until it is closed or exhausted.
        """
        return await self._read(filename_for(key), stream=False)

    async def get_stream(self, key: str) -> CacheStream | None:
        """Retrieve any record as a CacheStream, or None on a miss."""
        result = await self._read(filename_for(key), stream=True)
        return cast("CacheStream | None", result)

    async def exists(self, key: str) -> bool:
        """Check if a valid, unexpired record exists for key."""
        self._ensure_sweeper()
        return await self.validate_file(filename_for(key))

    async def set(
        self, key: str, value: bytes | ChunkSource, ttl_seconds: int | None = None
    ) -> None:
        """Store a value, replacing any previous record for key.

        Args:
            key: Cache key.
            value: Bytes-like value stored inline, or a sync or async
                iterable of bytes-like chunks stored as a streamed record.
            ttl_seconds: Seconds until expiry; None never expires, 0 is
                expired immediately.

        Raises:
            InvalidTTLError: If ttl_seconds is negative, not an int, or its
                expiry does not fit in 64 bits.
            UnsupportedValueError: If value is None, str, or not bytes-like.
            CacheWriteError: If the record cannot be written.
        """
        validate_ttl(ttl_seconds)
        kind = _payload_kind_of(value)
        await self._write(filename_for(key), value, kind, ttl_seconds)

    async def set_stream(
        self, key: str, chunks: bytes | ChunkSource, ttl_seconds: int | None = None
    ) -> None:
        """Store a streamed record; a single bytes value becomes one chunk."""
        validate_ttl(ttl_seconds)
        source: Any = [bytes(chunks)] if isinstance(chunks, _BYTES_TYPES) else chunks
        _payload_kind_of(source)
        await self._write(filename_for(key), source, PayloadKind.STREAMED, ttl_seconds)

    async def delete(self, key: str) -> bool:
        """Delete a key; return False if there was nothing to delete.

        Raises:
            CacheDeleteError: If the record exists but cannot be removed.
        """
        self._ensure_sweeper()
        filename = filename_for(key)
        async with self._locks.locked(filename):
            try:
                removed = await self._fs.delete(self._directory / filename)
            except OSError as e:
                msg = f"Failed to delete cache record {filename}: {e}"
                raise CacheDeleteError(msg) from e
        if removed:
            logger.debug("cache_record_deleted", filename=filename)
        return removed

    async def validate_file(self, filename: str) -> bool:
        """Check the record stored under filename, evicting it if invalid.

        Shared by exists() and the Sweeper. Returns True only for a
        readable, unexpired record.
        """
        async with self._locks.locked(filename):
            record = await self._open_valid(filename)
            if record is None:
                return False
            await _close_quietly(record[0])
            return True

    async def discard_stale_temp(self, name: str) -> bool:
        """Remove an orphaned temp file older than the staleness threshold.

        Writers hold the record lock for as long as their temp file
        exists, so holding it here means no local write owns the file.
        """
        async with self._locks.locked(record_filename_of(name)):
            path = self._directory / name
            try:
                modified = await self._fs.mtime(path)
            except FileNotFoundError:
                return False
            age = self._clock() / MILLISECONDS_PER_SECOND - modified
            if age < self._stale_temp_seconds:
                return False
            removed = await self._fs.delete(path)
        if removed:
            logger.info("cache_temp_file_removed", filename=name)
        return removed

    async def sweep(self) -> SweepReport:
        """Run one sweep now."""
        return await self._sweeper.sweep_once()

    async def close(self) -> None:
        """Stop the periodic sweep and run a final one. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        await self._sweeper.stop()
        await self._sweeper.sweep_once()

    async def __aenter__(self) -> FileCache:
        self._ensure_sweeper()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_sweeper(self) -> None:
        """Start the sweeper once an event loop is available."""
        if not self._auto_sweep or self._closed or self._sweeper.running:
            return
        try:
            self._sweeper.start()
        except RuntimeError:
            logger.debug("cache_sweeper_deferred", directory=str(self._directory))

    async def _read(self, filename: str, *, stream: bool) -> bytes | CacheStream | None:
        self._ensure_sweeper()
        held = await self._locks.acquire(filename)
        lock: Lock | None = held
        try:
            record = await self._open_valid(filename)
            if record is None:
                return None
            handle, header = record
            if stream or header.payload_kind is PayloadKind.STREAMED:
                # The stream now owns the lock.
                result = CacheStream(handle, held, chunk_size=self._chunk_size)
                lock = None
                return result
            return await self._read_inline(filename, handle)
        finally:
            if lock is not None:
                lock.release()

    async def _open_valid(self, filename: str) -> tuple[FileHandle, RecordHeader] | None:
        """Open a record positioned at its payload; caller holds the lock.

        Expired, corrupt and unreadable records are removed and reported
        as None.
        """
        path = self._directory / filename
        try:
            handle = await self._fs.open_read(path)
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("cache_read_failed", filename=filename, error=str(e))
            await self._discard(path)
            return None

        try:
            header = self._codec.decode_header(await handle.read(self._codec.max_header_size))
            if header.is_expired(self._clock()):
                await handle.close()
                logger.debug("cache_record_expired", filename=filename)
                await self._discard(path)
                return None
            await handle.seek(header.size)
        except (CorruptRecordError, OSError) as e:
            await _close_quietly(handle)
            logger.info("cache_record_invalid", filename=filename, error=str(e))
            await self._discard(path)
            return None
        except BaseException:
            await _close_quietly(handle)
            raise
        return handle, header

    async def _read_inline(self, filename: str, handle: FileHandle) -> bytes | None:
        chunks: list[bytes] = []
        try:
            try:
                while True:
                    chunk = await handle.read(self._chunk_size)
                    if not chunk:
                        break
                    chunks.append(chunk)
            finally:
                await handle.close()
        except OSError as e:
            logger.warning("cache_read_failed", filename=filename, error=str(e))
            await self._discard(self._directory / filename)
            return None
        return b"".join(chunks)

    async def _write(
        self,
        filename: str,
        value: Any,
        kind: PayloadKind,
        ttl_seconds: int | None,
    ) -> None:
        self._ensure_sweeper()
        # Reject an unstorable expiry before anything touches the disk.
        self._codec.encode_header(ttl_seconds, self._clock(), kind)
        await self._ensure_directory()
        path = self._directory / filename
        temp_path = self._directory / temp_filename_for(filename)

        async with self._locks.locked(filename):
            header = self._codec.encode_header(ttl_seconds, self._clock(), kind)
            try:
                handle = await self._fs.open_write(temp_path)
                try:
                    await handle.write(header)
                    if kind is PayloadKind.INLINE:
                        await handle.write(bytes(value))
                    else:
                        async for chunk in _iter_chunks(value):
                            await handle.write(chunk)
                finally:
                    await handle.close()
                await self._fs.rename(temp_path, path)
            except OSError as e:
                await self._discard(temp_path)
                msg = f"Failed to write cache record {filename}: {e}"
                raise CacheWriteError(msg) from e
            except BaseException:
                await self._discard(temp_path)
                raise

        logger.debug(
            "cache_record_written",
            filename=filename,
            payload_kind=kind.name.lower(),
            ttl_seconds=ttl_seconds,
        )

    async def _ensure_directory(self) -> None:
        try:
            if not await self._fs.is_dir(self._directory):
                await self._fs.make_dirs(self._directory, DIRECTORY_MODE)
                logger.info("cache_directory_created", directory=str(self._directory))
        except OSError as e:
            msg = f"Failed to create cache directory {self._directory}: {e}"
            raise CacheWriteError(msg) from e

    async def _discard(self, path: Path) -> None:
        """Best-effort removal; failures are logged, never raised."""
        try:
            removed = await self._fs.delete(path)
        except OSError as e:
            logger.warning("cache_discard_failed", path=str(path), error=str(e))
            return
        if removed:
            logger.debug("cache_file_discarded", path=str(path))


def _payload_kind_of(value: object) -> PayloadKind:
    """Pick inline for bytes-like values and streamed for chunk sources."""
    if isinstance(value, _BYTES_TYPES):
        return PayloadKind.INLINE
    if value is None or isinstance(value, str):
        msg = f"Cannot store {type(value).__name__} in FileCache; bytes required"
        raise UnsupportedValueError(msg)
    if isinstance(value, AsyncIterable | Iterable):
        return PayloadKind.STREAMED
    msg = f"Cannot store {type(value).__name__} in FileCache"
    raise UnsupportedValueError(msg)


async def _iter_chunks(source: ChunkSource) -> AsyncIterator[bytes]:
    if isinstance(source, AsyncIterable):
        async for chunk in source:
            yield _as_chunk(chunk)
    else:
        for chunk in source:
            yield _as_chunk(chunk)


def _as_chunk(chunk: object) -> bytes:
    if not isinstance(chunk, _BYTES_TYPES):
        msg = f"Cannot store {type(chunk).__name__} chunk in FileCache; bytes required"
        raise UnsupportedValueError(msg)
    return bytes(chunk)


async def _close_quietly(handle: FileHandle) -> None:
    try:
        await handle.close()
    except OSError as e:
        logger.debug("cache_handle_close_failed", error=str(e))
