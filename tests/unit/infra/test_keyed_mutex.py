"""Tests for LocalKeyedMutex and LockCoordinator."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from filecache_infra.sync.keyed_mutex import LocalKeyedMutex
from filecache_infra.sync.lock_coordinator import LockCoordinator


@pytest.mark.unit
class TestLocalKeyedMutex:
    """Tests for the in-process keyed mutex."""

    @pytest.mark.asyncio
    async def test_same_key_serializes(self) -> None:
        """A second acquirer waits until the first releases."""
        mutex = LocalKeyedMutex()
        first = await mutex.acquire("k")
        waiter = asyncio.create_task(mutex.acquire("k"))
        await asyncio.sleep(0.01)
        assert waiter.done() is False

        first.release()
        second = await asyncio.wait_for(waiter, timeout=1)
        assert mutex.is_locked("k") is True
        second.release()

    @pytest.mark.asyncio
    async def test_distinct_keys_do_not_contend(self) -> None:
        """Holding one key never blocks another."""
        mutex = LocalKeyedMutex()
        a = await mutex.acquire("a")
        b = await asyncio.wait_for(mutex.acquire("b"), timeout=1)
        a.release()
        b.release()

    @pytest.mark.asyncio
    async def test_entries_are_dropped_after_release(self) -> None:
        """The lock table does not grow with every key ever used."""
        mutex = LocalKeyedMutex()
        for key in ("a", "b", "c"):
            lock = await mutex.acquire(key)
            lock.release()
        assert len(mutex) == 0
        assert mutex.is_locked("a") is False

    @pytest.mark.asyncio
    async def test_double_release_is_noop(self) -> None:
        """Releasing twice does not free a lock taken by someone else."""
        mutex = LocalKeyedMutex()
        lock = await mutex.acquire("k")
        lock.release()
        other = await mutex.acquire("k")
        lock.release()
        assert lock.released is True
        assert mutex.is_locked("k") is True
        other.release()

    @pytest.mark.asyncio
    async def test_cancelled_waiter_is_cleaned_up(self) -> None:
        """A waiter cancelled before acquiring leaves no residue."""
        mutex = LocalKeyedMutex()
        held = await mutex.acquire("k")
        waiter = asyncio.create_task(mutex.acquire("k"))
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        held.release()
        assert len(mutex) == 0

    @pytest.mark.asyncio
    async def test_waiters_run_in_order(self) -> None:
        """Waiters on one key run one at a time, in arrival order."""
        mutex = LocalKeyedMutex()
        order: list[int] = []

        async def worker(n: int) -> None:
            lock = await mutex.acquire("k")
            try:
                order.append(n)
                await asyncio.sleep(0)
            finally:
                lock.release()

        await asyncio.gather(*(worker(n) for n in range(5)))
        assert order == [0, 1, 2, 3, 4]


@pytest.mark.unit
class TestLockCoordinator:
    """Tests for LockCoordinator."""

    def test_defaults_to_local_mutex(self) -> None:
        """Without a mutex, the in-process fallback is used."""
        assert isinstance(LockCoordinator().mutex, LocalKeyedMutex)

    @pytest.mark.asyncio
    async def test_locked_releases_on_error(self) -> None:
        """The lock is released when the block raises."""
        lock = MagicMock()
        mutex = MagicMock()
        mutex.acquire = AsyncMock(return_value=lock)
        coordinator = LockCoordinator(mutex)

        with pytest.raises(RuntimeError):
            async with coordinator.locked("f.cache"):
                raise RuntimeError("boom")

        mutex.acquire.assert_awaited_once_with("f.cache")
        lock.release.assert_called_once()

    @pytest.mark.asyncio
    async def test_run_locked_returns_result(self) -> None:
        """run_locked hands back the operation's value and releases."""
        coordinator = LockCoordinator()

        async def operation() -> str:
            assert coordinator.mutex.is_locked("f.cache")  # type: ignore[attr-defined]
            return "done"

        assert await coordinator.run_locked("f.cache", operation) == "done"
        assert coordinator.mutex.is_locked("f.cache") is False  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_acquire_transfers_ownership(self) -> None:
        """acquire() leaves release to the caller."""
        coordinator = LockCoordinator()
        lock = await coordinator.acquire("f.cache")
        assert coordinator.mutex.is_locked("f.cache") is True  # type: ignore[attr-defined]
        lock.release()
        assert coordinator.mutex.is_locked("f.cache") is False  # type: ignore[attr-defined]
