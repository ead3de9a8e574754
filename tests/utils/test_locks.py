"""Tests for the asyncio reader/writer lock."""

import asyncio

import pytest

from promptvault.utils.locks import AsyncRWLock

pytestmark = pytest.mark.unit


class TestAsyncRWLock:
    """Tests for AsyncRWLock."""

    @pytest.mark.asyncio
    async def test_readers_share(self) -> None:
        """Test several readers hold the lock at once."""
        lock = AsyncRWLock()
        peak = 0
        release = asyncio.Event()

        async def reader() -> None:
            nonlocal peak
            async with lock.read():
                peak = max(peak, lock.readers)
                await release.wait()

        tasks = [asyncio.create_task(reader()) for _ in range(3)]
        await asyncio.sleep(0.01)
        release.set()
        await asyncio.gather(*tasks)

        assert peak == 3
        assert lock.readers == 0

    @pytest.mark.asyncio
    async def test_writer_excludes_readers(self) -> None:
        """Test a reader waits while a writer holds the lock."""
        lock = AsyncRWLock()
        events: list[str] = []

        async def reader() -> None:
            async with lock.read():
                events.append("read")

        async with lock.write():
            assert lock.write_locked
            task = asyncio.create_task(reader())
            await asyncio.sleep(0.01)
            assert events == []
            events.append("write-done")

        await task
        assert events == ["write-done", "read"]
        assert not lock.write_locked

    @pytest.mark.asyncio
    async def test_waiting_writer_blocks_new_readers(self) -> None:
        """Test a queued writer goes before readers that arrive after it."""
        lock = AsyncRWLock()
        order: list[str] = []

        async def writer() -> None:
            async with lock.write():
                order.append("writer")

        async def late_reader() -> None:
            async with lock.read():
                order.append("late-reader")

        async with lock.read():
            writer_task = asyncio.create_task(writer())
            await asyncio.sleep(0.01)
            reader_task = asyncio.create_task(late_reader())
            await asyncio.sleep(0.01)
            assert order == []

        await asyncio.gather(writer_task, reader_task)
        assert order == ["writer", "late-reader"]

    @pytest.mark.asyncio
    async def test_cancelled_writer_releases_readers(self) -> None:
        """Test readers queued behind a cancelled writer are not stranded."""
        lock = AsyncRWLock()
        order: list[str] = []

        async def writer() -> None:
            async with lock.write():
                order.append("writer")

        async def late_reader() -> None:
            async with lock.read():
                order.append("late-reader")

        async with lock.read():
            writer_task = asyncio.create_task(writer())
            await asyncio.sleep(0.01)
            reader_task = asyncio.create_task(late_reader())
            await asyncio.sleep(0.01)
            writer_task.cancel()
            await asyncio.sleep(0.01)
            assert order == ["late-reader"]

        await reader_task
        with pytest.raises(asyncio.CancelledError):
            await writer_task
