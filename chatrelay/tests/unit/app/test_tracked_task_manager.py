"""
Tests for TrackedTaskManager.
"""

import asyncio

import pytest

from chatrelay.app.tracked_task_manager import TrackedTaskManager


class TestCreateTrackedTask:
    """Test task creation and bookkeeping."""

    @pytest.mark.asyncio
    async def test_task_is_held_until_done(self):
        manager = TrackedTaskManager()
        gate = asyncio.Event()

        async def work():
            await gate.wait()
            return "done"

        task = manager.create_tracked_task(work(), task_name="test/work")
        assert manager.pending_count == 1

        gate.set()
        assert await task == "done"
        await asyncio.sleep(0)

        assert manager.pending_count == 0

    @pytest.mark.asyncio
    async def test_failed_task_is_released(self):
        manager = TrackedTaskManager()

        async def explode():
            raise RuntimeError("write failed")

        task = manager.create_tracked_task(explode(), task_name="test/explode")
        await asyncio.wait({task})
        await asyncio.sleep(0)

        assert manager.pending_count == 0
        assert isinstance(task.exception(), RuntimeError)

    def test_no_running_loop_raises_and_closes_coroutine(self):
        manager = TrackedTaskManager()
        ran = []

        async def work():
            ran.append(True)

        coro = work()
        with pytest.raises(RuntimeError, match="test/no_loop"):
            manager.create_tracked_task(coro, task_name="test/no_loop")

        assert coro.cr_frame is None
        assert not ran


class TestShutdownHelpers:
    """Test wait and cancel."""

    @pytest.mark.asyncio
    async def test_wait_for_pending_with_nothing_pending(self):
        assert await TrackedTaskManager().wait_for_pending(timeout=0.1) is True

    @pytest.mark.asyncio
    async def test_wait_for_pending_completes(self):
        manager = TrackedTaskManager()
        manager.create_tracked_task(asyncio.sleep(0.01), task_name="test/short")

        assert await manager.wait_for_pending(timeout=1) is True

    @pytest.mark.asyncio
    async def test_wait_for_pending_times_out(self):
        manager = TrackedTaskManager()
        manager.create_tracked_task(asyncio.sleep(10), task_name="test/long")

        assert await manager.wait_for_pending(timeout=0.01) is False

        assert await manager.cancel_all() == 1

    @pytest.mark.asyncio
    async def test_cancel_all_cancels_pending(self):
        manager = TrackedTaskManager()
        tasks = [manager.create_tracked_task(asyncio.sleep(10), task_name=f"test/{i}") for i in range(3)]

        assert await manager.cancel_all() == 3

        assert all(task.cancelled() for task in tasks)
        await asyncio.sleep(0)
        assert manager.pending_count == 0
