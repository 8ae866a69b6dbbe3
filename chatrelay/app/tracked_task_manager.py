"""
TrackedTaskManager for fire-and-forget background work.

Presence writes and deferred resyncs are started and never awaited by the
caller. Tasks created here are held by strong reference until they finish,
failures are logged when they complete, and shutdown can wait for or cancel
whatever is still pending.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger("chatrelay.tracked_task_manager")


class TrackedTaskManager:
    """Creates asyncio tasks and keeps them alive until they complete."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._task_names: dict[asyncio.Task[Any], str] = {}

    def create_tracked_task(
        self,
        coro: Coroutine[Any, Any, Any],
        task_name: str,
        task_type: str = "tracked",
    ) -> asyncio.Task[Any]:
        """
        Create a managed asyncio.Task.

        Args:
            coro: The coroutine to execute
            task_name: Human-readable name for the task
            task_type: Classification used in log lines

        Returns:
            The created task

        Raises:
            RuntimeError: If no event loop is running
        """
        try:
            task: asyncio.Task[Any] = asyncio.create_task(coro, name=task_name)
        except RuntimeError as e:
            # create_task leaves the coroutine unawaited when there is no loop
            coro.close()
            logger.error("Tracked task creation failed", task_name=task_name, error=str(e))
            raise RuntimeError(f"Tracked task creation denied for {task_name}") from e

        self._tasks.add(task)
        self._task_names[task] = task_name

        def _on_done(done: asyncio.Task[Any]) -> None:
            self._tasks.discard(done)
            name = self._task_names.pop(done, task_name)
            if done.cancelled():
                logger.debug("Tracked task cancelled", task_name=name, task_type=task_type)
                return
            error = done.exception()
            if error is not None:
                logger.error(
                    "Tracked task failed",
                    task_name=name,
                    task_type=task_type,
                    error=str(error),
                    error_type=type(error).__name__,
                )

        task.add_done_callback(_on_done)
        logger.debug("Created tracked task", task_name=task_name, task_type=task_type)
        return task

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    async def wait_for_pending(self, timeout: float | None = None) -> bool:
        """
        Wait for every pending task to finish.

        Returns:
            bool: True if all finished, False on timeout
        """
        if not self._tasks:
            return True
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning("Tracked tasks still pending after wait", pending=len(pending), timeout=timeout)
            return False
        return True

    async def cancel_all(self) -> int:
        """Cancel every pending task and wait for them to unwind."""
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled tracked tasks", count=len(tasks))
        return len(tasks)
