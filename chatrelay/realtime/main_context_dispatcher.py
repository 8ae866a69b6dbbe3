"""
Hand-off from transport contexts to the application's main context.

Bus callbacks and foreign threads never touch player-facing state. They call
submit(), which places the callback on a bounded, thread-safe queue. The main
context drains the queue each tick and runs the callbacks in order.
"""

import asyncio
import inspect
import queue
from collections.abc import Callable
from typing import Any

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger("realtime.main_context_dispatcher")


class MainContextDispatcher:
    """
    Bounded queue of callbacks drained on the main context.

    submit() is safe to call from any thread. drain() must only run on the
    main context; start() schedules it on the running event loop every
    tick_interval seconds.
    """

    def __init__(self, maxsize: int = 1000, tick_interval: float = 0.05):
        self._queue: queue.Queue[tuple[str, Callable[..., Any], tuple[Any, ...]]] = queue.Queue(maxsize=maxsize)
        self.maxsize = maxsize
        self.tick_interval = tick_interval
        self.is_running = False
        self.dropped_count = 0
        self.processed_count = 0
        self._drain_task: asyncio.Task | None = None

    def submit(self, callback: Callable[..., Any], *args: Any, label: str = "callback") -> bool:
        """
        Queue a callback for the main context.

        Returns:
            bool: False if the queue is full and the callback was dropped
        """
        try:
            self._queue.put_nowait((label, callback, args))
            return True
        except queue.Full:
            self.dropped_count += 1
            logger.warning(
                "Main context queue full, dropping callback",
                label=label,
                maxsize=self.maxsize,
                dropped_count=self.dropped_count,
            )
            return False

    def pending(self) -> int:
        return self._queue.qsize()

    async def drain(self, max_items: int | None = None) -> int:
        """
        Run queued callbacks on the current (main) context.

        Coroutine results are awaited before the next callback runs, so
        callbacks observe each other's effects in submission order. A failing
        callback is logged and does not stop the drain.

        Args:
            max_items: Upper bound on callbacks run in this call

        Returns:
            int: Number of callbacks run
        """
        processed = 0
        while max_items is None or processed < max_items:
            try:
                label, callback, args = self._queue.get_nowait()
            except queue.Empty:
                break
            processed += 1
            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: one bad callback must not stall the main context
                logger.error(
                    "Main context callback failed",
                    label=label,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
            finally:
                self._queue.task_done()
        self.processed_count += processed
        return processed

    async def start(self) -> bool:
        """Start draining on the running event loop."""
        if self.is_running:
            logger.warning("MainContextDispatcher is already running")
            return True
        self.is_running = True
        self._drain_task = asyncio.create_task(self._drain_loop(), name="main_context_dispatcher/drain_loop")
        logger.info("MainContextDispatcher started", tick_interval=self.tick_interval, maxsize=self.maxsize)
        return True

    async def stop(self) -> bool:
        """Stop the drain loop and run whatever is still queued."""
        if not self.is_running:
            return True
        self.is_running = False
        if self._drain_task and not self._drain_task.done():
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
        self._drain_task = None
        remaining = await self.drain()
        logger.info("MainContextDispatcher stopped", drained_on_stop=remaining, dropped_count=self.dropped_count)
        return True

    async def _drain_loop(self) -> None:
        while self.is_running:
            try:
                await self.drain()
                await asyncio.sleep(self.tick_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: keep the loop alive, errors are logged
                logger.error("Error in main context drain loop", error=str(e))
                await asyncio.sleep(self.tick_interval)
