"""
PresenceHeartbeatService for chatrelay.

Periodically refreshes this instance's presence TTL, independently of message
traffic. If the process dies the refreshes stop and the presence set expires.
"""

import asyncio

from ..app.tracked_task_manager import TrackedTaskManager
from ..infrastructure.presence_registry import PresenceRegistry
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger("services.presence_heartbeat_service")


class PresenceHeartbeatService:
    """
    Service that keeps the local presence set alive.

    The first refresh happens immediately on start, then every interval
    seconds. The interval must be shorter than half the TTL so one missed
    tick does not let the set lapse.
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        task_manager: TrackedTaskManager,
        interval: float,
        ttl: int,
    ):
        if interval >= ttl / 2:
            raise ValueError("Heartbeat interval must be strictly less than half the TTL")
        self.registry = registry
        self.task_manager = task_manager
        self.interval = interval
        self.ttl = ttl
        self.is_running = False
        self.beat_count = 0
        self.failed_beats = 0
        self._beat_task: asyncio.Task | None = None

    async def start(self) -> bool:
        """
        Start the heartbeat loop.

        Returns:
            bool: True if started successfully, False otherwise
        """
        if self.is_running:
            logger.warning("PresenceHeartbeatService is already running")
            return True

        try:
            self._beat_task = self.task_manager.create_tracked_task(
                self._beat_loop(), task_name="presence_heartbeat/beat_loop", task_type="system_lifecycle"
            )
            self.is_running = True
            logger.info("PresenceHeartbeatService started", interval=self.interval, ttl=self.ttl)
            return True
        except RuntimeError as e:
            logger.error("Failed to start PresenceHeartbeatService", error=str(e))
            return False

    async def stop(self) -> bool:
        """
        Stop the heartbeat loop and wait for it to finish.

        Must complete before presence cleanup, otherwise a late beat could
        re-apply a TTL to a set that is about to be deleted.
        """
        if not self.is_running:
            return True

        self.is_running = False
        if self._beat_task and not self._beat_task.done():
            self._beat_task.cancel()
            try:
                await self._beat_task
            except asyncio.CancelledError:
                pass
        self._beat_task = None
        logger.info("PresenceHeartbeatService stopped", beat_count=self.beat_count)
        return True

    async def beat(self) -> bool:
        """Refresh the TTL once."""
        ok = await self.registry.refresh_heartbeat(ttl=self.ttl)
        self.beat_count += 1
        if not ok:
            self.failed_beats += 1
            logger.warning("Presence heartbeat failed", failed_beats=self.failed_beats)
        return ok

    async def _beat_loop(self) -> None:
        logger.info("Presence heartbeat loop started")
        while self.is_running:
            try:
                await self.beat()
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                logger.info("Presence heartbeat loop cancelled")
                break
            except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: keep beating, a single failure must not end crash recovery
                logger.error("Error in presence heartbeat loop", error=str(e))
                await asyncio.sleep(self.interval)
        logger.info("Presence heartbeat loop ended")
