"""
Keeps the presence registry in line with player visibility.

A hidden (vanished) player must not appear online to other instances, so
hiding unregisters them and showing registers them again. Visibility
extensions may load after the relay and hide players without telling us,
so when one is enabled a deferred full resync runs on the main context.

Registry writes are fire-and-forget tracked tasks. Writes for the same
player are chained so a quick hide/show pair reaches Redis in order.
"""

import asyncio
from collections.abc import Callable, Coroutine, Iterable
from typing import Any

from ..app.tracked_task_manager import TrackedTaskManager
from ..infrastructure.presence_registry import PresenceRegistry
from ..models.player import Player
from ..realtime.main_context_dispatcher import MainContextDispatcher
from ..structured_logging.enhanced_logging_config import get_logger
from .collaborators import AlwaysVisible, PlayerDirectory, VisibilityProvider

logger = get_logger("communications.vanish_bridge")


class VanishBridge:
    """Reflects player visibility into the presence registry."""

    def __init__(
        self,
        registry: PresenceRegistry,
        directory: PlayerDirectory,
        task_manager: TrackedTaskManager,
        dispatcher: MainContextDispatcher,
        visibility: VisibilityProvider | None = None,
        resync_delay: float = 1.0,
        extension_markers: Iterable[str] = ("vanish", "essentials"),
    ):
        self.registry = registry
        self.directory = directory
        self.task_manager = task_manager
        self.dispatcher = dispatcher
        self.visibility = visibility or AlwaysVisible()
        self.resync_delay = resync_delay
        self.extension_markers = tuple(marker.lower() for marker in extension_markers)
        self._last_write: dict[str, asyncio.Task[Any]] = {}

    def _spawn_write(
        self, player: Player, operation: str, write: Callable[[str], Coroutine[Any, Any, bool]]
    ) -> asyncio.Task[Any]:
        key = player.name.lower()
        previous = self._last_write.get(key)

        async def run() -> bool:
            if previous is not None and not previous.done():
                # Only ordering matters here; the previous write logs its own failure
                await asyncio.wait({previous})
            return await write(player.name)

        task = self.task_manager.create_tracked_task(
            run(), task_name=f"vanish_bridge/{operation}/{key}", task_type="presence_write"
        )
        self._last_write[key] = task

        def _forget(done: asyncio.Task[Any]) -> None:
            if self._last_write.get(key) is done:
                del self._last_write[key]

        task.add_done_callback(_forget)
        return task

    def _register(self, player: Player) -> asyncio.Task[Any]:
        return self._spawn_write(player, "register", self.registry.register)

    def _unregister(self, player: Player) -> asyncio.Task[Any]:
        return self._spawn_write(player, "unregister", self.registry.unregister)

    def on_visibility_changed(self, player: Player, hidden: bool) -> asyncio.Task[Any]:
        """Hidden players leave the registry; visible players rejoin it."""
        logger.info("Player visibility changed", player_name=player.name, hidden=hidden)
        if hidden:
            return self._unregister(player)
        return self._register(player)

    def on_player_join(self, player: Player) -> asyncio.Task[Any] | None:
        if self.visibility.is_hidden(player):
            logger.debug("Hidden player joined, not registering presence", player_name=player.name)
            return None
        return self._register(player)

    def on_player_quit(self, player: Player) -> asyncio.Task[Any]:
        return self._unregister(player)

    def sync_player(self, player: Player) -> asyncio.Task[Any]:
        """Reconcile one player's presence with their current visibility."""
        if self.visibility.is_hidden(player):
            return self._unregister(player)
        return self._register(player)

    async def register_online_players(self) -> int:
        """
        Register every resident player that is not hidden.

        Called once at startup, after the registry connects.

        Returns:
            int: Number of players registered
        """
        tasks = [
            self._register(player)
            for player in self.directory.online_players()
            if not self.visibility.is_hidden(player)
        ]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Registered online players in presence registry", count=len(tasks))
        return len(tasks)

    async def resync_all(self) -> tuple[int, int]:
        """
        Re-evaluate every resident player's visibility and reconcile the registry.

        Returns:
            tuple: (registered, unregistered) counts
        """
        registered = 0
        unregistered = 0
        tasks = []
        for player in self.directory.online_players():
            if self.visibility.is_hidden(player):
                tasks.append(self._unregister(player))
                unregistered += 1
            else:
                tasks.append(self._register(player))
                registered += 1
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Presence resync complete", registered=registered, unregistered=unregistered)
        return registered, unregistered

    def is_visibility_extension(self, extension_name: str) -> bool:
        name = extension_name.lower()
        return any(marker in name for marker in self.extension_markers)

    def on_extension_enabled(self, extension_name: str) -> bool:
        """
        Schedule a deferred resync if a visibility extension just loaded.

        Returns:
            bool: True if a resync was scheduled
        """
        if not self.is_visibility_extension(extension_name):
            return False

        logger.info(
            "Visibility extension enabled, scheduling presence resync",
            extension=extension_name,
            delay=self.resync_delay,
        )
        self.task_manager.create_tracked_task(
            self._deferred_resync(), task_name="vanish_bridge/deferred_resync", task_type="presence_resync"
        )
        return True

    async def _deferred_resync(self) -> None:
        await asyncio.sleep(self.resync_delay)
        self.dispatcher.submit(self.resync_all, label="vanish.resync")
