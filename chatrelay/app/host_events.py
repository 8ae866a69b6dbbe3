"""
Adapter between host events and the relay.

The host calls these methods from its main context when players join or
quit, chat, change visibility, or when an extension finishes loading. The
bus handlers registered here run on the main context via the dispatcher.
"""

import asyncio
from typing import Any

from ..game.chat_relay import ChatRelay
from ..game.collaborators import MessageSink
from ..game.message_router import MessageRouter
from ..game.reply_state_tracker import ReplyStateTracker
from ..game.vanish_bridge import VanishBridge
from ..models.player import Player
from ..schemas.bus_messages import ChatBroadcast, PrivateMessage
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger("chatrelay.host_events")


class HostEventAdapter:
    """Translates host events into relay operations."""

    def __init__(
        self,
        router: MessageRouter,
        chat_relay: ChatRelay,
        tracker: ReplyStateTracker,
        vanish_bridge: VanishBridge,
        sink: MessageSink | None = None,
    ):
        self.router = router
        self.chat_relay = chat_relay
        self.tracker = tracker
        self.vanish_bridge = vanish_bridge
        self.sink = sink

    def on_player_join(self, player: Player) -> asyncio.Task[Any] | None:
        logger.debug("Player joined", player_name=player.name)
        return self.vanish_bridge.on_player_join(player)

    def on_player_quit(self, player: Player) -> asyncio.Task[Any]:
        """Drop presence and forget the player's reply state."""
        logger.debug("Player quit", player_name=player.name)
        self.tracker.clear(player.player_id)
        return self.vanish_bridge.on_player_quit(player)

    async def on_local_chat(self, player: Player, text: str) -> bool:
        return await self.chat_relay.publish_local_chat(player.name, text)

    def on_visibility_changed(self, player: Player, hidden: bool) -> asyncio.Task[Any]:
        return self.vanish_bridge.on_visibility_changed(player, hidden)

    def on_extension_enabled(self, extension_name: str) -> bool:
        return self.vanish_bridge.on_extension_enabled(extension_name)

    def deliver_inbound_private(self, message: PrivateMessage) -> None:
        """Bus handler for relayed private messages."""
        view = self.router.handle_inbound(message)
        if view is not None and self.sink is not None:
            self.sink.send_private(view)

    def deliver_inbound_chat(self, message: ChatBroadcast) -> None:
        """Bus handler for relayed chat."""
        line = self.chat_relay.handle_inbound(message)
        if line is not None and self.sink is not None:
            self.sink.broadcast_chat(line)
