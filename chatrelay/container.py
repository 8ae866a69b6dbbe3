"""
RelayContainer - wires the relay components together.

Every component receives its collaborators by reference; there are no
module-level singletons. Construction does no I/O; see app/lifespan.py for
startup and shutdown.
"""

from typing import Any

from .app.host_events import HostEventAdapter
from .app.tracked_task_manager import TrackedTaskManager
from .commands.private_message_commands import PrivateMessageCommands
from .config.models import AppConfig
from .game.chat_relay import ChatRelay
from .game.collaborators import AlwaysVisible, MessageSink, PlayerDirectory, VisibilityProvider
from .game.message_router import MessageRouter
from .game.reply_state_tracker import ReplyStateTracker
from .game.vanish_bridge import VanishBridge
from .infrastructure.message_bus import MessageBus
from .infrastructure.nats_bus import NATSMessageBus
from .infrastructure.presence_registry import PresenceRegistry
from .realtime.main_context_dispatcher import MainContextDispatcher
from .services.presence_heartbeat_service import PresenceHeartbeatService
from .structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class RelayContainer:
    """Holds one instance's relay components."""

    def __init__(
        self,
        config: AppConfig,
        directory: PlayerDirectory,
        visibility: VisibilityProvider | None = None,
        sink: MessageSink | None = None,
        redis_client: Any = None,
        bus: MessageBus | None = None,
    ):
        """
        Build the component graph.

        Args:
            config: Application configuration
            directory: Host lookup of resident players
            visibility: Visibility extension predicates (defaults to always visible)
            sink: Host output for relayed messages
            redis_client: Optional pre-built async Redis client
            bus: Optional bus implementation (defaults to NATS when enabled)
        """
        self.config = config
        self.instance_id = config.relay.instance_id
        self.directory = directory
        self.visibility = visibility or AlwaysVisible()
        self.sink = sink

        self.task_manager = TrackedTaskManager()
        self.dispatcher = MainContextDispatcher(
            maxsize=config.relay.dispatch_queue_size,
            tick_interval=config.relay.dispatch_tick_interval,
        )
        self.registry = PresenceRegistry(config.presence, self.instance_id, client=redis_client)

        self.bus: MessageBus | None
        if bus is not None:
            self.bus = bus
        elif config.relay.enabled:
            self.bus = NATSMessageBus(config.bus, self.dispatcher, self.instance_id)
        else:
            self.bus = None

        self.heartbeat = PresenceHeartbeatService(
            self.registry,
            self.task_manager,
            interval=config.presence.heartbeat_interval_seconds,
            ttl=config.presence.ttl_seconds,
        )
        self.tracker = ReplyStateTracker()
        self.router = MessageRouter(
            self.instance_id, directory, self.tracker, self.registry, self.bus, visibility=self.visibility
        )
        self.chat_relay = ChatRelay(self.instance_id, self.bus)
        self.vanish_bridge = VanishBridge(
            self.registry,
            directory,
            self.task_manager,
            self.dispatcher,
            visibility=self.visibility,
            resync_delay=config.relay.vanish_resync_delay,
            extension_markers=config.relay.extension_markers,
        )
        self.commands = PrivateMessageCommands(self.router, self.tracker, directory, visibility=self.visibility)
        self.host_events = HostEventAdapter(
            self.router, self.chat_relay, self.tracker, self.vanish_bridge, sink=sink
        )

        if self.bus is not None:
            self.bus.on_private(self.host_events.deliver_inbound_private)
            self.bus.on_chat(self.host_events.deliver_inbound_chat)

        self.started = False
        logger.info("RelayContainer created", instance_id=self.instance_id, relay_enabled=config.relay.enabled)
