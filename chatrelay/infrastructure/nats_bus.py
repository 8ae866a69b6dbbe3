"""
NATS implementation of the MessageBus protocol.

Owns the NATS connection and the two relay subscriptions (chat and private).
Inbound payloads are decoded on the NATS client's context and handed to the
MainContextDispatcher; handlers never run on the transport context.
"""

from collections.abc import Awaitable, Callable
from typing import Any

import nats
from nats.aio.msg import Msg

from ..config.models import BusConfig
from ..exceptions import MessageDecodeError, log_relay_error
from ..realtime.connection_state_machine import BusConnectionStateMachine
from ..realtime.main_context_dispatcher import MainContextDispatcher
from ..schemas.bus_messages import (
    ChannelKind,
    ChatBroadcast,
    PrivateMessage,
    decode,
    encode,
)
from ..structured_logging.enhanced_logging_config import get_logger
from .message_bus import ChatHandler, PrivateHandler

logger = get_logger(__name__)


class NATSMessageBus:
    """
    NATS-backed relay bus.

    connect() and publish() never raise. Transport failures are logged and
    reported through return values and the connection state machine.
    """

    def __init__(self, config: BusConfig, dispatcher: MainContextDispatcher, instance_id: str):
        """
        Initialize the bus.

        Args:
            config: Bus configuration
            dispatcher: Main-context dispatcher that runs inbound handlers
            instance_id: Local instance identifier, used as the NATS client name
        """
        self.config = config
        self.dispatcher = dispatcher
        self.instance_id = instance_id
        self.state_machine = BusConnectionStateMachine(connection_id=f"bus-{instance_id}")
        self._client: Any = None
        self._subscriptions: dict[str, Any] = {}
        self._channel_kinds: dict[str, ChannelKind] = {
            config.chat_channel: ChannelKind.CHAT,
            config.private_channel: ChannelKind.PRIVATE,
        }
        self._chat_handlers: list[ChatHandler] = []
        self._private_handlers: list[PrivateHandler] = []

    @property
    def chat_channel(self) -> str:
        return self.config.chat_channel

    @property
    def private_channel(self) -> str:
        return self.config.private_channel

    def on_chat(self, handler: ChatHandler) -> None:
        """Register a handler for inbound chat broadcasts (runs on the main context)."""
        self._chat_handlers.append(handler)

    def on_private(self, handler: PrivateHandler) -> None:
        """Register a handler for inbound private messages (runs on the main context)."""
        self._private_handlers.append(handler)

    async def connect(self) -> bool:
        """
        Connect to NATS and subscribe to the relay channels.

        Returns:
            bool: True if connected, False otherwise
        """
        if self.is_connected():
            logger.info("Already connected to bus")
            return True

        if self._client is not None and self.state_machine.state_id != "connecting":
            # Left over from a lost connection; replaced by a fresh client below
            await self._close_client_quietly()

        if not self.state_machine.mark_connecting():
            logger.warning("Bus connect already in progress", state=self.state_machine.state_id)
            return False

        try:
            self._client = await nats.connect(
                servers=self.config.url,
                name=f"chatrelay-{self.instance_id}",
                connect_timeout=self.config.connect_timeout,
                max_reconnect_attempts=self.config.max_reconnect_attempts,
                reconnect_time_wait=self.config.reconnect_time_wait,
                ping_interval=self.config.ping_interval,
                max_outstanding_pings=self.config.max_outstanding_pings,
                error_cb=self._error_callback,
                disconnected_cb=self._disconnected_callback,
                reconnected_cb=self._reconnected_callback,
                closed_cb=self._closed_callback,
            )
            await self._ensure_subscriptions()
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: NATS raises many unrelated types on connect, bus must degrade not crash
            logger.error("Failed to connect to bus", url=self.config.url, error=str(e), error_type=type(e).__name__)
            await self._close_client_quietly()
            self.state_machine.mark_failed(e)
            return False

        self.state_machine.mark_connected()
        logger.info(
            "Connected to bus",
            url=self.config.url,
            chat_channel=self.chat_channel,
            private_channel=self.private_channel,
        )
        return True

    async def disconnect(self) -> None:
        """Unsubscribe and close the NATS connection. Idempotent."""
        self.state_machine.mark_disconnected()
        if self._client is None:
            return

        for channel, subscription in list(self._subscriptions.items()):
            try:
                await subscription.unsubscribe()
            except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: best-effort teardown
                logger.warning("Error unsubscribing from bus channel", channel=channel, error=str(e))
        self._subscriptions.clear()

        await self._close_client_quietly()
        logger.info("Disconnected from bus")

    def is_connected(self) -> bool:
        return self.state_machine.is_connected() and self._client is not None and bool(self._client.is_connected)

    async def publish(self, channel: str, payload: str) -> bool:
        """
        Fire-and-forget publish.

        Returns:
            bool: True if handed to NATS, False if not connected or the publish failed
        """
        if not self.is_connected():
            logger.debug("Bus not connected, dropping publish", channel=channel)
            return False

        try:
            data = payload.encode("utf-8")
            await self._client.publish(channel, data)
            logger.debug("Published bus message", channel=channel, message_size=len(data))
            return True
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: publish is best-effort, failures degrade to not-delivered
            logger.error("Failed to publish bus message", channel=channel, error=str(e), error_type=type(e).__name__)
            return False

    async def publish_chat(self, message: ChatBroadcast) -> bool:
        return await self.publish(self.chat_channel, encode(message))

    async def publish_private(self, message: PrivateMessage) -> bool:
        return await self.publish(self.private_channel, encode(message))

    async def _ensure_subscriptions(self) -> None:
        """Subscribe to each relay channel that does not already have a subscription."""
        for channel in (self.chat_channel, self.private_channel):
            if channel in self._subscriptions:
                continue
            self._subscriptions[channel] = await self._client.subscribe(channel, cb=self._handle_message)
            logger.info("Subscribed to bus channel", channel=channel)

    async def _handle_message(self, msg: Msg) -> None:
        """
        NATS subscription callback.

        Runs on the NATS client's context: decode here, then hand every
        handler to the dispatcher. Malformed payloads are logged and dropped.
        """
        kind = self._channel_kinds.get(msg.subject)
        if kind is None:
            logger.warning("Bus message on unexpected subject", subject=msg.subject)
            return

        try:
            message = decode(kind, msg.data)
        except MessageDecodeError as e:
            e.context.instance_id = self.instance_id
            e.context.channel = msg.subject
            log_relay_error(e, level="warning")
            return

        handlers: list[Callable[[Any], Awaitable[Any] | Any]]
        if kind is ChannelKind.CHAT:
            handlers = list(self._chat_handlers)
        else:
            handlers = list(self._private_handlers)

        for handler in handlers:
            self.dispatcher.submit(handler, message, label=f"bus.{kind.value}")

    async def _close_client_quietly(self) -> None:
        client, self._client = self._client, None
        # Subscriptions belong to the client and die with it
        self._subscriptions.clear()
        if client is None:
            return
        try:
            if not client.is_closed:
                await client.close()
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: best-effort teardown
            logger.warning("Error closing bus connection", error=str(e))

    # NATS event callbacks
    async def _error_callback(self, error: Exception) -> None:
        logger.error("Bus transport error", error=str(error), error_type=type(error).__name__)

    async def _disconnected_callback(self) -> None:
        if self.state_machine.mark_disconnected():
            logger.warning("Disconnected from bus")

    async def _reconnected_callback(self) -> None:
        if self._client is None:
            return
        # NATS replays existing subscriptions itself; this only fills gaps
        try:
            await self._ensure_subscriptions()
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: stay disconnected rather than crash the NATS callback
            logger.error("Failed to restore bus subscriptions after reconnect", error=str(e))
            return
        if self.state_machine.mark_connected():
            logger.info("Reconnected to bus")

    async def _closed_callback(self) -> None:
        self.state_machine.mark_disconnected()
        if self._client is not None and self._client.is_closed:
            # Reconnect attempts exhausted; the next connect() starts a fresh client
            self._client = None
            self._subscriptions.clear()
            logger.warning("Bus connection closed by transport")
