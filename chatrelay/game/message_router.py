"""
Private message routing between local and remote players.

The router decides whether a private message is delivered on this instance
or published to the bus for another instance, keeps ReplyStateTracker in
step with both paths, and reports the result as a tagged outcome. It never
renders text; the returned MessageView values are formatted by the caller.

Callers must reject empty text and self-targeting before calling route().
"""

from dataclasses import dataclass
from enum import StrEnum

from ..infrastructure.message_bus import MessageBus
from ..infrastructure.presence_registry import PresenceRegistry
from ..models.player import Player, ReplyTarget
from ..schemas.bus_messages import PrivateMessage
from ..structured_logging.enhanced_logging_config import get_logger
from .collaborators import AlwaysVisible, MessageDirection, MessageView, PlayerDirectory, VisibilityProvider
from .reply_state_tracker import ReplyStateTracker

logger = get_logger("communications.message_router")


class NotFoundReason(StrEnum):
    """Why a recipient could not be reached."""

    NOT_ONLINE = "not_online"
    TRANSPORT_UNAVAILABLE = "transport_unavailable"


@dataclass(frozen=True, slots=True)
class DeliveredLocal:
    """Both players are resident here; both views are ready to show."""

    sent_view: MessageView
    received_view: MessageView
    recipient: Player


@dataclass(frozen=True, slots=True)
class DeliveredRemote:
    """Published to the bus for another instance. There is no receipt."""

    sent_view: MessageView
    recipient_name: str


@dataclass(frozen=True, slots=True)
class NotFound:
    """
    The recipient could not be reached.

    Callers that do not care about the distinction may treat every reason
    as plain "player not found".
    """

    recipient_name: str
    reason: NotFoundReason = NotFoundReason.NOT_ONLINE


RouteOutcome = DeliveredLocal | DeliveredRemote | NotFound


class MessageRouter:
    """Routes private messages locally or across the bus."""

    def __init__(
        self,
        instance_id: str,
        directory: PlayerDirectory,
        tracker: ReplyStateTracker,
        registry: PresenceRegistry,
        bus: MessageBus | None,
        visibility: VisibilityProvider | None = None,
    ):
        self.instance_id = instance_id
        self.directory = directory
        self.tracker = tracker
        self.registry = registry
        self.bus = bus
        self.visibility = visibility or AlwaysVisible()

    async def route(self, sender: Player, recipient_name: str, text: str) -> RouteOutcome:
        """
        Route a private message from a resident player.

        Args:
            sender: The resident sender
            recipient_name: Name the sender addressed
            text: Message text, already validated by the caller

        Returns:
            DeliveredLocal, DeliveredRemote or NotFound
        """
        recipient = self.directory.find_by_name(recipient_name)
        if recipient is not None:
            if not self.visibility.can_see(sender, recipient):
                # A hidden resident must be indistinguishable from an offline one
                logger.debug("Local recipient hidden from sender", sender=sender.name, recipient=recipient_name)
                return NotFound(recipient_name=recipient_name)
            return self._deliver_local(sender, recipient, text)

        if self.bus is None or not self.bus.is_connected():
            logger.debug("Bus unavailable, remote recipient unreachable", sender=sender.name, recipient=recipient_name)
            return NotFound(recipient_name=recipient_name, reason=NotFoundReason.TRANSPORT_UNAVAILABLE)

        if not await self.registry.exists_anywhere(recipient_name):
            return NotFound(recipient_name=recipient_name)

        message = PrivateMessage(
            sender_id=sender.player_id,
            sender_name=sender.name,
            sender_instance=self.instance_id,
            recipient_name=recipient_name,
            text=text,
        )
        if not await self.bus.publish_private(message):
            return NotFound(recipient_name=recipient_name, reason=NotFoundReason.TRANSPORT_UNAVAILABLE)

        self.tracker.record_delivery(sender.player_id, sender.name, ReplyTarget.name_only(recipient_name))
        logger.info("Private message relayed", sender=sender.name, recipient=recipient_name)
        return DeliveredRemote(
            sent_view=MessageView(sender, MessageDirection.SENT, recipient_name, text),
            recipient_name=recipient_name,
        )

    def _deliver_local(self, sender: Player, recipient: Player, text: str) -> DeliveredLocal:
        self.tracker.record_delivery(sender.player_id, sender.name, ReplyTarget.for_player(recipient))
        logger.debug("Private message delivered locally", sender=sender.name, recipient=recipient.name)
        return DeliveredLocal(
            sent_view=MessageView(sender, MessageDirection.SENT, recipient.name, text),
            received_view=MessageView(recipient, MessageDirection.RECEIVED, sender.name, text),
            recipient=recipient,
        )

    def handle_inbound(self, message: PrivateMessage) -> MessageView | None:
        """
        Deliver a private message relayed from another instance.

        Must run on the main context. A recipient who left between publish
        and delivery is dropped silently.

        Returns:
            The recipient's received view, or None if the recipient is not here
        """
        recipient = self.directory.find_by_name(message.recipient_name)
        if recipient is None:
            logger.debug(
                "Dropping relayed private message, recipient not resident",
                recipient=message.recipient_name,
                sender_instance=message.sender_instance,
            )
            return None

        resident_sender = self.directory.find_by_id(message.sender_id) if message.sender_id else None
        if resident_sender is not None:
            sender_target = ReplyTarget.for_player(resident_sender)
        else:
            sender_target = ReplyTarget.name_only(message.sender_name)
        self.tracker.record_inbound(recipient.player_id, sender_target)

        return MessageView(recipient, MessageDirection.RECEIVED, message.sender_name, message.text)
