"""
Caller-side private message commands: message, reply and last.

These apply the checks the router relies on callers for (blank text,
messaging yourself) and resolve reply/last targets before routing. Results
are structured; the host turns them into text.
"""

from dataclasses import dataclass
from enum import StrEnum

from ..game.collaborators import AlwaysVisible, PlayerDirectory, VisibilityProvider
from ..game.message_router import MessageRouter, RouteOutcome
from ..game.reply_state_tracker import ReplyStateTracker
from ..models.player import Player, ReplyTarget
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger("commands.private_message_commands")


class RejectionReason(StrEnum):
    EMPTY_MESSAGE = "empty_message"
    CANNOT_MESSAGE_SELF = "cannot_message_self"
    NO_REPLY_TARGET = "no_reply_target"
    NO_LAST_TARGET = "no_last_target"


@dataclass(frozen=True, slots=True)
class ValidationRejected:
    """The command was refused before anything was routed."""

    reason: RejectionReason


CommandResult = RouteOutcome | ValidationRejected


class PrivateMessageCommands:
    """Message, reply and last-target commands for resident players."""

    def __init__(
        self,
        router: MessageRouter,
        tracker: ReplyStateTracker,
        directory: PlayerDirectory,
        visibility: VisibilityProvider | None = None,
    ):
        self.router = router
        self.tracker = tracker
        self.directory = directory
        self.visibility = visibility or AlwaysVisible()

    async def send(self, sender: Player, recipient_name: str, text: str) -> CommandResult:
        """
        Send a private message to a named player.

        Args:
            sender: The resident sender
            recipient_name: Name the sender typed
            text: Message text

        Returns:
            A route outcome, or ValidationRejected
        """
        if not text or not text.strip():
            return ValidationRejected(RejectionReason.EMPTY_MESSAGE)
        if recipient_name.lower() == sender.name.lower():
            return ValidationRejected(RejectionReason.CANNOT_MESSAGE_SELF)
        return await self.router.route(sender, recipient_name, text)

    async def reply(self, sender: Player, text: str) -> CommandResult:
        """Message whoever most recently messaged the sender."""
        target = self.tracker.get_reply_target(sender.player_id)
        if target is None:
            return ValidationRejected(RejectionReason.NO_REPLY_TARGET)
        return await self._send_to_target(sender, target, text)

    async def last(self, sender: Player, text: str) -> CommandResult:
        """Message whoever the sender most recently messaged."""
        target = self.tracker.get_last_sent(sender.player_id)
        if target is None:
            return ValidationRejected(RejectionReason.NO_LAST_TARGET)
        return await self._send_to_target(sender, target, text)

    async def _send_to_target(self, sender: Player, target: ReplyTarget, text: str) -> CommandResult:
        if not text or not text.strip():
            return ValidationRejected(RejectionReason.EMPTY_MESSAGE)
        # A resident target may have been renamed since the target was stored
        resident = self.directory.find_by_id(target.identity) if target.identity is not None else None
        name = resident.name if resident is not None else target.name
        logger.debug("Resolved stored target", sender=sender.name, target=name, resident=resident is not None)
        return await self.router.route(sender, name, text)

    def suggest_recipients(self, viewer: Player, prefix: str = "") -> list[str]:
        """
        Resident names the viewer may message, for completion.

        Excludes the viewer and anyone the viewer cannot see.
        """
        prefix_lower = prefix.lower()
        return sorted(
            player.name
            for player in self.directory.online_players()
            if player.player_id != viewer.player_id
            and self.visibility.can_see(viewer, player)
            and player.name.lower().startswith(prefix_lower)
        )
