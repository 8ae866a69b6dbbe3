"""
Reply and last-sent tracking for private messages.

This module keeps the per-player state behind the reply and "message last
target again" shortcuts. State is process-local and never persisted; it must
only be touched from the main context.
"""

import uuid

from ..models.player import ReplyTarget
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger("communications.reply_state_tracker")


class ReplyStateTracker:
    """Tracks who each resident player would reply to and whom they last messaged."""

    def __init__(self) -> None:
        self._reply_targets: dict[uuid.UUID, ReplyTarget] = {}
        self._last_sent: dict[uuid.UUID, ReplyTarget] = {}

    def record_delivery(self, from_id: uuid.UUID, from_name: str, to_target: ReplyTarget) -> None:
        """
        Record a private message sent by a resident player.

        The sender's last-sent target always becomes to_target. When the
        recipient is resident too (to_target has an identity) each party
        becomes the other's reply target.

        Args:
            from_id: Identity of the sender
            from_name: Display name of the sender
            to_target: The recipient
        """
        self._last_sent[from_id] = to_target
        if to_target.identity is not None:
            self._reply_targets[to_target.identity] = ReplyTarget(identity=from_id, name=from_name)
            self._reply_targets[from_id] = to_target
        logger.debug(
            "Recorded private message delivery",
            sender=from_name,
            recipient=to_target.name,
            local=to_target.identity is not None,
        )

    def record_inbound(self, recipient_id: uuid.UUID, sender: ReplyTarget) -> None:
        """
        Record a private message received from another instance.

        Args:
            recipient_id: Identity of the resident recipient
            sender: The sender, usually known by name only
        """
        self._reply_targets[recipient_id] = sender
        logger.debug("Recorded inbound private message", sender=sender.name)

    def get_reply_target(self, player_id: uuid.UUID) -> ReplyTarget | None:
        return self._reply_targets.get(player_id)

    def get_last_sent(self, player_id: uuid.UUID) -> ReplyTarget | None:
        return self._last_sent.get(player_id)

    def clear(self, player_id: uuid.UUID) -> None:
        """
        Forget a player's reply and last-sent targets.

        Called when the player disconnects from this instance.
        """
        removed_reply = self._reply_targets.pop(player_id, None)
        removed_last = self._last_sent.pop(player_id, None)
        if removed_reply or removed_last:
            logger.debug("Cleared reply state", player_id=str(player_id))

    def get_all_trackings(self) -> dict[str, dict[uuid.UUID, ReplyTarget]]:
        """Snapshot of both mappings (for testing/debugging)."""
        return {"reply_targets": dict(self._reply_targets), "last_sent": dict(self._last_sent)}
