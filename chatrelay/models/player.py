"""
Player identity values shared by the relay components.

These are deliberately thin: the host owns the real player objects, the relay
only needs an identity and a display name.
"""

import uuid
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Player:
    """A player resident on this instance."""

    player_id: uuid.UUID
    name: str


@dataclass(frozen=True, slots=True)
class ReplyTarget:
    """
    The player to contact next.

    identity is None when the target is known only by display name, which is
    the case for players resident on another instance.
    """

    identity: uuid.UUID | None
    name: str

    @classmethod
    def name_only(cls, name: str) -> "ReplyTarget":
        """Build a target for a player that is not resident here."""
        return cls(identity=None, name=name)

    @classmethod
    def for_player(cls, player: Player) -> "ReplyTarget":
        """Build a target for a resident player."""
        return cls(identity=player.player_id, name=player.name)

    @property
    def is_resident(self) -> bool:
        return self.identity is not None
