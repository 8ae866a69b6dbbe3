"""
Host-side collaborator interfaces consumed by the relay.

The host application supplies player lookup, an optional visibility
extension, and a sink for output. The relay never renders or escapes text;
it hands structured views to the sink and the host formats them.
"""

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from ..models.player import Player


class MessageDirection(StrEnum):
    """Which side of a private message a view is for."""

    SENT = "sent"
    RECEIVED = "received"


@dataclass(frozen=True, slots=True)
class MessageView:
    """A private message as one participant should see it."""

    viewer: Player
    direction: MessageDirection
    counterpart_name: str
    text: str


@dataclass(frozen=True, slots=True)
class RemoteChatLine:
    """A chat line relayed from another instance, ready for local broadcast."""

    instance: str
    sender_name: str
    text: str


class PlayerDirectory(Protocol):
    """Lookup of players resident on this instance."""

    def find_by_name(self, name: str) -> Player | None:
        """Return the resident player with this name, ignoring case, if any."""
        ...

    def find_by_id(self, player_id: uuid.UUID) -> Player | None:
        """Return the resident player with this identity, if any."""
        ...

    def online_players(self) -> Iterable[Player]:
        """Return every resident player."""
        ...


class VisibilityProvider(Protocol):
    """Predicates supplied by a visibility (vanish) extension."""

    def can_see(self, viewer: Player, target: Player) -> bool: ...

    def is_hidden(self, player: Player) -> bool: ...


class MessageSink(Protocol):
    """Where rendered output goes."""

    def send_private(self, view: MessageView) -> None: ...

    def broadcast_chat(self, line: RemoteChatLine) -> None: ...


class AlwaysVisible:
    """Visibility provider used when no visibility extension is installed."""

    def can_see(self, viewer: Player, target: Player) -> bool:
        return True

    def is_hidden(self, player: Player) -> bool:
        return False


class InMemoryPlayerDirectory:
    """
    Dictionary-backed PlayerDirectory.

    Suitable for hosts that keep their own connection table and push
    joins and quits into it.
    """

    def __init__(self) -> None:
        self._by_id: dict[uuid.UUID, Player] = {}

    def add(self, player: Player) -> None:
        self._by_id[player.player_id] = player

    def remove(self, player_id: uuid.UUID) -> None:
        self._by_id.pop(player_id, None)

    def find_by_name(self, name: str) -> Player | None:
        wanted = name.lower()
        for player in self._by_id.values():
            if player.name.lower() == wanted:
                return player
        return None

    def find_by_id(self, player_id: uuid.UUID) -> Player | None:
        return self._by_id.get(player_id)

    def online_players(self) -> list[Player]:
        return list(self._by_id.values())
