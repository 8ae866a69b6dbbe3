"""
Test configuration and shared fixtures for the chatrelay test suite.

Redis semantics come from fakeredis; the bus is replaced by FakeBus, an
in-memory MessageBus that can link several instances together.
"""

# pylint: disable=redefined-outer-name

import os
import uuid
from typing import Any

import fakeredis
import pytest

os.environ.setdefault("LOGGING_ENVIRONMENT", "unit_test")
os.environ.setdefault("LOGGING_LEVEL", "DEBUG")
os.environ.setdefault("RELAY_INSTANCE_ID", "test-instance")

from chatrelay.config.models import PresenceConfig  # noqa: E402
from chatrelay.game.collaborators import InMemoryPlayerDirectory, MessageView, RemoteChatLine  # noqa: E402
from chatrelay.infrastructure.presence_registry import PresenceRegistry  # noqa: E402
from chatrelay.models.player import Player  # noqa: E402
from chatrelay.schemas.bus_messages import ChatBroadcast, PrivateMessage, encode  # noqa: E402


class FakeBusNetwork:
    """Links FakeBus instances so a publish reaches every subscriber, sender included."""

    def __init__(self) -> None:
        self.buses: list["FakeBus"] = []

    def deliver(self, channel: str, message: ChatBroadcast | PrivateMessage) -> None:
        for bus in self.buses:
            if bus.connected:
                bus.receive(channel, message)


class FakeBus:
    """In-memory MessageBus used in place of NATS."""

    chat_channel = "chatrelay.chat"
    private_channel = "chatrelay.private"

    def __init__(self, network: FakeBusNetwork | None = None, dispatcher: Any = None, connected: bool = True):
        self.network = network
        self.dispatcher = dispatcher
        self.connected = connected
        self.connect_result = True
        self.published: list[tuple[str, str]] = []
        self.publish_result = True
        self.chat_handlers: list[Any] = []
        self.private_handlers: list[Any] = []
        self.disconnect_calls = 0
        if network is not None:
            network.buses.append(self)

    async def connect(self) -> bool:
        self.connected = self.connect_result
        return self.connected

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False

    def is_connected(self) -> bool:
        return self.connected

    async def publish(self, channel: str, payload: str) -> bool:
        if not self.connected or not self.publish_result:
            return False
        self.published.append((channel, payload))
        return True

    async def publish_chat(self, message: ChatBroadcast) -> bool:
        ok = await self.publish(self.chat_channel, encode(message))
        if ok and self.network is not None:
            self.network.deliver(self.chat_channel, message)
        return ok

    async def publish_private(self, message: PrivateMessage) -> bool:
        ok = await self.publish(self.private_channel, encode(message))
        if ok and self.network is not None:
            self.network.deliver(self.private_channel, message)
        return ok

    def on_chat(self, handler: Any) -> None:
        self.chat_handlers.append(handler)

    def on_private(self, handler: Any) -> None:
        self.private_handlers.append(handler)

    def receive(self, channel: str, message: ChatBroadcast | PrivateMessage) -> None:
        """Hand an inbound message to the handlers through the dispatcher."""
        handlers = self.chat_handlers if channel == self.chat_channel else self.private_handlers
        for handler in handlers:
            if self.dispatcher is not None:
                self.dispatcher.submit(handler, message, label="fake_bus")
            else:
                handler(message)


class FakeVisibility:
    """Visibility provider with explicit hidden players."""

    def __init__(self) -> None:
        self.hidden: set[uuid.UUID] = set()

    def hide(self, player: Player) -> None:
        self.hidden.add(player.player_id)

    def show(self, player: Player) -> None:
        self.hidden.discard(player.player_id)

    def can_see(self, viewer: Player, target: Player) -> bool:
        return target.player_id not in self.hidden

    def is_hidden(self, player: Player) -> bool:
        return player.player_id in self.hidden


class RecordingSink:
    """MessageSink that records what it was given."""

    def __init__(self) -> None:
        self.private: list[MessageView] = []
        self.chat: list[RemoteChatLine] = []

    def send_private(self, view: MessageView) -> None:
        self.private.append(view)

    def broadcast_chat(self, line: RemoteChatLine) -> None:
        self.chat.append(line)


def make_player(name: str) -> Player:
    return Player(player_id=uuid.uuid4(), name=name)


@pytest.fixture
def steve() -> Player:
    return make_player("Steve")


@pytest.fixture
def alex() -> Player:
    return make_player("Alex")


@pytest.fixture
def directory(steve, alex) -> InMemoryPlayerDirectory:
    """Directory with Steve and Alex resident."""
    players = InMemoryPlayerDirectory()
    players.add(steve)
    players.add(alex)
    return players


@pytest.fixture
def visibility() -> FakeVisibility:
    return FakeVisibility()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    """One fake Redis server; clients built on it share data like separate instances would."""
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(redis_server):
    return fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)


@pytest.fixture
def presence_config() -> PresenceConfig:
    return PresenceConfig(ttl_seconds=60, heartbeat_interval_seconds=25)


@pytest.fixture
def registry(presence_config, redis_client) -> PresenceRegistry:
    """Registry for instance "alpha" backed by fakeredis."""
    return PresenceRegistry(presence_config, "alpha", client=redis_client)


@pytest.fixture
def fake_bus() -> FakeBus:
    return FakeBus()


@pytest.fixture
def bus_network() -> FakeBusNetwork:
    return FakeBusNetwork()


@pytest.fixture
def bus_factory(bus_network):
    """Build FakeBus instances linked on one network."""

    def _make(dispatcher: Any = None) -> FakeBus:
        return FakeBus(network=bus_network, dispatcher=dispatcher)

    return _make


@pytest.fixture
def sink_factory():
    return RecordingSink


@pytest.fixture
def visibility_factory():
    return FakeVisibility


@pytest.fixture
def player_factory():
    return make_player
