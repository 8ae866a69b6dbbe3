"""
Tests for the message, reply and last commands.
"""

# pylint: disable=redefined-outer-name

from unittest.mock import AsyncMock, MagicMock

import pytest

from chatrelay.commands.private_message_commands import (
    PrivateMessageCommands,
    RejectionReason,
    ValidationRejected,
)
from chatrelay.game.message_router import DeliveredLocal, DeliveredRemote, MessageRouter, NotFound
from chatrelay.game.reply_state_tracker import ReplyStateTracker
from chatrelay.models.player import Player, ReplyTarget


@pytest.fixture
def tracker():
    return ReplyStateTracker()


@pytest.fixture
def router(directory, tracker, registry, fake_bus, visibility):
    return MessageRouter("alpha", directory, tracker, registry, fake_bus, visibility)


@pytest.fixture
def commands(router, tracker, directory, visibility):
    return PrivateMessageCommands(router, tracker, directory, visibility)


class TestSend:
    """The message command."""

    @pytest.mark.asyncio
    async def test_send_routes_message(self, commands, steve):
        result = await commands.send(steve, "Alex", "hello")

        assert isinstance(result, DeliveredLocal)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\t\n"])
    async def test_blank_text_rejected(self, commands, tracker, steve, text):
        result = await commands.send(steve, "Alex", text)

        assert result == ValidationRejected(RejectionReason.EMPTY_MESSAGE)
        assert tracker.get_last_sent(steve.player_id) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["Steve", "steve", "STEVE"])
    async def test_messaging_self_rejected(self, commands, steve, name):
        result = await commands.send(steve, name, "hi me")

        assert result == ValidationRejected(RejectionReason.CANNOT_MESSAGE_SELF)

    @pytest.mark.asyncio
    async def test_rejection_does_not_route(self, tracker, directory, steve):
        router = MagicMock()
        router.route = AsyncMock()
        commands = PrivateMessageCommands(router, tracker, directory)

        await commands.send(steve, "Steve", "hi")
        await commands.send(steve, "Alex", "")

        router.route.assert_not_awaited()


class TestReply:
    """The reply command."""

    @pytest.mark.asyncio
    async def test_reply_without_target_rejected(self, commands, alex):
        result = await commands.reply(alex, "hello?")

        assert result == ValidationRejected(RejectionReason.NO_REPLY_TARGET)

    @pytest.mark.asyncio
    async def test_reply_reaches_last_sender(self, commands, tracker, steve, alex):
        await commands.send(steve, "Alex", "ping")

        result = await commands.reply(alex, "pong")

        assert isinstance(result, DeliveredLocal)
        assert result.recipient == steve
        assert tracker.get_last_sent(alex.player_id) == ReplyTarget.for_player(steve)

    @pytest.mark.asyncio
    async def test_reply_with_blank_text_rejected(self, commands, steve, alex):
        await commands.send(steve, "Alex", "ping")

        assert await commands.reply(alex, " ") == ValidationRejected(RejectionReason.EMPTY_MESSAGE)

    @pytest.mark.asyncio
    async def test_reply_to_remote_sender_uses_name(self, commands, tracker, registry, alex, fake_bus):
        tracker.record_inbound(alex.player_id, ReplyTarget.name_only("Notch"))
        await registry.register("Notch", instance_id="beta")

        result = await commands.reply(alex, "hey")

        assert isinstance(result, DeliveredRemote)
        assert result.recipient_name == "Notch"
        assert len(fake_bus.published) == 1

    @pytest.mark.asyncio
    async def test_reply_follows_rename_of_resident_target(self, commands, tracker, directory, steve, alex):
        await commands.send(steve, "Alex", "ping")
        renamed = Player(player_id=steve.player_id, name="Steve2")
        directory.remove(steve.player_id)
        directory.add(renamed)

        result = await commands.reply(alex, "pong")

        assert isinstance(result, DeliveredLocal)
        assert result.recipient == renamed

    @pytest.mark.asyncio
    async def test_reply_to_departed_player_not_found(self, commands, directory, steve, alex):
        await commands.send(steve, "Alex", "ping")
        directory.remove(steve.player_id)

        result = await commands.reply(alex, "pong")

        assert isinstance(result, NotFound)
        assert result.recipient_name == "Steve"


class TestLast:
    """The last-target command."""

    @pytest.mark.asyncio
    async def test_last_without_target_rejected(self, commands, steve):
        assert await commands.last(steve, "again") == ValidationRejected(RejectionReason.NO_LAST_TARGET)

    @pytest.mark.asyncio
    async def test_last_messages_previous_recipient(self, commands, steve, alex):
        await commands.send(steve, "Alex", "one")

        result = await commands.last(steve, "two")

        assert isinstance(result, DeliveredLocal)
        assert result.recipient == alex
        assert result.received_view.text == "two"


class TestSuggestRecipients:
    """Name completion."""

    def test_excludes_viewer(self, commands, steve):
        assert commands.suggest_recipients(steve) == ["Alex"]

    def test_excludes_hidden_players(self, commands, steve, alex, visibility):
        visibility.hide(alex)

        assert commands.suggest_recipients(steve) == []

    def test_prefix_is_case_insensitive(self, commands, directory, steve, player_factory):
        directory.add(player_factory("Alice"))
        directory.add(player_factory("Bob"))

        assert commands.suggest_recipients(steve, "al") == ["Alex", "Alice"]
        assert commands.suggest_recipients(steve, "B") == ["Bob"]
