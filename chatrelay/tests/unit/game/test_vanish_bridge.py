"""
Tests for VanishBridge.

Registry writes run as tracked tasks, so tests await the returned task (or
the task manager) before checking Redis.
"""

# pylint: disable=redefined-outer-name,protected-access

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from chatrelay.app.tracked_task_manager import TrackedTaskManager
from chatrelay.game.vanish_bridge import VanishBridge
from chatrelay.realtime.main_context_dispatcher import MainContextDispatcher


@pytest.fixture
def task_manager():
    return TrackedTaskManager()


@pytest.fixture
def dispatcher():
    return MainContextDispatcher(maxsize=10)


@pytest.fixture
def bridge(registry, directory, task_manager, dispatcher, visibility):
    return VanishBridge(registry, directory, task_manager, dispatcher, visibility, resync_delay=0.01)


class TestVisibilityChanges:
    """Hide and show."""

    @pytest.mark.asyncio
    async def test_hide_unregisters(self, bridge, registry, steve):
        await registry.register("Steve")

        await bridge.on_visibility_changed(steve, hidden=True)

        assert await registry.exists_anywhere("steve") is False

    @pytest.mark.asyncio
    async def test_show_registers(self, bridge, registry, steve):
        await bridge.on_visibility_changed(steve, hidden=False)

        assert await registry.exists_anywhere("steve") is True

    @pytest.mark.asyncio
    async def test_rapid_hide_show_applies_in_order(self, bridge, registry, steve):
        await registry.register("Steve")

        bridge.on_visibility_changed(steve, hidden=True)
        bridge.on_visibility_changed(steve, hidden=False)
        bridge.on_visibility_changed(steve, hidden=True)
        last = bridge.on_visibility_changed(steve, hidden=False)
        await last

        assert await registry.exists_anywhere("steve") is True

    @pytest.mark.asyncio
    async def test_writes_for_same_player_are_serialized(self, directory, task_manager, dispatcher, steve):
        order = []
        gate = asyncio.Event()
        registry = MagicMock()

        async def slow_unregister(name):
            await gate.wait()
            order.append(("unregister", name))
            return True

        async def fast_register(name):
            order.append(("register", name))
            return True

        registry.unregister = AsyncMock(side_effect=slow_unregister)
        registry.register = AsyncMock(side_effect=fast_register)
        bridge = VanishBridge(registry, directory, task_manager, dispatcher)

        first = bridge.on_visibility_changed(steve, hidden=True)
        second = bridge.on_visibility_changed(steve, hidden=False)
        await asyncio.sleep(0.01)
        assert not order

        gate.set()
        await asyncio.gather(first, second)

        assert order == [("unregister", "Steve"), ("register", "Steve")]

    @pytest.mark.asyncio
    async def test_write_chain_is_forgotten_when_done(self, bridge, steve):
        await bridge.on_visibility_changed(steve, hidden=False)
        await asyncio.sleep(0)

        assert not bridge._last_write


class TestJoinAndQuit:
    """Join/quit handling."""

    @pytest.mark.asyncio
    async def test_visible_join_registers(self, bridge, registry, steve):
        await bridge.on_player_join(steve)

        assert await registry.members() == {"steve"}

    @pytest.mark.asyncio
    async def test_hidden_join_does_not_register(self, bridge, registry, steve, visibility):
        visibility.hide(steve)

        assert bridge.on_player_join(steve) is None
        assert await registry.members() == set()

    @pytest.mark.asyncio
    async def test_quit_unregisters(self, bridge, registry, steve):
        await registry.register("Steve")

        await bridge.on_player_quit(steve)

        assert await registry.members() == set()

    @pytest.mark.asyncio
    async def test_sync_player_follows_visibility(self, bridge, registry, steve, visibility):
        await bridge.sync_player(steve)
        assert await registry.members() == {"steve"}

        visibility.hide(steve)
        await bridge.sync_player(steve)
        assert await registry.members() == set()


class TestBulkOperations:
    """Startup registration and resync."""

    @pytest.mark.asyncio
    async def test_register_online_players_skips_hidden(self, bridge, registry, alex, visibility):
        visibility.hide(alex)

        assert await bridge.register_online_players() == 1

        assert await registry.members() == {"steve"}

    @pytest.mark.asyncio
    async def test_resync_all_reconciles_registry(self, bridge, registry, alex, visibility):
        await registry.register("Steve")
        await registry.register("Alex")
        visibility.hide(alex)

        assert await bridge.resync_all() == (1, 1)

        assert await registry.members() == {"steve"}


class TestExtensionEnabled:
    """Deferred resync when a visibility extension loads."""

    def test_extension_markers_match_case_insensitively(self, bridge):
        assert bridge.is_visibility_extension("SuperVanish")
        assert bridge.is_visibility_extension("EssentialsX")
        assert not bridge.is_visibility_extension("WorldEdit")

    def test_custom_markers(self, registry, directory, task_manager, dispatcher):
        bridge = VanishBridge(registry, directory, task_manager, dispatcher, extension_markers=["Cloak"])

        assert bridge.is_visibility_extension("cloakplus")
        assert not bridge.is_visibility_extension("SuperVanish")

    @pytest.mark.asyncio
    async def test_unrelated_extension_schedules_nothing(self, bridge, task_manager):
        assert bridge.on_extension_enabled("WorldEdit") is False
        assert task_manager.pending_count == 0

    @pytest.mark.asyncio
    async def test_resync_is_deferred_then_run_on_main_context(
        self, bridge, registry, task_manager, dispatcher, alex, visibility
    ):
        await registry.register("Alex")
        visibility.hide(alex)

        assert bridge.on_extension_enabled("PremiumVanish") is True
        assert dispatcher.pending() == 0

        await task_manager.wait_for_pending(timeout=1)
        assert dispatcher.pending() == 1

        await dispatcher.drain()
        await task_manager.wait_for_pending(timeout=1)

        assert await registry.members() == {"steve"}
