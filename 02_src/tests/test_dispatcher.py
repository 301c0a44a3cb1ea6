"""Tests for CommandDispatcher and the default command table."""

import asyncio
import re
from unittest.mock import AsyncMock

import pytest

from patchin.commands import Command, CommandDispatcher, build_default_commands
from patchin.conversation import ConversationTracker, CooldownRegistry
from patchin.errors import GatewayError


@pytest.fixture
def registry(clock):
    tracker = ConversationTracker(clock=clock)
    return CooldownRegistry(tracker, cooldowns_ms={"status": 10_000, "restart": 60_000}, clock=clock)


@pytest.fixture
def dispatcher(gateway, registry):
    return CommandDispatcher(build_default_commands(gateway), registry)


class TestMatch:
    """Tests for command matching."""

    def test_no_command_returns_none(self, dispatcher):
        assert dispatcher.match("hello there") is None

    def test_match_is_case_insensitive(self, dispatcher):
        assert dispatcher.match("🦀STATUS please").name == "status"

    def test_first_row_wins(self, dispatcher):
        assert dispatcher.match("🦀restart then 🦀status").name == "status"

    def test_multi_word_commands(self, dispatcher):
        assert dispatcher.match("🦀current task?").name == "task"
        assert dispatcher.match("🦀New Session").name == "new_session"

    def test_prefix_is_required(self, dispatcher):
        assert dispatcher.match("status") is None


class TestDispatch:
    """Tests for dispatch() with cooldowns."""

    @pytest.mark.asyncio
    async def test_non_command_returns_none(self, dispatcher, gateway):
        assert await dispatcher.dispatch("hello", "alice") is None
        gateway.status.assert_not_called()

    @pytest.mark.asyncio
    async def test_executes_action(self, dispatcher, gateway):
        result = await dispatcher.dispatch("🦀status", "alice")
        assert result == "📊 Gateway Status:\nrunning"
        gateway.status.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_second_call_within_cooldown_is_refused(self, dispatcher, gateway, clock):
        await dispatcher.dispatch("🦀status", "alice")
        clock.advance(4)
        result = await dispatcher.dispatch("🦀status", "alice")

        assert result == "⏳ Command on cooldown. Please wait 6 seconds before trying again."
        assert gateway.status.await_count == 1

    @pytest.mark.asyncio
    async def test_global_cooldown_applies_across_senders(self, dispatcher, gateway):
        await dispatcher.dispatch("🦀restart", "alice")
        result = await dispatcher.dispatch("🦀restart", "bob")

        assert result.startswith("⏳ Command on cooldown")
        assert gateway.restart.await_count == 1

    @pytest.mark.asyncio
    async def test_runs_again_after_cooldown(self, dispatcher, gateway, clock):
        await dispatcher.dispatch("🦀status", "alice")
        clock.advance(10)
        await dispatcher.dispatch("🦀status", "alice")
        assert gateway.status.await_count == 2

    @pytest.mark.asyncio
    async def test_refusal_does_not_extend_cooldown(self, dispatcher, gateway, clock):
        await dispatcher.dispatch("🦀status", "alice")
        clock.advance(5)
        await dispatcher.dispatch("🦀status", "alice")
        clock.advance(5)
        await dispatcher.dispatch("🦀status", "alice")
        assert gateway.status.await_count == 2

    @pytest.mark.asyncio
    async def test_gateway_error_becomes_text(self, dispatcher, gateway, registry):
        gateway.status.side_effect = GatewayError("Failed to get gateway status: boom")
        result = await dispatcher.dispatch("🦀status", "alice")

        assert result == "❌ Error: Failed to get gateway status: boom"
        # failures still start the cooldown
        assert registry.check_cooldown("status", "alice").allowed is False


class TestTimeouts:
    @pytest.mark.asyncio
    async def test_action_timeout_becomes_text(self, registry):
        async def slow():
            await asyncio.sleep(1)
            return "late"

        command = Command("slow", re.compile("slow"), slow, timeout=0.01)
        dispatcher = CommandDispatcher([command], registry)

        result = await dispatcher.dispatch("slow", "alice")
        assert result.startswith("❌ Error: slow timed out after")

    @pytest.mark.asyncio
    async def test_shielded_action_survives_timeout(self, registry):
        """A restart is never cut off halfway."""
        finished = asyncio.Event()

        async def restart():
            await asyncio.sleep(0.05)
            finished.set()
            return "restarted"

        command = Command("restart", re.compile("restart"), restart, timeout=0.01, shielded=True)
        dispatcher = CommandDispatcher([command], registry)

        result = await dispatcher.dispatch("restart", "alice")
        assert result.startswith("❌ Error: restart timed out")
        assert not finished.is_set()

        await dispatcher.drain()
        assert finished.is_set()

    @pytest.mark.asyncio
    async def test_drain_without_pending_work(self, registry):
        dispatcher = CommandDispatcher([], registry)
        await dispatcher.drain()


class TestCommandTable:
    def test_default_commands_in_order(self, gateway):
        names = [c.name for c in build_default_commands(gateway)]
        assert names == ["status", "task", "new_session", "restart"]

    def test_only_restart_is_shielded(self, gateway):
        shielded = [c.name for c in build_default_commands(gateway) if c.shielded]
        assert shielded == ["restart"]

    @pytest.mark.asyncio
    async def test_actions_are_bound_to_gateway(self, registry):
        gateway = AsyncMock()
        gateway.new_session.return_value = "✅ New session started!"
        dispatcher = CommandDispatcher(build_default_commands(gateway), registry)

        assert await dispatcher.dispatch("🦀new session", "alice") == "✅ New session started!"
