"""Tests for CooldownRegistry."""

from patchin.conversation import CooldownRegistry, CooldownScope, ConversationTracker

COOLDOWNS = {"restart": 60_000, "status": 10_000}


def make_registry(clock):
    tracker = ConversationTracker(clock=clock)
    return CooldownRegistry(tracker, cooldowns_ms=COOLDOWNS, clock=clock), tracker


class TestCheckCooldown:
    """Tests for the global and per-sender gates."""

    def test_never_executed_is_allowed(self, clock):
        registry, _ = make_registry(clock)
        status = registry.check_cooldown("status", "alice")
        assert status.allowed is True
        assert status.remaining_seconds == 0

    def test_global_gate_blocks_other_senders(self, clock):
        registry, _ = make_registry(clock)
        registry.mark_executed("restart", "alice")
        clock.advance(20)

        status = registry.check_cooldown("restart", "bob")
        assert status.allowed is False
        assert status.scope == CooldownScope.GLOBAL
        assert status.remaining_seconds == 40

    def test_per_sender_gate_after_global_clears(self, clock):
        """A sender stamp outliving the global one still blocks that sender."""
        registry, tracker = make_registry(clock)
        tracker.get_or_create("alice").last_command_time["status"] = clock.now
        clock.advance(3)

        status = registry.check_cooldown("status", "alice")
        assert status.allowed is False
        assert status.scope == CooldownScope.PER_SENDER
        assert status.remaining_seconds == 7

    def test_allowed_once_window_elapses(self, clock):
        registry, _ = make_registry(clock)
        registry.mark_executed("status", "alice")
        clock.advance(10)
        assert registry.check_cooldown("status", "alice").allowed is True

    def test_remaining_rounds_up(self, clock):
        registry, _ = make_registry(clock)
        registry.mark_executed("status", "alice")
        clock.advance(9.5)
        assert registry.check_cooldown("status", "alice").remaining_seconds == 1

    def test_commands_are_independent(self, clock):
        registry, _ = make_registry(clock)
        registry.mark_executed("restart", "alice")
        assert registry.check_cooldown("status", "alice").allowed is True

    def test_unknown_command_uses_default(self, clock):
        registry, _ = make_registry(clock)
        assert registry.cooldown_seconds("task") == 30


class TestMarkExecuted:
    def test_stamps_sender_state(self, clock):
        registry, tracker = make_registry(clock)
        registry.mark_executed("status", "alice")
        assert tracker.get("alice").last_command_time["status"] == clock.now


class TestPrune:
    def test_prune_drops_elapsed_stamps_only(self, clock):
        registry, tracker = make_registry(clock)
        registry.mark_executed("status", "alice")
        registry.mark_executed("restart", "alice")
        clock.advance(30)

        assert registry.prune() == 2  # global + per-sender status
        assert "status" not in tracker.get("alice").last_command_time
        assert registry.check_cooldown("restart", "bob").allowed is False
