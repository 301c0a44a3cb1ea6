"""Tests for DedupLedger."""

from patchin.ledger import DedupLedger


class TestIsNewEvent:
    """Tests for the processed-once test-and-set."""

    def test_first_offer_is_new(self, clock):
        ledger = DedupLedger(clock=clock)
        assert ledger.is_new_event("evt1") is True

    def test_second_offer_is_not_new(self, clock):
        """Same event delivered by two relays is processed once."""
        ledger = DedupLedger(clock=clock)
        ledger.is_new_event("evt1")
        assert ledger.is_new_event("evt1") is False
        assert ledger.seen_count == 1

    def test_seen_and_replied_are_independent(self, clock):
        ledger = DedupLedger(clock=clock)
        ledger.is_new_event("evt1")
        assert ledger.is_duplicate_reply("evt1") is False


class TestReplied:
    def test_mark_replied(self, clock):
        ledger = DedupLedger(clock=clock)
        ledger.mark_replied("evt1")
        assert ledger.is_duplicate_reply("evt1") is True

    def test_mark_replied_is_idempotent(self, clock):
        ledger = DedupLedger(clock=clock)
        ledger.mark_replied("evt1")
        ledger.mark_replied("evt1")
        assert ledger.replied_count == 1


class TestSweep:
    """Tests for TTL and size-cap eviction."""

    def test_sweep_keeps_fresh_entries(self, clock):
        ledger = DedupLedger(ttl_seconds=60, clock=clock)
        ledger.is_new_event("evt1")
        ledger.mark_replied("evt1")
        clock.advance(30)

        assert ledger.sweep() == 0
        assert ledger.is_new_event("evt1") is False
        assert ledger.is_duplicate_reply("evt1") is True

    def test_sweep_drops_expired_entries(self, clock):
        ledger = DedupLedger(ttl_seconds=60, clock=clock)
        ledger.is_new_event("old")
        ledger.mark_replied("old")
        clock.advance(61)
        ledger.is_new_event("new")

        assert ledger.sweep() == 2
        assert ledger.seen_count == 1
        assert ledger.is_duplicate_reply("old") is False
        assert ledger.is_new_event("new") is False

    def test_entries_survive_until_swept(self, clock):
        """Expiry only happens in sweep(), never during lookups."""
        ledger = DedupLedger(ttl_seconds=60, clock=clock)
        ledger.is_new_event("evt1")
        clock.advance(3600)
        assert ledger.is_new_event("evt1") is False

    def test_size_cap_drops_oldest(self, clock):
        ledger = DedupLedger(ttl_seconds=3600, max_size=3, clock=clock)
        for i in range(5):
            ledger.is_new_event(f"evt{i}")
            clock.advance(1)

        assert ledger.sweep() == 2
        assert ledger.seen_count == 3
        # evt0 and evt1 were evicted, so they look new again
        assert ledger.is_new_event("evt0") is True
        assert ledger.is_new_event("evt4") is False
