"""
Tests for per-identity usage accounting.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from case_critique.core.usage_ledger import UsageLedger, approximate_token_count


class TestUsageRecordLifecycle:
    """Test record creation and accounting."""

    def test_get_creates_fresh_record(self, ledger, clock):
        record = ledger.get("alice")

        assert record.daily_count == 0
        assert record.minute_count == 0
        assert record.total_requests == 0
        assert record.total_tokens == 0
        assert record.last_daily_reset == clock.now
        assert record.last_minute_reset == clock.now

    def test_record_increments_counters(self, ledger):
        ledger.record("alice", 120)
        record = ledger.record("alice", 80)

        assert record.daily_count == 2
        assert record.minute_count == 2
        assert record.total_requests == 2
        assert record.total_tokens == 200

    def test_get_returns_copy(self, ledger):
        record = ledger.get("alice")
        record.minute_count = 99

        assert ledger.get("alice").minute_count == 0

    def test_identities_are_independent(self, ledger):
        ledger.record("alice", 10)
        assert ledger.get("bob").total_requests == 0

    def test_minute_window_resets_lazily(self, ledger, clock):
        ledger.record("alice", 10)
        clock.advance(seconds=61)
        record = ledger.record("alice", 10)

        assert record.minute_count == 1
        assert record.daily_count == 2
        assert record.last_minute_reset == clock.now

    def test_daily_window_resets_lazily(self, ledger, clock):
        ledger.record("alice", 10)
        clock.advance(hours=24, seconds=1)
        record = ledger.record("alice", 10)

        assert record.daily_count == 1
        assert record.total_requests == 2

    def test_invalid_limit_rejected(self):
        with pytest.raises(ValueError, match="requests_per_minute"):
            UsageLedger(requests_per_minute=0)


class TestUsageStatus:
    """Test quota reporting."""

    def test_initial_status(self, ledger, clock):
        status = ledger.status("alice")

        assert status.can_proceed is True
        assert status.minute_remaining == 15
        assert status.daily_remaining == 15 * 24
        assert status.next_minute_reset == clock.now + timedelta(seconds=60)
        assert status.next_daily_reset == clock.now + timedelta(hours=24)

    def test_minute_ceiling_fences_sixteenth_request(self, ledger, clock):
        """15 requests fill the window; a new window admits request 17."""
        for _ in range(15):
            assert ledger.status("alice").can_proceed
            ledger.record("alice", 100)

        blocked = ledger.status("alice")
        assert blocked.can_proceed is False
        assert blocked.minute_remaining == 0

        clock.advance(seconds=61)
        status = ledger.status("alice")
        assert status.can_proceed is True
        assert status.minute_remaining == 15
        assert status.daily_remaining == 15 * 24 - 15

        record = ledger.record("alice", 100)
        assert record.minute_count == 1

    def test_daily_ceiling_is_derived(self, clock):
        ledger = UsageLedger(requests_per_minute=1, clock=clock)
        assert ledger.daily_limit == 24

        for _ in range(24):
            ledger.record("alice", 1)
            clock.advance(seconds=61)

        status = ledger.status("alice")
        assert status.minute_remaining == 1
        assert status.daily_remaining == 0
        assert status.can_proceed is False

        clock.advance(hours=24)
        assert ledger.status("alice").can_proceed is True


class TestReservations:
    """Test atomic check-and-reserve."""

    def test_reservation_counts_against_quota(self, clock):
        ledger = UsageLedger(requests_per_minute=1, clock=clock)

        assert ledger.reserve("alice").can_proceed is True
        assert ledger.reserve("alice").can_proceed is False

        ledger.release("alice")
        assert ledger.reserve("alice").can_proceed is True

    def test_release_without_reservation_is_harmless(self, ledger):
        ledger.release("alice")
        assert ledger.status("alice").minute_remaining == 15

    def test_concurrent_reservations_never_exceed_ceiling(self, clock):
        ledger = UsageLedger(requests_per_minute=5, clock=clock)

        with ThreadPoolExecutor(max_workers=8) as pool:
            statuses = list(pool.map(lambda _: ledger.reserve("alice"), range(40)))

        assert sum(1 for status in statuses if status.can_proceed) == 5

    def test_concurrent_records_are_not_lost(self):
        ledger = UsageLedger(requests_per_minute=10_000)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda _: ledger.record("alice", 2), range(200)))

        record = ledger.get("alice")
        assert record.total_requests == 200
        assert record.total_tokens == 400

    def test_lock_registry_does_not_grow_with_identities(self, ledger):
        for index in range(100):
            ledger.record(f"user-{index}")
        ledger.clear("user-0")

        assert len(ledger._locks) == 0


class TestAdminHooks:
    """Test simulate/clear/stats/snapshot."""

    def test_simulate_records_requests(self, ledger):
        record = ledger.simulate("alice", 3)

        assert record.total_requests == 3
        assert 1500 <= record.total_tokens <= 3 * 1499

    def test_simulate_zero_requests(self, ledger):
        assert ledger.simulate("alice", 0).total_requests == 0

    def test_simulate_negative_rejected(self, ledger):
        with pytest.raises(ValueError):
            ledger.simulate("alice", -1)

    def test_clear_forgets_identity(self, ledger):
        ledger.simulate("alice", 15)
        ledger.clear("alice")

        assert ledger.status("alice").minute_remaining == 15
        assert ledger.get("alice").total_requests == 0

    def test_stats_summary(self, ledger):
        ledger.record("alice", 40)
        stats = ledger.stats("alice")

        assert stats.identity == "alice"
        assert stats.total_requests == 1
        assert stats.total_tokens == 40
        assert stats.minute_requests == 1
        assert stats.minute_remaining == 14
        assert stats.can_proceed is True

    def test_snapshot_lists_identities(self, ledger):
        ledger.record("alice", 1)
        ledger.record("bob", 1)

        assert set(ledger.snapshot()) == {"alice", "bob"}


class TestTokenApproximation:
    """Test the character-length token proxy."""

    def test_counts_characters(self):
        assert approximate_token_count("abcdef") == 6

    def test_empty(self):
        assert approximate_token_count("") == 0
        assert approximate_token_count(None) == 0
