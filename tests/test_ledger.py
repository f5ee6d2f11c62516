"""Tests for DailyUsageLedger over the in-memory store."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from pushin_gate.errors import InvalidAmount
from pushin_gate.ledger import UNLIMITED, DailyUsageLedger, DailyUsageRecord, PlanTier
from pushin_gate.store import MemoryUsageStore

T0 = datetime(2026, 2, 11, 9, 0, tzinfo=timezone.utc)


# ── Helpers ───────────────────────────────────────────────────


def run(coro):
    """Run an async function in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def day(offset: int, hour: int = 9) -> datetime:
    return T0.replace(hour=hour) + timedelta(days=offset)


@pytest.fixture
def store():
    return MemoryUsageStore()


@pytest.fixture
def ledger(store):
    return DailyUsageLedger(store)


# ── PlanTier ──────────────────────────────────────────────────


class TestPlanTier:
    def test_caps(self):
        assert PlanTier.FREE.daily_cap_seconds == 3600
        assert PlanTier.STANDARD.daily_cap_seconds == 10800
        assert PlanTier.ADVANCED.daily_cap_seconds == UNLIMITED

    def test_parse(self):
        assert PlanTier.parse("Advanced") == PlanTier.ADVANCED
        assert PlanTier.parse("pro") == PlanTier.STANDARD
        assert PlanTier.parse(PlanTier.FREE) == PlanTier.FREE

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            PlanTier.parse("gold")


# ── DailyUsageRecord ──────────────────────────────────────────


class TestDailyUsageRecord:
    def test_cap_boundary(self):
        record = DailyUsageRecord(date="2026-02-11", consumed_seconds=3599)
        assert not record.has_reached_cap
        record.consumed_seconds = 3600
        assert record.has_reached_cap
        assert record.progress == 1.0

    def test_unlimited(self):
        record = DailyUsageRecord(date="2026-02-11", plan_tier=PlanTier.ADVANCED, consumed_seconds=10**6)
        assert not record.has_reached_cap
        assert record.progress == 0.0

    def test_remaining_can_go_negative(self):
        record = DailyUsageRecord(date="2026-02-11", earned_seconds=10, consumed_seconds=20)
        assert record.remaining_seconds == -10
        assert record.remaining_available_seconds == 0

    def test_remaining_available_bounded_by_cap(self):
        record = DailyUsageRecord(date="2026-02-11", earned_seconds=5000, consumed_seconds=3000)
        assert record.remaining_available_seconds == 600

    def test_remaining_available_unlimited(self):
        record = DailyUsageRecord(
            date="2026-02-11", plan_tier=PlanTier.ADVANCED, earned_seconds=5000, consumed_seconds=3000
        )
        assert record.remaining_available_seconds == 2000


# ── Ledger ────────────────────────────────────────────────────


class TestLedger:
    def test_today_created_lazily(self, ledger, store):
        record = run(ledger.today(day(0)))
        assert record.date == "2026-02-11"
        assert record.plan_tier == PlanTier.FREE
        assert (record.earned_seconds, record.consumed_seconds) == (0, 0)
        assert "2026-02-11" in store.records

    def test_invalid_amounts_touch_nothing(self, ledger, store):
        for bad in (0, -5):
            with pytest.raises(InvalidAmount):
                run(ledger.add_earned_time(bad, day(0)))
            with pytest.raises(InvalidAmount):
                run(ledger.consume_time(bad, day(0)))
        assert store.records == {}

    def test_free_tier_scenario(self, ledger):
        run(ledger.add_earned_time(3600, day(0)))
        record = run(ledger.consume_time(3600, day(0, hour=10)))
        assert record.has_reached_cap
        assert record.progress == 1.0
        assert record.last_updated == day(0, hour=10)
        assert run(ledger.has_hit_daily_cap(day(0)))

    def test_one_second_under_cap(self, ledger):
        run(ledger.consume_time(3599, day(0)))
        assert not run(ledger.has_hit_daily_cap(day(0)))

    def test_daily_rollover(self, ledger):
        run(ledger.add_earned_time(600, day(0)))
        run(ledger.consume_time(600, day(0)))
        record = run(ledger.today(day(1)))
        assert record.date == "2026-02-12"
        assert (record.earned_seconds, record.consumed_seconds) == (0, 0)

    def test_remaining_available(self, ledger):
        run(ledger.add_earned_time(5000, day(0)))
        run(ledger.consume_time(3000, day(0)))
        assert run(ledger.remaining_available_seconds(day(0))) == 600

    def test_update_plan_tier(self, ledger):
        run(ledger.today(day(0)))
        record = run(ledger.update_plan_tier("pro", day(0)))
        assert record.plan_tier == PlanTier.STANDARD
        assert run(ledger.current_plan_tier()) == PlanTier.STANDARD
        assert run(ledger.today(day(0))).plan_tier == PlanTier.STANDARD
        assert run(ledger.today(day(1))).plan_tier == PlanTier.STANDARD

    def test_default_tier(self, store):
        ledger = DailyUsageLedger(store, default_plan_tier="advanced")
        assert run(ledger.today(day(0))).plan_tier == PlanTier.ADVANCED

    def test_emergency_counter(self, ledger):
        run(ledger.record_emergency_unlock(day(0)))
        record = run(ledger.record_emergency_unlock(day(0)))
        assert record.emergency_unlocks_used == 2
        assert run(ledger.today(day(1))).emergency_unlocks_used == 0

    def test_reset_today(self, ledger):
        run(ledger.update_plan_tier("standard", day(0)))
        run(ledger.add_earned_time(600, day(0)))
        run(ledger.consume_time(300, day(0)))
        record = run(ledger.reset_today(day(0)))
        assert (record.earned_seconds, record.consumed_seconds) == (0, 0)
        assert record.plan_tier == PlanTier.STANDARD


class TestLedgerHistory:
    def _seed(self, ledger, offsets):
        for offset in offsets:
            run(ledger.consume_time(60 * (abs(offset) + 1), day(offset)))

    def test_usage_history_newest_first(self, ledger):
        self._seed(ledger, [-5, -2, -1, 0])
        history = run(ledger.usage_history(3, day(0)))
        assert [r.date for r in history] == ["2026-02-11", "2026-02-10", "2026-02-09"]

    def test_usage_history_zero_days(self, ledger):
        self._seed(ledger, [0])
        assert run(ledger.usage_history(0, day(0))) == []

    def test_weekly_usage_fills_gaps(self, ledger):
        self._seed(ledger, [-6, -3, 0])
        week = run(ledger.weekly_usage(day(0)))
        assert len(week) == 7
        assert week[0].date == "2026-02-05"
        assert week[-1].date == "2026-02-11"
        assert [r.consumed_seconds for r in week] == [420, 0, 0, 240, 0, 0, 60]

    def test_cleanup_old_records(self, ledger, store):
        self._seed(ledger, [-40, -31, -30, -1, 0])
        removed = run(ledger.cleanup_old_records(day(0), keep_days=30))
        assert removed == 2
        assert sorted(store.records) == ["2026-01-12", "2026-02-10", "2026-02-11"]

    def test_cleanup_rejects_negative(self, ledger):
        with pytest.raises(ValueError):
            run(ledger.cleanup_old_records(day(0), keep_days=-1))
