"""Daily usage ledger: earned vs consumed seconds per calendar day.

The ledger is the only writer of DailyUsageRecord. All reads and writes go
through an injected UsageStore; StorageUnavailable propagates to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from pushin_gate.errors import InvalidAmount
from pushin_gate.store import UsageStore

logger = logging.getLogger("pushin_gate")

UNLIMITED = -1
PLAN_TIER_SETTING = "plan_tier"


class PlanTier(str, Enum):
    FREE = "free"
    STANDARD = "standard"
    ADVANCED = "advanced"

    @classmethod
    def parse(cls, value: str | PlanTier) -> PlanTier:
        """Accepts tier names case-insensitively; 'pro' is the old name for standard."""
        if isinstance(value, PlanTier):
            return value
        name = str(value).strip().lower()
        if name == "pro":
            return cls.STANDARD
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"unknown plan tier {value!r}") from None

    @property
    def daily_cap_seconds(self) -> int:
        return DAILY_CAPS[self]


DAILY_CAPS: dict[PlanTier, int] = {
    PlanTier.FREE: 3600,       # 1 hour
    PlanTier.STANDARD: 10800,  # 3 hours
    PlanTier.ADVANCED: UNLIMITED,
}


def date_key(day: date | datetime) -> str:
    if isinstance(day, datetime):
        day = day.date()
    return day.isoformat()


@dataclass
class DailyUsageRecord:
    date: str
    plan_tier: PlanTier = PlanTier.FREE
    earned_seconds: int = 0
    consumed_seconds: int = 0
    emergency_unlocks_used: int = 0
    last_updated: datetime | None = None

    @property
    def daily_cap_seconds(self) -> int:
        return self.plan_tier.daily_cap_seconds

    @property
    def is_unlimited(self) -> bool:
        return self.daily_cap_seconds == UNLIMITED

    @property
    def remaining_seconds(self) -> int:
        # Not clamped: consumption beyond earned shows as negative
        return self.earned_seconds - self.consumed_seconds

    @property
    def has_reached_cap(self) -> bool:
        if self.is_unlimited:
            return False
        return self.consumed_seconds >= self.daily_cap_seconds

    @property
    def progress(self) -> float:
        if self.is_unlimited:
            return 0.0
        return min(1.0, max(0.0, self.consumed_seconds / self.daily_cap_seconds))

    @property
    def remaining_available_seconds(self) -> int:
        earned_left = max(0, self.remaining_seconds)
        if self.is_unlimited:
            return earned_left
        cap_left = max(0, self.daily_cap_seconds - self.consumed_seconds)
        return min(cap_left, earned_left)

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "plan_tier": self.plan_tier.value,
            "earned_seconds": self.earned_seconds,
            "consumed_seconds": self.consumed_seconds,
            "emergency_unlocks_used": self.emergency_unlocks_used,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> DailyUsageRecord:
        last_updated = data.get("last_updated")
        return cls(
            date=str(data["date"]),
            plan_tier=PlanTier.parse(data.get("plan_tier", PlanTier.FREE)),
            earned_seconds=int(data.get("earned_seconds", 0)),
            consumed_seconds=int(data.get("consumed_seconds", 0)),
            emergency_unlocks_used=int(data.get("emergency_unlocks_used", 0)),
            last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
        )


def _check_amount(seconds: int) -> None:
    if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds <= 0:
        raise InvalidAmount(seconds)


class DailyUsageLedger:
    """Per-day accounting over a UsageStore. Rollover is implicit in the date key."""

    def __init__(self, store: UsageStore, default_plan_tier: PlanTier | str = PlanTier.FREE):
        self._store = store
        self._default_plan_tier = PlanTier.parse(default_plan_tier)

    @property
    def store(self) -> UsageStore:
        return self._store

    @property
    def default_plan_tier(self) -> PlanTier:
        return self._default_plan_tier

    async def _save(self, record: DailyUsageRecord) -> None:
        await self._store.put_record(record.date, record.to_dict())

    async def current_plan_tier(self) -> PlanTier:
        stored = await self._store.get_setting(PLAN_TIER_SETTING)
        if stored is None:
            return self._default_plan_tier
        return PlanTier.parse(stored)

    async def today(self, now: datetime, plan_tier: PlanTier | None = None) -> DailyUsageRecord:
        """Load today's record, creating it on the first access of the day."""
        key = date_key(now)
        data = await self._store.get_record(key)
        if data is not None:
            return DailyUsageRecord.from_dict(data)

        tier = PlanTier.parse(plan_tier) if plan_tier is not None else await self.current_plan_tier()
        record = DailyUsageRecord(date=key, plan_tier=tier, last_updated=now)
        await self._save(record)
        logger.debug(f"Ledger: new day {key} ({tier.value})")
        return record

    async def add_earned_time(self, seconds: int, now: datetime) -> DailyUsageRecord:
        _check_amount(seconds)
        record = await self.today(now)
        record.earned_seconds += seconds
        record.last_updated = now
        await self._save(record)
        return record

    async def consume_time(self, seconds: int, now: datetime) -> DailyUsageRecord:
        _check_amount(seconds)
        record = await self.today(now)
        record.consumed_seconds += seconds
        record.last_updated = now
        await self._save(record)
        return record

    async def has_hit_daily_cap(self, now: datetime) -> bool:
        record = await self.today(now)
        return record.has_reached_cap

    async def remaining_available_seconds(self, now: datetime) -> int:
        record = await self.today(now)
        return record.remaining_available_seconds

    async def update_plan_tier(self, plan_tier: PlanTier | str, now: datetime) -> DailyUsageRecord:
        tier = PlanTier.parse(plan_tier)
        await self._store.put_setting(PLAN_TIER_SETTING, tier.value)
        record = await self.today(now, plan_tier=tier)
        if record.plan_tier != tier:
            logger.info(f"Ledger: plan tier {record.plan_tier.value} -> {tier.value}")
            record.plan_tier = tier
            record.last_updated = now
            await self._save(record)
        return record

    async def record_emergency_unlock(self, now: datetime) -> DailyUsageRecord:
        record = await self.today(now)
        record.emergency_unlocks_used += 1
        record.last_updated = now
        await self._save(record)
        return record

    async def reset_today(self, now: datetime) -> DailyUsageRecord:
        record = await self.today(now)
        fresh = DailyUsageRecord(date=record.date, plan_tier=record.plan_tier, last_updated=now)
        await self._save(fresh)
        return fresh

    async def usage_history(self, days: int, now: datetime) -> list[DailyUsageRecord]:
        """Stored records for the last `days` days including today, newest first."""
        if days <= 0:
            return []
        newest = now.date()
        oldest = date_key(newest - timedelta(days=days - 1))
        keys = [k for k in await self._store.list_record_keys() if oldest <= k <= date_key(newest)]

        records = []
        for key in sorted(keys, reverse=True):
            data = await self._store.get_record(key)
            if data is not None:
                records.append(DailyUsageRecord.from_dict(data))
        return records

    async def weekly_usage(self, now: datetime) -> list[DailyUsageRecord]:
        """Exactly seven records ending today, oldest first. Missing days are empty."""
        by_date = {r.date: r for r in await self.usage_history(7, now)}
        tier = await self.current_plan_tier()
        week = []
        for offset in range(6, -1, -1):
            key = date_key(now.date() - timedelta(days=offset))
            week.append(by_date.get(key) or DailyUsageRecord(date=key, plan_tier=tier))
        return week

    async def cleanup_old_records(self, now: datetime, keep_days: int = 30) -> int:
        """Delete records older than `keep_days` days. Returns how many were removed."""
        if keep_days < 0:
            raise ValueError(f"keep_days must be >= 0 (got {keep_days})")
        cutoff = date_key(now.date() - timedelta(days=keep_days))
        stale = [k for k in await self._store.list_record_keys() if k < cutoff]
        for key in stale:
            await self._store.delete_record(key)
        if stale:
            logger.info(f"Ledger: removed {len(stale)} records older than {cutoff}")
        return len(stale)
