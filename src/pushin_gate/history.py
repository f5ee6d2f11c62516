"""Completed-workout log and streak statistics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable

from pushin_gate.store import UsageStore
from pushin_gate.workout import Workout, WorkoutMode


@dataclass(frozen=True)
class WorkoutHistoryEntry:
    id: str
    workout_type: str
    reps_completed: int
    earned_time_seconds: int
    mode: WorkoutMode
    completed_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "workout_type": self.workout_type,
            "reps_completed": self.reps_completed,
            "earned_time_seconds": self.earned_time_seconds,
            "mode": self.mode.value,
            "completed_at": self.completed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> WorkoutHistoryEntry:
        return cls(
            id=str(data["id"]),
            workout_type=str(data["workout_type"]),
            reps_completed=int(data["reps_completed"]),
            earned_time_seconds=int(data["earned_time_seconds"]),
            mode=WorkoutMode(data["mode"]),
            completed_at=datetime.fromisoformat(data["completed_at"]),
        )


@dataclass
class StreakStats:
    current_streak: int = 0
    longest_streak: int = 0
    total_workouts: int = 0
    completed_today: bool = False

    def to_dict(self) -> dict:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "total_workouts": self.total_workouts,
            "completed_today": self.completed_today,
        }


def compute_streak_stats(completion_dates: Iterable[date], today: date) -> StreakStats:
    """Streaks over distinct workout days.

    The current streak is the run of consecutive days ending today, or ending
    yesterday when nothing has been done yet today.
    """
    dates = list(completion_dates)
    days = sorted(set(dates))
    if not days:
        return StreakStats()

    longest = run = 1
    for prev, cur in zip(days, days[1:]):
        run = run + 1 if cur - prev == timedelta(days=1) else 1
        longest = max(longest, run)

    day_set = set(days)
    yesterday = today - timedelta(days=1)
    current = 0
    cursor = today if today in day_set else yesterday
    while cursor in day_set:
        current += 1
        cursor -= timedelta(days=1)

    return StreakStats(
        current_streak=current,
        longest_streak=longest,
        total_workouts=len(dates),
        completed_today=today in day_set,
    )


class WorkoutHistory:
    def __init__(self, store: UsageStore):
        self._store = store

    async def record_completion(
        self, workout: Workout, reps_completed: int, now: datetime
    ) -> WorkoutHistoryEntry:
        entry = WorkoutHistoryEntry(
            id=workout.id,
            workout_type=workout.type,
            reps_completed=reps_completed,
            earned_time_seconds=workout.earned_time_seconds,
            mode=workout.mode,
            completed_at=now,
        )
        await self._store.append_history(entry.to_dict())
        return entry

    async def entries(self) -> list[WorkoutHistoryEntry]:
        """All entries, oldest first."""
        rows = await self._store.list_history()
        return sorted((WorkoutHistoryEntry.from_dict(r) for r in rows), key=lambda e: e.completed_at)

    async def recent(self, limit: int = 10) -> list[WorkoutHistoryEntry]:
        if limit <= 0:
            return []
        return list(reversed(await self.entries()))[:limit]

    async def completed_on(self, day: date) -> list[WorkoutHistoryEntry]:
        return [e for e in await self.entries() if e.completed_at.date() == day]

    async def streak_stats(self, now: datetime) -> StreakStats:
        entries = await self.entries()
        return compute_streak_stats((e.completed_at.date() for e in entries), now.date())
