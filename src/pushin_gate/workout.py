"""Workout value and the workout-tracking collaborator.

Time values are injected via `now`; nothing here reads a clock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol

from pushin_gate.session import whole_seconds

TIME_BASED_WORKOUTS: frozenset[str] = frozenset({"plank"})


class WorkoutMode(str, Enum):
    COZY = "cozy"
    NORMAL = "normal"
    TUFF = "tuff"

    @property
    def display_name(self) -> str:
        return self.value.title()

    @property
    def description(self) -> str:
        return {
            WorkoutMode.COZY: "Gentle start",
            WorkoutMode.NORMAL: "Balanced pace",
            WorkoutMode.TUFF: "Maximum gains",
        }[self]


def normalize_workout_type(workout_type: str) -> str:
    """'Jumping_Jacks' / 'jumping jacks' -> 'jumping-jacks'."""
    return workout_type.strip().lower().replace("_", "-").replace(" ", "-")


def is_time_based(workout_type: str) -> bool:
    return normalize_workout_type(workout_type) in TIME_BASED_WORKOUTS


@dataclass(frozen=True)
class Workout:
    id: str
    type: str
    target_reps: int
    earned_time_seconds: int
    mode: WorkoutMode = WorkoutMode.NORMAL
    metadata: dict | None = field(default=None, compare=False)

    def __post_init__(self):
        if not self.type:
            raise ValueError("type cannot be empty")
        if self.target_reps <= 0:
            raise ValueError(f"target_reps must be positive (got {self.target_reps})")
        if self.earned_time_seconds <= 0:
            raise ValueError(f"earned_time_seconds must be positive (got {self.earned_time_seconds})")

    def to_dict(self) -> dict:
        out = {
            "id": self.id,
            "type": self.type,
            "target_reps": self.target_reps,
            "earned_time_seconds": self.earned_time_seconds,
            "mode": self.mode.value,
        }
        if self.metadata is not None:
            out["metadata"] = self.metadata
        return out


class WorkoutTracker(Protocol):
    """Collaborator that judges workout progress at a given instant."""

    def record_workout_start(self, workout: Workout, now: datetime) -> None: ...

    def is_completed(self, now: datetime) -> bool: ...

    def get_current_workout(self) -> Workout | None: ...

    def clear_workout(self) -> None: ...

    def get_progress(self, now: datetime) -> float: ...


class RepCountingTracker:
    """In-memory tracker fed by rep events.

    Rep-based workouts complete once counted reps reach the target. Time-based
    workouts (plank) count held seconds: they complete when the recorded
    seconds or the time elapsed since start reach the target.
    """

    def __init__(self):
        self._current_workout: Workout | None = None
        self._started_at: datetime | None = None
        self._completed_reps: int = 0

    @property
    def completed_reps(self) -> int:
        return self._completed_reps

    @property
    def started_at(self) -> datetime | None:
        return self._started_at

    def record_workout_start(self, workout: Workout, now: datetime) -> None:
        self._current_workout = workout
        self._started_at = now
        self._completed_reps = 0

    def record_rep(self, now: datetime) -> None:
        self.record_reps(1, now)

    def record_reps(self, count: int, now: datetime) -> None:
        if self._current_workout is None or count <= 0:
            return
        self._completed_reps += count

    def effective_reps(self, now: datetime) -> int:
        workout = self._current_workout
        if workout is None:
            return 0
        if is_time_based(workout.type) and self._started_at is not None:
            held = max(0, whole_seconds(now - self._started_at))
            return max(self._completed_reps, held)
        return self._completed_reps

    def get_progress(self, now: datetime) -> float:
        if self._current_workout is None:
            return 0.0
        progress = self.effective_reps(now) / self._current_workout.target_reps
        return min(1.0, max(0.0, progress))

    def is_completed(self, now: datetime) -> bool:
        return (
            self._current_workout is not None
            and self.effective_reps(now) >= self._current_workout.target_reps
        )

    def get_current_workout(self) -> Workout | None:
        return self._current_workout

    def clear_workout(self) -> None:
        self._current_workout = None
        self._started_at = None
        self._completed_reps = 0
