"""Workout reward calculator: pure logic, no I/O.

Converts workout performance into earned screen time. All reward math uses
integer rational arithmetic so results are exact and deterministic:

    earned_seconds = reps * 60 * rate_den * mult_den // (rate_num * mult_num)

where the rate is the reps (or held seconds, for plank) required per minute of
screen time and the multiplier is the mode's effort factor.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from fractions import Fraction

from pushin_gate.workout import Workout, WorkoutMode, is_time_based, normalize_workout_type

SECONDS_PER_MINUTE = 60


@dataclass(frozen=True)
class ModeProfile:
    multiplier: tuple[int, int]
    min_target: int
    # Rep-based workouts cap the target relative to desired minutes,
    # time-based workouts use a fixed max.
    max_factor: tuple[int, int] | None = None
    max_target: int | None = None


# Reps (or held seconds) per minute of screen time, as (numerator, denominator).
BASE_RATE_TABLE: dict[str, tuple[int, int]] = {
    "push-ups": (1, 1),        # 10 reps → 10 min
    "squats": (6, 5),          # 12 reps → 10 min
    "plank": (3, 1),           # 30 s held → 10 min
    "jumping-jacks": (5, 2),   # 25 reps → 10 min
    "burpees": (3, 5),         # 6 reps → 10 min
}
DEFAULT_BASE_RATE: tuple[int, int] = (1, 1)

MODE_PROFILES: dict[str, dict[WorkoutMode, ModeProfile]] = {
    "push-ups": {
        WorkoutMode.COZY: ModeProfile((7, 10), 3, max_factor=(5, 2)),
        WorkoutMode.NORMAL: ModeProfile((1, 1), 5, max_factor=(7, 2)),
        WorkoutMode.TUFF: ModeProfile((7, 5), 8, max_factor=(4, 1)),
    },
    "squats": {
        WorkoutMode.COZY: ModeProfile((3, 4), 4, max_factor=(5, 2)),
        WorkoutMode.NORMAL: ModeProfile((1, 1), 6, max_factor=(7, 2)),
        WorkoutMode.TUFF: ModeProfile((13, 10), 10, max_factor=(4, 1)),
    },
    "plank": {
        WorkoutMode.COZY: ModeProfile((7, 10), 20, max_target=60),
        WorkoutMode.NORMAL: ModeProfile((1, 1), 30, max_target=120),
        WorkoutMode.TUFF: ModeProfile((3, 2), 45, max_target=180),
    },
    "jumping-jacks": {
        WorkoutMode.COZY: ModeProfile((4, 5), 10, max_factor=(3, 1)),
        WorkoutMode.NORMAL: ModeProfile((1, 1), 15, max_factor=(4, 1)),
        WorkoutMode.TUFF: ModeProfile((6, 5), 25, max_factor=(9, 2)),
    },
    "burpees": {
        WorkoutMode.COZY: ModeProfile((3, 5), 2, max_factor=(2, 1)),
        WorkoutMode.NORMAL: ModeProfile((1, 1), 3, max_factor=(3, 1)),
        WorkoutMode.TUFF: ModeProfile((3, 2), 5, max_factor=(7, 2)),
    },
}

# Used for workout types without a profile.
DEFAULT_MODE_MULTIPLIERS: dict[WorkoutMode, tuple[int, int]] = {
    WorkoutMode.COZY: (7, 10),
    WorkoutMode.NORMAL: (1, 1),
    WorkoutMode.TUFF: (3, 2),
}


def _round_half_up(value: Fraction) -> int:
    return math.floor(value + Fraction(1, 2))


def format_duration(seconds: int) -> str:
    """Format seconds as '1h 5m', '4m 10s' or '45s'."""
    is_negative = seconds < 0
    total = abs(int(seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    sign = "-" if is_negative else ""
    if hours:
        return f"{sign}{hours}h {minutes}m"
    if minutes:
        return f"{sign}{minutes}m {secs}s"
    return f"{sign}{secs}s"


class WorkoutRewardCalculator:
    """Deterministic mapping from (workout type, reps, mode) to earned seconds.

    The tables are configuration; they can be replaced per instance. The
    contract (determinism, monotonicity in reps, non-negativity) holds for any
    table with positive rates and multipliers.
    """

    def __init__(
        self,
        base_rates: dict[str, tuple[int, int]] | None = None,
        mode_profiles: dict[str, dict[WorkoutMode, ModeProfile]] | None = None,
    ):
        self._base_rates = dict(base_rates if base_rates is not None else BASE_RATE_TABLE)
        self._mode_profiles = dict(mode_profiles if mode_profiles is not None else MODE_PROFILES)
        for name, (num, den) in self._base_rates.items():
            if num <= 0 or den <= 0:
                raise ValueError(f"base rate for {name!r} must be positive")

    @property
    def workout_types(self) -> list[str]:
        return sorted(self._base_rates)

    def _rate(self, workout_type: str) -> tuple[int, int]:
        return self._base_rates.get(workout_type, DEFAULT_BASE_RATE)

    def _multiplier(self, workout_type: str, mode: WorkoutMode) -> tuple[int, int]:
        profile = self._mode_profiles.get(workout_type)
        if profile is not None and mode in profile:
            return profile[mode].multiplier
        return DEFAULT_MODE_MULTIPLIERS[mode]

    def calculate_earned_time(
        self, workout_type: str, reps_completed: int, mode: WorkoutMode = WorkoutMode.NORMAL
    ) -> int:
        """Seconds of access earned for `reps_completed` reps.

        Non-positive reps earn 0; the result never decreases as reps grow.
        """
        if reps_completed <= 0:
            return 0

        key = normalize_workout_type(workout_type)
        rate_num, rate_den = self._rate(key)
        mult_num, mult_den = self._multiplier(key, WorkoutMode(mode))
        return reps_completed * SECONDS_PER_MINUTE * rate_den * mult_den // (rate_num * mult_num)

    def calculate_workout_target(
        self, workout_type: str, mode: WorkoutMode, desired_minutes: int
    ) -> int:
        """Reps (seconds for plank) needed to earn `desired_minutes` of access."""
        if desired_minutes <= 0:
            return 0

        key = normalize_workout_type(workout_type)
        mode = WorkoutMode(mode)
        rate = Fraction(*self._rate(key))
        profile = self._mode_profiles.get(key, {}).get(mode)
        if profile is None:
            mult = Fraction(*DEFAULT_MODE_MULTIPLIERS[mode])
            return max(1, _round_half_up(rate * desired_minutes * mult))

        target = _round_half_up(rate * desired_minutes * Fraction(*profile.multiplier))
        if profile.max_target is not None:
            max_value = profile.max_target
        elif profile.max_factor is not None:
            max_value = _round_half_up(desired_minutes * Fraction(*profile.max_factor))
        else:
            max_value = target
        # min wins when the bounds cross for very short requests
        return max(profile.min_target, min(target, max_value))

    def calculate_required_reps(
        self, workout_type: str, target_seconds: int, mode: WorkoutMode = WorkoutMode.NORMAL
    ) -> int:
        """Inverse hint for the UI: reps needed to unlock `target_seconds`."""
        if target_seconds <= 0:
            return 0
        minutes = _round_half_up(Fraction(target_seconds, SECONDS_PER_MINUTE))
        return self.calculate_workout_target(workout_type, mode, minutes)

    def reward_description(
        self, workout_type: str, reps: int, mode: WorkoutMode = WorkoutMode.NORMAL
    ) -> str:
        seconds = self.calculate_earned_time(workout_type, reps, mode)
        minutes = _round_half_up(Fraction(seconds, SECONDS_PER_MINUTE))
        unit = "sec" if is_time_based(workout_type) else "reps"
        return f"{reps} {unit} = {minutes} min unlock"

    def create_workout(
        self,
        workout_type: str,
        target_reps: int,
        mode: WorkoutMode,
        now: datetime,
        workout_id: str | None = None,
        metadata: dict | None = None,
    ) -> Workout:
        """Build a Workout whose earned time is fixed at creation."""
        earned = self.calculate_earned_time(workout_type, target_reps, mode)
        if earned <= 0:
            raise ValueError(f"workout {workout_type!r} with {target_reps} reps earns no time")
        return Workout(
            id=workout_id or f"workout-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:6]}",
            type=normalize_workout_type(workout_type),
            target_reps=target_reps,
            earned_time_seconds=earned,
            mode=WorkoutMode(mode),
            metadata=metadata,
        )


def reward_table(
    calculator: WorkoutRewardCalculator, mode: WorkoutMode, desired_minutes: int = 10
) -> list[dict]:
    """One row per workout type: the target for `desired_minutes` and what it earns."""
    rows = []
    for workout_type in calculator.workout_types:
        target = calculator.calculate_workout_target(workout_type, mode, desired_minutes)
        rows.append({
            "workout_type": workout_type,
            "unit": "sec" if is_time_based(workout_type) else "reps",
            "target": target,
            "earned_seconds": calculator.calculate_earned_time(workout_type, target, mode),
            "description": calculator.reward_description(workout_type, target, mode),
        })
    return rows
