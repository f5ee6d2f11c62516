"""Unlock session value: pure duration/expiry math, no I/O."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from pushin_gate.errors import InvalidDuration

REASON_WORKOUT_COMPLETED = "workout_completed"
REASON_EMERGENCY_OVERRIDE = "emergency_override"


def whole_seconds(delta: timedelta) -> int:
    """Truncate a timedelta to whole seconds (toward zero)."""
    return int(delta.total_seconds())


@dataclass(frozen=True)
class UnlockSession:
    """One grant of access time."""

    id: str
    start_time: datetime
    duration_seconds: int
    reason: str

    def __post_init__(self):
        if self.duration_seconds <= 0:
            raise InvalidDuration(self.duration_seconds)
        if not self.reason:
            raise ValueError("reason cannot be empty")

    @classmethod
    def start(cls, duration_seconds: int, reason: str, now: datetime) -> UnlockSession:
        return cls(
            id=f"session-{uuid.uuid4().hex[:12]}",
            start_time=now,
            duration_seconds=duration_seconds,
            reason=reason,
        )

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(seconds=self.duration_seconds)

    def remaining_seconds(self, now: datetime) -> int:
        return max(0, whole_seconds(self.end_time - now))

    def is_expired(self, now: datetime) -> bool:
        return now > self.end_time

    # ---- Serialization ----

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start_time": self.start_time.isoformat(),
            "duration_seconds": self.duration_seconds,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> UnlockSession:
        start_time = datetime.fromisoformat(data["start_time"])
        if start_time.tzinfo is None:
            raise ValueError(f"start_time has no timezone: {data['start_time']!r}")
        return cls(
            id=str(data["id"]),
            start_time=start_time,
            duration_seconds=int(data["duration_seconds"]),
            reason=str(data["reason"]),
        )
