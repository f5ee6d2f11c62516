from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class AccessState(str, Enum):
    LOCKED = "locked"      # content blocked, must earn access
    EARNING = "earning"    # workout in progress
    UNLOCKED = "unlocked"  # content accessible, session running
    EXPIRED = "expired"    # grace window before hard lock


class AccessEvent(Enum):
    WORKOUT_STARTED = "workout_started"
    WORKOUT_COMPLETED = "workout_completed"
    WORKOUT_CANCELLED = "workout_cancelled"
    SESSION_EXPIRED = "session_expired"
    GRACE_ELAPSED = "grace_elapsed"
    LOCKED = "locked"
    EMERGENCY_UNLOCKED = "emergency_unlocked"
    DAILY_CAP_REACHED = "daily_cap_reached"
    IGNORED = "ignored"


@dataclass
class TransitionResult:
    old_state: AccessState
    new_state: AccessState
    events: list[AccessEvent] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.old_state != self.new_state

    @property
    def ignored(self) -> bool:
        return AccessEvent.IGNORED in self.events

    def merge(self, other: TransitionResult) -> TransitionResult:
        """Chain a later result onto this one."""
        return TransitionResult(
            old_state=self.old_state,
            new_state=other.new_state,
            events=self.events + other.events,
        )

    def to_dict(self) -> dict:
        return {
            "changed": self.changed,
            "old_state": self.old_state.value,
            "new_state": self.new_state.value,
            "events": [e.value for e in self.events],
        }
