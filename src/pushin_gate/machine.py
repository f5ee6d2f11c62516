"""Access state machine: pure logic, no I/O.

All time values are timezone-aware datetimes injected via `now` parameters for
deterministic testing. The machine never reads a clock and never raises for a
command issued in the wrong state: such commands are ignored and reported as
an IGNORED event.
"""

from __future__ import annotations

import logging
from datetime import datetime

from pushin_gate.session import (
    REASON_EMERGENCY_OVERRIDE,
    REASON_WORKOUT_COMPLETED,
    UnlockSession,
    whole_seconds,
)
from pushin_gate.state import AccessEvent, AccessState, TransitionResult
from pushin_gate.targets import AppBlockTarget, TargetAccess, resolve_target_access
from pushin_gate.unlock import UnlockService
from pushin_gate.workout import Workout, WorkoutTracker

logger = logging.getLogger("pushin_gate")

DEFAULT_GRACE_PERIOD_SECONDS = 30


class AccessStateMachine:
    """Locked/earning/unlocked/expired state machine.

    Collaborators are injected; the machine owns the current state and,
    through the UnlockService, the single active session.
    """

    def __init__(
        self,
        workout_tracker: WorkoutTracker,
        unlock_service: UnlockService,
        targets: list[AppBlockTarget] | tuple[AppBlockTarget, ...] = (),
        grace_period_seconds: int = DEFAULT_GRACE_PERIOD_SECONDS,
    ):
        if isinstance(grace_period_seconds, bool) or not isinstance(grace_period_seconds, int):
            raise ValueError("grace_period_seconds must be an integer")
        if grace_period_seconds <= 0:
            raise ValueError(f"grace_period_seconds must be positive (got {grace_period_seconds})")

        self._state: AccessState = AccessState.LOCKED
        self._workout_tracker = workout_tracker
        self._unlock_service = unlock_service
        self._targets: tuple[AppBlockTarget, ...] = tuple(targets)
        self._grace_period_seconds: int = grace_period_seconds
        self._expired_at: datetime | None = None

    # ---- Read-only properties ----

    @property
    def state(self) -> AccessState:
        return self._state

    @property
    def grace_period_seconds(self) -> int:
        return self._grace_period_seconds

    @property
    def expired_at(self) -> datetime | None:
        return self._expired_at

    @property
    def current_session(self) -> UnlockSession | None:
        return self._unlock_service.get_current_session()

    @property
    def current_workout(self) -> Workout | None:
        return self._workout_tracker.get_current_workout()

    @property
    def targets(self) -> tuple[AppBlockTarget, ...]:
        return self._targets

    @property
    def workout_tracker(self) -> WorkoutTracker:
        return self._workout_tracker

    # ---- Commands ----

    def start_workout(self, workout: Workout, now: datetime) -> TransitionResult:
        """LOCKED → EARNING."""
        if self._state != AccessState.LOCKED:
            return self._ignore("start_workout")

        self._workout_tracker.record_workout_start(workout, now)
        return self._transition(AccessState.EARNING, AccessEvent.WORKOUT_STARTED)

    def complete_workout(self, now: datetime) -> TransitionResult:
        """EARNING → UNLOCKED once the tracker judges the workout complete."""
        if self._state != AccessState.EARNING:
            return self._ignore("complete_workout")
        if not self._workout_tracker.is_completed(now):
            return self._ignore("complete_workout", reason="workout not complete")

        workout = self._workout_tracker.get_current_workout()
        if workout is None:
            return self._ignore("complete_workout", reason="no current workout")

        self._unlock_service.record_unlock_start(
            workout.earned_time_seconds, REASON_WORKOUT_COMPLETED, now
        )
        self._workout_tracker.clear_workout()
        self._expired_at = None
        return self._transition(AccessState.UNLOCKED, AccessEvent.WORKOUT_COMPLETED)

    def cancel_workout(self) -> TransitionResult:
        """EARNING → LOCKED."""
        if self._state != AccessState.EARNING:
            return self._ignore("cancel_workout")

        self._workout_tracker.clear_workout()
        return self._transition(AccessState.LOCKED, AccessEvent.WORKOUT_CANCELLED)

    def emergency_unlock(self, duration_seconds: int, now: datetime) -> TransitionResult:
        """LOCKED/EXPIRED → UNLOCKED without a workout.

        Eligibility (plan tier, daily allowance) is the caller's decision.
        Raises InvalidDuration when duration_seconds <= 0.
        """
        if self._state not in (AccessState.LOCKED, AccessState.EXPIRED):
            return self._ignore("emergency_unlock")

        self._unlock_service.record_unlock_start(duration_seconds, REASON_EMERGENCY_OVERRIDE, now)
        self._expired_at = None
        return self._transition(AccessState.UNLOCKED, AccessEvent.EMERGENCY_UNLOCKED)

    def lock(self) -> TransitionResult:
        """Any state → LOCKED, dropping workout, session and grace tracking."""
        self._workout_tracker.clear_workout()
        self._unlock_service.clear_unlock_session()
        self._expired_at = None
        return self._transition(AccessState.LOCKED, AccessEvent.LOCKED)

    def tick(self, now: datetime) -> TransitionResult:
        """Advance time. Repeated ticks at the same `now` are no-ops.

        Callers must never pass a `now` earlier than the previous tick.
        """
        if self._state == AccessState.UNLOCKED:
            if not self._unlock_service.is_active(now):
                # Set exactly once per expiry episode
                if self._expired_at is None:
                    self._expired_at = now
                return self._transition(AccessState.EXPIRED, AccessEvent.SESSION_EXPIRED)

        elif self._state == AccessState.EXPIRED:
            if (
                self._expired_at is not None
                and whole_seconds(now - self._expired_at) >= self._grace_period_seconds
            ):
                self._unlock_service.clear_unlock_session()
                self._expired_at = None
                return self._transition(AccessState.LOCKED, AccessEvent.GRACE_ELAPSED)

        return TransitionResult(old_state=self._state, new_state=self._state)

    # ---- Queries ----

    def get_workout_progress(self, now: datetime) -> float:
        return self._workout_tracker.get_progress(now)

    def get_unlock_time_remaining(self, now: datetime) -> int:
        return self._unlock_service.get_remaining_seconds(now)

    def get_total_unlock_duration(self) -> int:
        session = self._unlock_service.get_current_session()
        return session.duration_seconds if session is not None else 0

    def get_grace_period_remaining(self, now: datetime) -> int:
        if self._state != AccessState.EXPIRED or self._expired_at is None:
            return 0
        remaining = self._grace_period_seconds - whole_seconds(now - self._expired_at)
        return max(0, remaining)

    def target_access(self) -> TargetAccess:
        return resolve_target_access(self._state, self._targets)

    # ---- Serialization ----

    def to_dict(self, now: datetime) -> dict:
        session = self._unlock_service.get_current_session()
        return {
            "state": self._state.value,
            "session": session.to_dict() if session is not None else None,
            "expired_at": self._expired_at.isoformat() if self._expired_at is not None else None,
            "unlock_remaining_seconds": self.get_unlock_time_remaining(now),
            "grace_remaining_seconds": self.get_grace_period_remaining(now),
        }

    def restore(self, session_data: dict | None, now: datetime) -> TransitionResult:
        """Rebuild state after a restart from a persisted session.

        Only a session still active at `now` survives: it yields UNLOCKED.
        Everything else (no session, expired or malformed data) yields LOCKED.
        In-flight workouts and grace windows are not restored.
        """
        old_state = self._state
        self._workout_tracker.clear_workout()
        self._unlock_service.clear_unlock_session()
        self._expired_at = None
        self._state = AccessState.LOCKED

        session: UnlockSession | None = None
        if session_data:
            try:
                session = UnlockSession.from_dict(session_data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Restore: discarding unreadable session ({e})")

        if session is not None and not session.is_expired(now):
            self._unlock_service.restore_session(session)
            self._state = AccessState.UNLOCKED
            logger.info(
                f"Restore: resumed session {session.id} ({session.remaining_seconds(now)}s left)"
            )

        return TransitionResult(old_state=old_state, new_state=self._state)

    # ---- Internal ----

    def _transition(self, new_state: AccessState, event: AccessEvent) -> TransitionResult:
        old_state = self._state
        self._state = new_state
        return TransitionResult(old_state=old_state, new_state=new_state, events=[event])

    def _ignore(self, command: str, reason: str | None = None) -> TransitionResult:
        detail = f": {reason}" if reason else ""
        logger.debug(f"Ignored {command} in state {self._state.value}{detail}")
        return TransitionResult(
            old_state=self._state, new_state=self._state, events=[AccessEvent.IGNORED]
        )
