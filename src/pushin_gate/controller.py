"""Async host around the access state machine.

GateController is the single writer: every public method runs under one
asyncio.Lock. It books consumption in the ledger on each tick, enforces the
daily cap, records completed workouts, persists the active session and
pushes target-list changes to the blocking enforcer.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Optional

from pushin_gate.enforcement import BlockingEnforcer, LoggingEnforcer
from pushin_gate.errors import StorageUnavailable
from pushin_gate.history import StreakStats, WorkoutHistory, WorkoutHistoryEntry
from pushin_gate.ledger import DailyUsageLedger, DailyUsageRecord, PlanTier
from pushin_gate.machine import AccessStateMachine
from pushin_gate.rewards import WorkoutRewardCalculator
from pushin_gate.session import whole_seconds
from pushin_gate.state import AccessEvent, AccessState, TransitionResult
from pushin_gate.store import UsageStore
from pushin_gate.targets import TargetAccess, load_targets
from pushin_gate.unlock import UnlockService
from pushin_gate.workout import RepCountingTracker, WorkoutMode

logger = logging.getLogger("pushin_gate")

SESSION_SETTING = "unlock_session"

EMERGENCY_TIERS = frozenset({PlanTier.STANDARD, PlanTier.ADVANCED})
REFUSED_PLAN_NOT_ELIGIBLE = "plan_not_eligible"
REFUSED_DAILY_LIMIT = "daily_limit_reached"
REFUSED_INVALID_STATE = "invalid_state"


@dataclass
class GateStatus:
    state: AccessState
    unlock_remaining_seconds: int
    unlock_total_seconds: int
    grace_remaining_seconds: int
    workout_progress: float
    current_workout: Optional[dict]
    session: Optional[dict]
    blocked: list[str]
    accessible: list[str]
    plan_tier: PlanTier
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "unlock_remaining_seconds": self.unlock_remaining_seconds,
            "unlock_total_seconds": self.unlock_total_seconds,
            "grace_remaining_seconds": self.grace_remaining_seconds,
            "workout_progress": round(self.workout_progress, 3),
            "current_workout": self.current_workout,
            "session": self.session,
            "blocked": self.blocked,
            "accessible": self.accessible,
            "plan_tier": self.plan_tier.value,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class UsageSummary:
    date: str
    plan_tier: PlanTier
    earned_seconds: int
    consumed_seconds: int
    remaining_seconds: int
    remaining_available_seconds: int
    daily_cap_seconds: int
    progress: float
    has_reached_cap: bool
    emergency_unlocks_used: int

    @classmethod
    def from_record(cls, record: DailyUsageRecord) -> UsageSummary:
        return cls(
            date=record.date,
            plan_tier=record.plan_tier,
            earned_seconds=record.earned_seconds,
            consumed_seconds=record.consumed_seconds,
            remaining_seconds=record.remaining_seconds,
            remaining_available_seconds=record.remaining_available_seconds,
            daily_cap_seconds=record.daily_cap_seconds,
            progress=record.progress,
            has_reached_cap=record.has_reached_cap,
            emergency_unlocks_used=record.emergency_unlocks_used,
        )

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "plan_tier": self.plan_tier.value,
            "earned_seconds": self.earned_seconds,
            "consumed_seconds": self.consumed_seconds,
            "remaining_seconds": self.remaining_seconds,
            "remaining_available_seconds": self.remaining_available_seconds,
            "daily_cap_seconds": self.daily_cap_seconds,
            "progress": round(self.progress, 3),
            "has_reached_cap": self.has_reached_cap,
            "emergency_unlocks_used": self.emergency_unlocks_used,
        }


@dataclass
class EmergencyUnlockResult:
    granted: bool
    transition: TransitionResult
    reason: Optional[str] = None
    duration_seconds: int = 0
    unlocks_used: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "granted": self.granted,
            "reason": self.reason,
            "duration_seconds": self.duration_seconds,
            "unlocks_used": self.unlocks_used,
            **self.transition.to_dict(),
        }


def _unchanged(state: AccessState, events: Optional[list] = None) -> TransitionResult:
    return TransitionResult(old_state=state, new_state=state, events=list(events or []))


class GateController:
    def __init__(
        self,
        machine: AccessStateMachine,
        store: UsageStore,
        calculator: Optional[WorkoutRewardCalculator] = None,
        enforcer: Optional[BlockingEnforcer] = None,
        default_plan_tier: PlanTier | str = PlanTier.FREE,
        emergency_unlock_minutes: int = 10,
        max_emergency_unlocks_per_day: int = 3,
    ):
        self.machine = machine
        self.store = store
        self.calculator = calculator or WorkoutRewardCalculator()
        self.enforcer = enforcer or LoggingEnforcer()
        self.ledger = DailyUsageLedger(store, default_plan_tier)
        self.history = WorkoutHistory(store)
        self.emergency_unlock_minutes = emergency_unlock_minutes
        self.max_emergency_unlocks_per_day = max_emergency_unlocks_per_day

        self._lock = asyncio.Lock()
        # Unlocked time up to this instant is already booked in the ledger
        self._accounted_until: Optional[datetime] = None
        self._persisted_session_id: Optional[str] = None

    # ---- Commands ----

    async def start_workout(
        self,
        workout_type: str,
        target_reps: int,
        mode: WorkoutMode | str,
        now: datetime,
    ) -> TransitionResult:
        """Raises ValueError when the workout would earn no time."""
        async with self._lock:
            before = self.machine.target_access()
            if self.machine.state != AccessState.LOCKED:
                logger.debug(f"Ignored start_workout in state {self.machine.state.value}")
                return _unchanged(self.machine.state, [AccessEvent.IGNORED])
            workout = self.calculator.create_workout(workout_type, target_reps, WorkoutMode(mode), now)
            result = self.machine.start_workout(workout, now)
            await self._publish(result, before)
            return result

    async def record_reps(self, count: int, now: datetime) -> TransitionResult:
        async with self._lock:
            state = self.machine.state
            tracker = self.machine.workout_tracker
            if state != AccessState.EARNING or not isinstance(tracker, RepCountingTracker):
                return _unchanged(state, [AccessEvent.IGNORED])
            if count <= 0:
                raise ValueError(f"count must be positive (got {count})")
            tracker.record_reps(count, now)
            return _unchanged(state)

    async def complete_workout(self, now: datetime) -> TransitionResult:
        async with self._lock:
            before = self.machine.target_access()
            workout = self.machine.current_workout
            tracker = self.machine.workout_tracker
            reps = tracker.effective_reps(now) if isinstance(tracker, RepCountingTracker) else None

            result = self.machine.complete_workout(now)
            if result.ignored or workout is None:
                return result

            self._accounted_until = now
            try:
                await self.ledger.add_earned_time(workout.earned_time_seconds, now)
                await self.history.record_completion(
                    workout, reps if reps is not None else workout.target_reps, now
                )
            except StorageUnavailable as e:
                logger.warning(f"Workout {workout.id} completed but not recorded: {e}")
            await self._publish(result, before)
            return result

    async def cancel_workout(self, now: datetime) -> TransitionResult:
        async with self._lock:
            before = self.machine.target_access()
            result = self.machine.cancel_workout()
            await self._publish(result, before)
            return result

    async def lock(self, now: datetime) -> TransitionResult:
        async with self._lock:
            before = self.machine.target_access()
            await self._book_consumption(now)
            result = self.machine.lock()
            await self._publish(result, before)
            return result

    async def emergency_unlock(self, now: datetime) -> EmergencyUnlockResult:
        async with self._lock:
            state = self.machine.state
            if state not in (AccessState.LOCKED, AccessState.EXPIRED):
                return EmergencyUnlockResult(
                    granted=False,
                    transition=_unchanged(state, [AccessEvent.IGNORED]),
                    reason=REFUSED_INVALID_STATE,
                )

            storage_ok = True
            try:
                record = await self.ledger.today(now)
            except StorageUnavailable as e:
                # Never lock the user out because the ledger can't be read
                logger.warning(f"Emergency unlock granted without ledger check: {e}")
                storage_ok = False
            else:
                refusal = None
                if record.plan_tier not in EMERGENCY_TIERS:
                    refusal = REFUSED_PLAN_NOT_ELIGIBLE
                elif record.emergency_unlocks_used >= self.max_emergency_unlocks_per_day:
                    refusal = REFUSED_DAILY_LIMIT
                if refusal is not None:
                    logger.info(f"Emergency unlock refused: {refusal}")
                    return EmergencyUnlockResult(
                        granted=False,
                        transition=_unchanged(state),
                        reason=refusal,
                        unlocks_used=record.emergency_unlocks_used,
                    )

            before = self.machine.target_access()
            duration = self.emergency_unlock_minutes * 60
            result = self.machine.emergency_unlock(duration, now)
            self._accounted_until = now

            used = None
            if storage_ok:
                try:
                    used = (await self.ledger.record_emergency_unlock(now)).emergency_unlocks_used
                except StorageUnavailable as e:
                    logger.warning(f"Emergency unlock not counted: {e}")
            await self._publish(result, before)
            return EmergencyUnlockResult(
                granted=True, transition=result, duration_seconds=duration, unlocks_used=used
            )

    async def tick(self, now: datetime) -> TransitionResult:
        async with self._lock:
            before = self.machine.target_access()
            await self._book_consumption(now)
            result = self.machine.tick(now)
            result = result.merge(await self._enforce_cap(now))
            await self._publish(result, before)
            return result

    async def update_plan_tier(self, plan_tier: PlanTier | str, now: datetime) -> UsageSummary:
        """Raises ValueError for an unknown tier."""
        tier = PlanTier.parse(plan_tier)
        async with self._lock:
            before = self.machine.target_access()
            record = await self.ledger.update_plan_tier(tier, now)
            result = await self._enforce_cap(now)
            await self._publish(result, before)
            return UsageSummary.from_record(record)

    async def restore(self, now: datetime) -> TransitionResult:
        """Cold start: resume a persisted session that is still active, else lock."""
        async with self._lock:
            try:
                data = await self.store.get_setting(SESSION_SETTING)
            except StorageUnavailable as e:
                logger.warning(f"Restore: session unavailable, starting locked ({e})")
                data = None
            result = self.machine.restore(data, now)
            self._accounted_until = now
            self._persisted_session_id = data.get("id") if isinstance(data, dict) else None
            logger.info(f"Restore: starting in {self.machine.state.value}")
            await self._persist_session()
            self.enforcer.apply(self.machine.target_access())
            return result

    async def cleanup(self, now: datetime, keep_days: int = 30) -> int:
        async with self._lock:
            return await self.ledger.cleanup_old_records(now, keep_days)

    # ---- Queries ----

    async def status(self, now: datetime) -> GateStatus:
        async with self._lock:
            machine = self.machine
            try:
                tier = await self.ledger.current_plan_tier()
            except StorageUnavailable as e:
                logger.warning(f"Status: plan tier unavailable ({e})")
                tier = self.ledger.default_plan_tier
            workout = machine.current_workout
            session = machine.current_session
            access = machine.target_access()
            return GateStatus(
                state=machine.state,
                unlock_remaining_seconds=machine.get_unlock_time_remaining(now),
                unlock_total_seconds=machine.get_total_unlock_duration(),
                grace_remaining_seconds=machine.get_grace_period_remaining(now),
                workout_progress=machine.get_workout_progress(now),
                current_workout=workout.to_dict() if workout is not None else None,
                session=session.to_dict() if session is not None else None,
                blocked=access.blocked_ids,
                accessible=access.accessible_ids,
                plan_tier=tier,
                timestamp=now,
            )

    async def usage_summary(self, now: datetime) -> UsageSummary:
        async with self._lock:
            return UsageSummary.from_record(await self.ledger.today(now))

    async def weekly_usage(self, now: datetime) -> list[UsageSummary]:
        async with self._lock:
            return [UsageSummary.from_record(r) for r in await self.ledger.weekly_usage(now)]

    async def streak_stats(self, now: datetime) -> StreakStats:
        async with self._lock:
            return await self.history.streak_stats(now)

    async def recent_workouts(self, limit: int = 10) -> list[WorkoutHistoryEntry]:
        async with self._lock:
            return await self.history.recent(limit)

    # ---- Internal ----

    async def _book_consumption(self, now: datetime) -> None:
        """Charge unlocked seconds since the last booking, bounded by the session end.

        A span that crosses midnight is split so each day's record gets its own share.
        """
        session = self.machine.current_session
        if self.machine.state != AccessState.UNLOCKED or session is None:
            return

        since = session.start_time
        if self._accounted_until is not None and self._accounted_until > since:
            since = self._accounted_until
        remaining = whole_seconds(min(now, session.end_time) - since)

        cursor = since
        while remaining > 0:
            midnight = datetime.combine(cursor.date() + timedelta(days=1), time.min, tzinfo=cursor.tzinfo)
            seconds = min(remaining, max(1, whole_seconds(midnight - cursor)))
            try:
                await self.ledger.consume_time(seconds, cursor)
            except StorageUnavailable as e:
                logger.warning(f"Tick: {remaining}s of usage not booked ({e})")
                return
            remaining -= seconds
            # Advance by whole seconds only so fractions carry into the next tick
            cursor += timedelta(seconds=seconds)
            self._accounted_until = cursor

    async def _enforce_cap(self, now: datetime) -> TransitionResult:
        state = self.machine.state
        if state != AccessState.UNLOCKED:
            return _unchanged(state)
        try:
            capped = await self.ledger.has_hit_daily_cap(now)
        except StorageUnavailable as e:
            logger.warning(f"Cap check skipped ({e})")
            return _unchanged(state)
        if not capped:
            return _unchanged(state)

        result = self.machine.lock()
        result.events.append(AccessEvent.DAILY_CAP_REACHED)
        logger.info("Daily cap reached, locking")
        return result

    async def _publish(self, result: TransitionResult, before: TargetAccess) -> None:
        if result.changed:
            events = ", ".join(e.value for e in result.events)
            logger.info(f"State: {result.old_state.value} → {result.new_state.value} ({events})")
        after = self.machine.target_access()
        if after != before:
            self.enforcer.apply(after)
        await self._persist_session()

    async def _persist_session(self) -> None:
        session = self.machine.current_session
        session_id = session.id if session is not None else None
        if session_id == self._persisted_session_id:
            return
        try:
            await self.store.put_setting(
                SESSION_SETTING, session.to_dict() if session is not None else None
            )
        except StorageUnavailable as e:
            logger.warning(f"Session not persisted ({e})")
            return
        self._persisted_session_id = session_id


def create_controller(config, store: UsageStore, enforcer: Optional[BlockingEnforcer] = None) -> GateController:
    """Wire a controller from a GateConfig."""
    targets = load_targets(config.targets_path) if config.targets_path else []
    machine = AccessStateMachine(
        workout_tracker=RepCountingTracker(),
        unlock_service=UnlockService(),
        targets=targets,
        grace_period_seconds=config.grace_period_seconds,
    )
    return GateController(
        machine,
        store,
        enforcer=enforcer,
        default_plan_tier=config.plan_tier,
        emergency_unlock_minutes=config.emergency_unlock_minutes,
        max_emergency_unlocks_per_day=config.max_emergency_unlocks_per_day,
    )


def local_now() -> datetime:
    """Host clock: timezone-aware local time."""
    return datetime.now().astimezone()
