"""pushin-gate: workout-gated access control.

Apps stay blocked until a workout earns screen time; a daily ledger caps
how much of it can be spent.
"""

from .controller import GateController, GateStatus, UsageSummary, create_controller
from .errors import InvalidAmount, InvalidDuration, PushinGateError, StorageUnavailable
from .ledger import DailyUsageLedger, DailyUsageRecord, PlanTier
from .machine import AccessStateMachine
from .rewards import WorkoutRewardCalculator, format_duration
from .session import UnlockSession
from .state import AccessEvent, AccessState, TransitionResult
from .targets import AppBlockTarget, TargetAccess, resolve_target_access
from .unlock import UnlockService
from .workout import RepCountingTracker, Workout, WorkoutMode

__all__ = [
    "AccessEvent",
    "AccessState",
    "AccessStateMachine",
    "AppBlockTarget",
    "DailyUsageLedger",
    "DailyUsageRecord",
    "GateController",
    "GateStatus",
    "InvalidAmount",
    "InvalidDuration",
    "PlanTier",
    "PushinGateError",
    "RepCountingTracker",
    "StorageUnavailable",
    "TargetAccess",
    "TransitionResult",
    "UnlockService",
    "UnlockSession",
    "UsageSummary",
    "Workout",
    "WorkoutMode",
    "WorkoutRewardCalculator",
    "create_controller",
    "format_duration",
    "resolve_target_access",
]
