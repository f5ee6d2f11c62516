"""
pushin-gate API: FastAPI service hosting the access controller.

Runs the controller behind HTTP, drives it from an APScheduler tick job and
keeps recent log lines in memory for /api/logs.
"""

from __future__ import annotations

import logging
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Deque, List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request
from pydantic import BaseModel

from pushin_gate.config import GateConfig, load_config
from pushin_gate.controller import GateController, create_controller, local_now
from pushin_gate.errors import StorageUnavailable
from pushin_gate.rewards import reward_table
from pushin_gate.scheduler import build_scheduler
from pushin_gate.store import SqliteUsageStore
from pushin_gate.workout import WorkoutMode

logger = logging.getLogger("pushin_gate")

# Circular buffer to store recent log entries (max 100)
log_buffer: Deque[dict] = deque(maxlen=100)


class LogBufferHandler(logging.Handler):
    """Logging handler that captures records into log_buffer."""

    def emit(self, record: logging.LogRecord):
        try:
            log_buffer.append({
                "timestamp": datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
                "level": record.levelname,
                "message": self.format(record),
            })
        except Exception:
            self.handleError(record)


buffer_handler = LogBufferHandler()
buffer_handler.setLevel(logging.DEBUG)
buffer_handler.setFormatter(logging.Formatter("%(message)s"))
if buffer_handler not in logger.handlers:
    logger.addHandler(buffer_handler)
logger.setLevel(logging.INFO)


# ── Pydantic models ────────────────────────────────────────────


class StartWorkoutRequest(BaseModel):
    workout_type: str
    target_reps: Optional[int] = None
    desired_minutes: Optional[int] = None
    mode: WorkoutMode = WorkoutMode.NORMAL


class RepsRequest(BaseModel):
    count: int


class PlanRequest(BaseModel):
    plan_tier: str


class LogsResponse(BaseModel):
    logs: List[dict]
    count: int


# ── Helpers ────────────────────────────────────────────────────


def get_controller(request: Request) -> GateController:
    return request.app.state.controller


async def _guard(coro):
    """Await a controller call, mapping domain errors to HTTP errors."""
    try:
        return await coro
    except StorageUnavailable as e:
        logger.warning(f"API: storage unavailable ({e})")
        raise HTTPException(status_code=503, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


async def _command_response(controller: GateController, result, now: datetime) -> dict:
    status = await controller.status(now)
    return {**result.to_dict(), "state": status.state.value, "status": status.to_dict()}


# ── Routes ─────────────────────────────────────────────────────

router = APIRouter(prefix="/api")


@router.get("/status")
async def get_status(request: Request):
    return (await get_controller(request).status(local_now())).to_dict()


@router.post("/workout/start")
async def start_workout(body: StartWorkoutRequest, request: Request):
    controller = get_controller(request)
    now = local_now()
    target_reps = body.target_reps
    if target_reps is None:
        if body.desired_minutes is None:
            raise HTTPException(status_code=400, detail="target_reps or desired_minutes is required")
        target_reps = controller.calculator.calculate_workout_target(
            body.workout_type, body.mode, body.desired_minutes
        )
    result = await _guard(controller.start_workout(body.workout_type, target_reps, body.mode, now))
    return await _command_response(controller, result, now)


@router.post("/workout/reps")
async def record_reps(body: RepsRequest, request: Request):
    controller = get_controller(request)
    now = local_now()
    result = await _guard(controller.record_reps(body.count, now))
    return await _command_response(controller, result, now)


@router.post("/workout/complete")
async def complete_workout(request: Request):
    controller = get_controller(request)
    now = local_now()
    result = await _guard(controller.complete_workout(now))
    return await _command_response(controller, result, now)


@router.post("/workout/cancel")
async def cancel_workout(request: Request):
    controller = get_controller(request)
    now = local_now()
    result = await _guard(controller.cancel_workout(now))
    return await _command_response(controller, result, now)


@router.post("/lock")
async def lock(request: Request):
    controller = get_controller(request)
    now = local_now()
    result = await _guard(controller.lock(now))
    return await _command_response(controller, result, now)


@router.post("/emergency-unlock")
async def emergency_unlock(request: Request):
    controller = get_controller(request)
    now = local_now()
    outcome = await _guard(controller.emergency_unlock(now))
    status = await controller.status(now)
    return {**outcome.to_dict(), "state": status.state.value, "status": status.to_dict()}


@router.get("/usage/today")
async def usage_today(request: Request):
    summary = await _guard(get_controller(request).usage_summary(local_now()))
    return summary.to_dict()


@router.get("/usage/weekly")
async def usage_weekly(request: Request):
    week = await _guard(get_controller(request).weekly_usage(local_now()))
    return [day.to_dict() for day in week]


@router.post("/plan")
async def update_plan(body: PlanRequest, request: Request):
    summary = await _guard(get_controller(request).update_plan_tier(body.plan_tier, local_now()))
    return summary.to_dict()


@router.get("/streak")
async def streak(request: Request):
    stats = await _guard(get_controller(request).streak_stats(local_now()))
    return stats.to_dict()


@router.get("/workouts/recent")
async def recent_workouts(request: Request, limit: int = 10):
    entries = await _guard(get_controller(request).recent_workouts(limit))
    return [e.to_dict() for e in entries]


@router.get("/rewards")
async def rewards(request: Request, mode: WorkoutMode = WorkoutMode.NORMAL, minutes: int = 10):
    if minutes <= 0:
        raise HTTPException(status_code=400, detail="minutes must be positive")
    return {
        "mode": mode.value,
        "minutes": minutes,
        "rewards": reward_table(get_controller(request).calculator, mode, minutes),
    }


@router.get("/logs", response_model=LogsResponse)
async def get_recent_logs(limit: int = 50):
    """Recent log lines from the in-memory buffer (max 100)."""
    limit = max(0, min(limit, 100))
    recent_logs = list(log_buffer)[-limit:] if limit else []
    return {"logs": recent_logs, "count": len(recent_logs)}


# ── App factory ────────────────────────────────────────────────


def create_app(
    config: Optional[GateConfig] = None,
    controller: Optional[GateController] = None,
    start_scheduler: bool = True,
) -> FastAPI:
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        gate = controller
        if gate is None:
            store = SqliteUsageStore(config.db_path)
            await store.init_tables()
            gate = create_controller(config, store)
        app.state.controller = gate
        await gate.restore(local_now())

        scheduler = None
        if start_scheduler:
            scheduler = build_scheduler(gate, config)
            scheduler.start()
            logger.info(f"Scheduler started (tick every {config.tick_interval_seconds}s)")
        yield

        if scheduler is not None:
            scheduler.shutdown(wait=True)
            logger.info("Scheduler stopped")

    app = FastAPI(
        title="pushin-gate",
        description="Workout-gated access control service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "timestamp": local_now().isoformat()}

    return app


def main() -> None:
    import uvicorn

    config = load_config()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
