"""APScheduler jobs that drive the controller from the host clock."""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from pushin_gate.config import GateConfig
from pushin_gate.controller import GateController, local_now
from pushin_gate.errors import StorageUnavailable

logger = logging.getLogger("pushin_gate")

TICK_JOB_ID = "access_tick"
CLEANUP_JOB_ID = "usage_cleanup"


async def run_tick(controller: GateController) -> None:
    result = await controller.tick(local_now())
    if result.changed:
        logger.info(f"Tick: now {result.new_state.value}")


async def run_cleanup(controller: GateController, keep_days: int) -> None:
    try:
        removed = await controller.cleanup(local_now(), keep_days)
    except StorageUnavailable as e:
        logger.warning(f"Cleanup skipped ({e})")
        return
    logger.info(f"Cleanup: removed {removed} old usage records")


def build_scheduler(
    controller: GateController,
    config: GateConfig,
    scheduler: AsyncIOScheduler | None = None,
) -> AsyncIOScheduler:
    """Register the tick and nightly cleanup jobs. The caller starts the scheduler."""
    scheduler = scheduler or AsyncIOScheduler()
    scheduler.add_job(
        run_tick,
        trigger=IntervalTrigger(seconds=config.tick_interval_seconds),
        args=[controller],
        id=TICK_JOB_ID,
        replace_existing=True,
        name="Access tick",
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        run_cleanup,
        trigger=CronTrigger(hour=3, minute=15),
        args=[controller, config.retention_days],
        id=CLEANUP_JOB_ID,
        replace_existing=True,
        name="Usage cleanup",
        max_instances=1,
        coalesce=True,
    )
    return scheduler
