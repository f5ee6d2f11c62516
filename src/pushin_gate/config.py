"""Configuration from environment variables (optionally via a .env file)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional

from dotenv import load_dotenv

from pushin_gate.ledger import PlanTier
from pushin_gate.machine import DEFAULT_GRACE_PERIOD_SECONDS

DEFAULT_DB_PATH = Path.home() / ".pushin-gate" / "pushin.db"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 7788
DEFAULT_API_URL = f"http://{DEFAULT_HOST}:{DEFAULT_PORT}"


@dataclass
class GateConfig:
    db_path: Path = DEFAULT_DB_PATH
    grace_period_seconds: int = DEFAULT_GRACE_PERIOD_SECONDS
    plan_tier: PlanTier = PlanTier.FREE
    targets_path: Optional[Path] = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    tick_interval_seconds: float = 1.0
    emergency_unlock_minutes: int = 10
    max_emergency_unlocks_per_day: int = 3
    retention_days: int = 30

    def validate(self) -> None:
        if self.grace_period_seconds <= 0:
            raise ValueError("PUSHIN_GRACE_SECONDS must be positive")
        if self.tick_interval_seconds <= 0:
            raise ValueError("PUSHIN_TICK_SECONDS must be positive")
        if self.emergency_unlock_minutes <= 0:
            raise ValueError("PUSHIN_EMERGENCY_MINUTES must be positive")
        if self.max_emergency_unlocks_per_day < 0:
            raise ValueError("PUSHIN_EMERGENCY_MAX must be >= 0")
        if self.retention_days < 0:
            raise ValueError("PUSHIN_RETENTION_DAYS must be >= 0")
        if not 0 < self.port < 65536:
            raise ValueError("PUSHIN_PORT must be between 1 and 65535")


def _read(env: Mapping[str, str], name: str, convert: Callable, default):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return convert(raw.strip())
    except ValueError as e:
        raise ValueError(f"{name}: invalid value {raw!r} ({e})") from e


def load_config(env_file: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> GateConfig:
    """Build a GateConfig from PUSHIN_* variables.

    A .env file is loaded first when given (existing variables win). Pass
    `environ` to read from a mapping instead of os.environ.
    """
    if env_file is not None:
        load_dotenv(env_file)
    env = os.environ if environ is None else environ

    targets = _read(env, "PUSHIN_TARGETS", lambda v: Path(v).expanduser(), None)
    config = GateConfig(
        db_path=_read(env, "PUSHIN_DB", lambda v: Path(v).expanduser(), DEFAULT_DB_PATH),
        grace_period_seconds=_read(env, "PUSHIN_GRACE_SECONDS", int, DEFAULT_GRACE_PERIOD_SECONDS),
        plan_tier=_read(env, "PUSHIN_PLAN_TIER", PlanTier.parse, PlanTier.FREE),
        targets_path=targets,
        host=_read(env, "PUSHIN_HOST", str, DEFAULT_HOST),
        port=_read(env, "PUSHIN_PORT", int, DEFAULT_PORT),
        tick_interval_seconds=_read(env, "PUSHIN_TICK_SECONDS", float, 1.0),
        emergency_unlock_minutes=_read(env, "PUSHIN_EMERGENCY_MINUTES", int, 10),
        max_emergency_unlocks_per_day=_read(env, "PUSHIN_EMERGENCY_MAX", int, 3),
        retention_days=_read(env, "PUSHIN_RETENTION_DAYS", int, 30),
    )
    config.validate()
    return config


def api_url(environ: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if environ is None else environ
    return env.get("PUSHIN_API_URL", DEFAULT_API_URL).rstrip("/")
