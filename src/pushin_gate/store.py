"""Persistence collaborator: small records keyed by date string.

Two implementations share the UsageStore protocol: an in-memory store for
tests and embedding, and an aiosqlite store for the service.
"""

from __future__ import annotations

import copy
import json
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Protocol

import aiosqlite

from pushin_gate.errors import StorageUnavailable


class UsageStore(Protocol):
    async def get_record(self, date_key: str) -> dict | None: ...

    async def put_record(self, date_key: str, record: dict) -> None: ...

    async def delete_record(self, date_key: str) -> None: ...

    async def list_record_keys(self) -> list[str]: ...

    async def get_setting(self, key: str, default: Any = None) -> Any: ...

    async def put_setting(self, key: str, value: Any) -> None: ...

    async def append_history(self, entry: dict) -> None: ...

    async def list_history(self) -> list[dict]: ...


class MemoryUsageStore:
    """Dict-backed store. Returns copies so callers never alias stored state."""

    def __init__(self):
        self.records: dict[str, dict] = {}
        self.settings: dict[str, Any] = {}
        self.history: list[dict] = []

    async def get_record(self, date_key: str) -> dict | None:
        record = self.records.get(date_key)
        return dict(record) if record is not None else None

    async def put_record(self, date_key: str, record: dict) -> None:
        self.records[date_key] = dict(record)

    async def delete_record(self, date_key: str) -> None:
        self.records.pop(date_key, None)

    async def list_record_keys(self) -> list[str]:
        return sorted(self.records)

    async def get_setting(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self.settings.get(key, default))

    async def put_setting(self, key: str, value: Any) -> None:
        self.settings[key] = copy.deepcopy(value)

    async def append_history(self, entry: dict) -> None:
        self.history.append(dict(entry))

    async def list_history(self) -> list[dict]:
        return [dict(e) for e in self.history]


class SqliteUsageStore:
    """aiosqlite-backed store. Any sqlite/OS failure surfaces as StorageUnavailable."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self):
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                await db.execute("PRAGMA busy_timeout=5000")
                yield db
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"usage store {self.db_path}: {e}") from e

    # ── DB Schema ──────────────────────────────────────────────

    async def init_tables(self) -> None:
        async with self._connect() as db:
            # WAL so CLI/API reads don't block tick writes
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("""
                CREATE TABLE IF NOT EXISTS daily_usage (
                    date TEXT PRIMARY KEY,
                    earned_seconds INTEGER NOT NULL DEFAULT 0,
                    consumed_seconds INTEGER NOT NULL DEFAULT 0,
                    plan_tier TEXT NOT NULL,
                    emergency_unlocks_used INTEGER NOT NULL DEFAULT 0,
                    last_updated TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS workout_history (
                    id TEXT PRIMARY KEY,
                    workout_type TEXT NOT NULL,
                    reps_completed INTEGER NOT NULL,
                    earned_time_seconds INTEGER NOT NULL,
                    mode TEXT NOT NULL,
                    completed_at TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_workout_history_completed
                ON workout_history(completed_at DESC)
            """)
            await db.commit()

    # ── Daily usage ────────────────────────────────────────────

    async def get_record(self, date_key: str) -> dict | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM daily_usage WHERE date = ?", (date_key,))
            row = await cursor.fetchone()
        return dict(row) if row is not None else None

    async def put_record(self, date_key: str, record: dict) -> None:
        async with self._connect() as db:
            await db.execute("""
                INSERT INTO daily_usage (
                    date, earned_seconds, consumed_seconds, plan_tier,
                    emergency_unlocks_used, last_updated
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(date) DO UPDATE SET
                    earned_seconds = excluded.earned_seconds,
                    consumed_seconds = excluded.consumed_seconds,
                    plan_tier = excluded.plan_tier,
                    emergency_unlocks_used = excluded.emergency_unlocks_used,
                    last_updated = excluded.last_updated
            """, (
                date_key,
                int(record.get("earned_seconds", 0)),
                int(record.get("consumed_seconds", 0)),
                record["plan_tier"],
                int(record.get("emergency_unlocks_used", 0)),
                record["last_updated"],
            ))
            await db.commit()

    async def delete_record(self, date_key: str) -> None:
        async with self._connect() as db:
            await db.execute("DELETE FROM daily_usage WHERE date = ?", (date_key,))
            await db.commit()

    async def list_record_keys(self) -> list[str]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT date FROM daily_usage ORDER BY date")
            rows = await cursor.fetchall()
        return [row["date"] for row in rows]

    # ── Settings ───────────────────────────────────────────────

    async def get_setting(self, key: str, default: Any = None) -> Any:
        async with self._connect() as db:
            cursor = await db.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = await cursor.fetchone()
        if row is None:
            return default
        return json.loads(row["value"])

    async def put_setting(self, key: str, value: Any) -> None:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO settings (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, json.dumps(value)),
            )
            await db.commit()

    # ── Workout history ────────────────────────────────────────

    async def append_history(self, entry: dict) -> None:
        async with self._connect() as db:
            await db.execute("""
                INSERT OR REPLACE INTO workout_history (
                    id, workout_type, reps_completed, earned_time_seconds, mode, completed_at
                ) VALUES (?, ?, ?, ?, ?, ?)
            """, (
                entry["id"],
                entry["workout_type"],
                int(entry["reps_completed"]),
                int(entry["earned_time_seconds"]),
                entry["mode"],
                entry["completed_at"],
            ))
            await db.commit()

    async def list_history(self) -> list[dict]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM workout_history ORDER BY completed_at")
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]
