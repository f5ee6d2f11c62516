"""Holder for the single current unlock session."""

from __future__ import annotations

from datetime import datetime

from pushin_gate.session import UnlockSession


class UnlockService:
    """Owns at most one UnlockSession. Starting a new one replaces the old."""

    def __init__(self):
        self._current_session: UnlockSession | None = None

    def record_unlock_start(self, duration_seconds: int, reason: str, now: datetime) -> UnlockSession:
        """Start a session of `duration_seconds` at `now`.

        Raises InvalidDuration when duration_seconds <= 0.
        """
        session = UnlockSession.start(duration_seconds, reason, now)
        self._current_session = session
        return session

    def restore_session(self, session: UnlockSession) -> None:
        self._current_session = session

    def is_active(self, now: datetime) -> bool:
        return self._current_session is not None and not self._current_session.is_expired(now)

    def get_remaining_seconds(self, now: datetime) -> int:
        if self._current_session is None:
            return 0
        return self._current_session.remaining_seconds(now)

    def get_current_session(self) -> UnlockSession | None:
        return self._current_session

    def clear_unlock_session(self) -> None:
        self._current_session = None
