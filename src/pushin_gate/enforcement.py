"""Blocking enforcement collaborator.

The platform bridge that actually blocks apps lives outside this package; it
receives the resolved (blocked, accessible) lists through `apply`.
"""

from __future__ import annotations

import logging
from typing import Protocol

from pushin_gate.targets import TargetAccess

logger = logging.getLogger("pushin_gate")


class BlockingEnforcer(Protocol):
    def apply(self, access: TargetAccess) -> None: ...


class LoggingEnforcer:
    """Remembers the last applied lists and logs each change."""

    def __init__(self):
        self.last_access: TargetAccess | None = None
        self.apply_count: int = 0

    def apply(self, access: TargetAccess) -> None:
        self.apply_count += 1
        if access == self.last_access:
            return
        self.last_access = access
        logger.info(
            f"Enforcer: blocking {len(access.blocked)} targets, "
            f"allowing {len(access.accessible)}"
            + (f" ({', '.join(access.blocked_ids)})" if access.blocked else "")
        )
