"""Blocked/accessible target derivation.

Consumers decide reachability from the two lists returned here, never from the
bare access state.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

from pushin_gate.state import AccessState


@dataclass(frozen=True)
class AppBlockTarget:
    identifier: str
    name: str
    is_system_app: bool = False
    kind: str = "app"  # 'app', 'category', 'website'

    def __post_init__(self):
        if not self.identifier:
            raise ValueError("identifier cannot be empty")
        if not self.kind:
            raise ValueError("kind cannot be empty")

    def to_dict(self) -> dict:
        return {
            "identifier": self.identifier,
            "name": self.name,
            "is_system_app": self.is_system_app,
            "kind": self.kind,
        }

    @classmethod
    def from_dict(cls, data: dict) -> AppBlockTarget:
        return cls(
            identifier=str(data["identifier"]),
            name=str(data.get("name") or data["identifier"]),
            is_system_app=bool(data.get("is_system_app", False)),
            kind=str(data.get("kind", "app")),
        )


class TargetAccess(NamedTuple):
    blocked: tuple[AppBlockTarget, ...]
    accessible: tuple[AppBlockTarget, ...]

    @property
    def blocked_ids(self) -> list[str]:
        return [t.identifier for t in self.blocked]

    @property
    def accessible_ids(self) -> list[str]:
        return [t.identifier for t in self.accessible]

    def is_accessible(self, identifier: str) -> bool:
        return identifier in self.accessible_ids


def resolve_target_access(state: AccessState, targets: list[AppBlockTarget] | tuple[AppBlockTarget, ...]) -> TargetAccess:
    """Map (state, configured targets) to (blocked, accessible).

    Unlocked opens every target; every other state blocks all of them.
    """
    configured = tuple(targets)
    if state == AccessState.UNLOCKED:
        return TargetAccess(blocked=(), accessible=configured)
    return TargetAccess(blocked=configured, accessible=())


def load_targets(path: Path) -> list[AppBlockTarget]:
    """Read a JSON list of targets: [{"identifier": ..., "name": ...}, ...]."""
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of targets")
    return [AppBlockTarget.from_dict(item) for item in raw]
