"""Tests for target resolution and target list loading."""

import json

import pytest

from pushin_gate.state import AccessState
from pushin_gate.targets import AppBlockTarget, TargetAccess, load_targets, resolve_target_access

TARGETS = [
    AppBlockTarget("com.instagram.android", "Instagram"),
    AppBlockTarget("com.zhiliaoapp.musically", "TikTok"),
    AppBlockTarget("reddit.com", "Reddit", kind="website"),
]


class TestResolveTargetAccess:
    @pytest.mark.parametrize("state", [AccessState.LOCKED, AccessState.EARNING, AccessState.EXPIRED])
    def test_blocked_states(self, state):
        access = resolve_target_access(state, TARGETS)
        assert access.blocked == tuple(TARGETS)
        assert access.accessible == ()

    def test_unlocked(self):
        access = resolve_target_access(AccessState.UNLOCKED, TARGETS)
        assert access.blocked == ()
        assert access.accessible == tuple(TARGETS)
        assert access.is_accessible("reddit.com")

    @pytest.mark.parametrize("state", list(AccessState))
    def test_partition(self, state):
        access = resolve_target_access(state, TARGETS)
        assert not set(access.blocked) & set(access.accessible)
        assert set(access.blocked) | set(access.accessible) == set(TARGETS)

    def test_empty_list(self):
        assert resolve_target_access(AccessState.UNLOCKED, []) == TargetAccess((), ())

    def test_ids(self):
        access = resolve_target_access(AccessState.LOCKED, TARGETS)
        assert access.blocked_ids == ["com.instagram.android", "com.zhiliaoapp.musically", "reddit.com"]
        assert access.accessible_ids == []
        assert not access.is_accessible("reddit.com")


class TestAppBlockTarget:
    def test_empty_identifier(self):
        with pytest.raises(ValueError):
            AppBlockTarget("", "Nothing")

    def test_from_dict_defaults(self):
        target = AppBlockTarget.from_dict({"identifier": "com.example"})
        assert target.name == "com.example"
        assert target.kind == "app"
        assert not target.is_system_app


class TestLoadTargets:
    def test_load(self, tmp_path):
        path = tmp_path / "targets.json"
        path.write_text(json.dumps([t.to_dict() for t in TARGETS]), encoding="utf-8")
        assert load_targets(path) == TARGETS

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "targets.json"
        path.write_text('{"identifier": "x"}', encoding="utf-8")
        with pytest.raises(ValueError):
            load_targets(path)
