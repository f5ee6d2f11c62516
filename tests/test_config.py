"""Tests for environment-driven configuration."""

import os
from pathlib import Path

import pytest

from pushin_gate.config import DEFAULT_API_URL, DEFAULT_DB_PATH, GateConfig, api_url, load_config
from pushin_gate.ledger import PlanTier


class TestLoadConfig:
    def test_defaults(self):
        config = load_config(environ={})
        assert config == GateConfig()
        assert config.db_path == DEFAULT_DB_PATH
        assert config.grace_period_seconds == 30
        assert config.plan_tier == PlanTier.FREE
        assert config.targets_path is None
        assert config.port == 7788

    def test_values(self, tmp_path):
        config = load_config(environ={
            "PUSHIN_DB": str(tmp_path / "gate.db"),
            "PUSHIN_GRACE_SECONDS": "45",
            "PUSHIN_PLAN_TIER": "pro",
            "PUSHIN_TARGETS": str(tmp_path / "targets.json"),
            "PUSHIN_PORT": "9001",
            "PUSHIN_TICK_SECONDS": "0.5",
            "PUSHIN_EMERGENCY_MINUTES": "5",
            "PUSHIN_EMERGENCY_MAX": "1",
            "PUSHIN_RETENTION_DAYS": "7",
        })
        assert config.db_path == tmp_path / "gate.db"
        assert config.grace_period_seconds == 45
        assert config.plan_tier == PlanTier.STANDARD
        assert config.targets_path == tmp_path / "targets.json"
        assert config.port == 9001
        assert config.tick_interval_seconds == 0.5
        assert config.emergency_unlock_minutes == 5
        assert config.max_emergency_unlocks_per_day == 1
        assert config.retention_days == 7

    def test_blank_values_use_defaults(self):
        assert load_config(environ={"PUSHIN_PORT": "  "}).port == 7788

    @pytest.mark.parametrize("name,value", [
        ("PUSHIN_PORT", "abc"),
        ("PUSHIN_GRACE_SECONDS", "0"),
        ("PUSHIN_GRACE_SECONDS", "ten"),
        ("PUSHIN_PLAN_TIER", "gold"),
        ("PUSHIN_TICK_SECONDS", "-1"),
        ("PUSHIN_PORT", "70000"),
    ])
    def test_invalid_values_name_the_variable(self, name, value):
        with pytest.raises(ValueError, match=name):
            load_config(environ={name: value})

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PUSHIN_RETENTION_DAYS", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("PUSHIN_RETENTION_DAYS=12\n", encoding="utf-8")
        try:
            assert load_config(env_file=env_file).retention_days == 12
        finally:
            os.environ.pop("PUSHIN_RETENTION_DAYS", None)


class TestApiUrl:
    def test_default(self):
        assert api_url({}) == DEFAULT_API_URL

    def test_trailing_slash_removed(self):
        assert api_url({"PUSHIN_API_URL": "http://gate.local:8000/"}) == "http://gate.local:8000"
