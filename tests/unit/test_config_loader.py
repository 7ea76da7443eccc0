from __future__ import annotations

from pathlib import Path

import pytest

from reelhive.core.config.loader import load_app_config

ROOT = Path(__file__).resolve().parents[2]


def test_config_loader_merges_defaults_and_instance(tmp_path):
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text(
        """
instance:
  name: reelhive
environment: dev
routing:
  fallback_order: [runway, pika]
cache:
  ttl_hours: 12
""".strip(),
        encoding="utf-8",
    )

    instance = tmp_path / "instance.yaml"
    instance.write_text(
        """
environment: prod
routing:
  cost_optimization: true
cache:
  max_entries: 50
""".strip(),
        encoding="utf-8",
    )

    cfg = load_app_config(defaults_path=defaults, instance_path=instance)
    assert cfg.instance.name == "reelhive"
    assert cfg.environment == "prod"
    assert cfg.routing.fallback_order == ["runway", "pika"]
    assert cfg.routing.cost_optimization is True
    assert cfg.cache.ttl_hours == 12
    assert cfg.cache.max_entries == 50


def test_config_loader_validation_error_is_clear(tmp_path):
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text("cache:\n  max_entries: bad", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid reelhive configuration"):
        load_app_config(defaults_path=defaults)


def test_config_loader_rejects_non_mapping(tmp_path):
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="must contain a mapping"):
        load_app_config(defaults_path=defaults)


def test_config_env_overrides(tmp_path, monkeypatch):
    instance = tmp_path / "instance.yaml"
    instance.write_text("monitoring:\n  enabled: false\n", encoding="utf-8")
    monkeypatch.setenv("REELHIVE_CONFIG_FILE", str(instance))
    monkeypatch.setenv("REELHIVE_ENVIRONMENT", "staging")

    cfg = load_app_config(defaults_path=tmp_path / "missing.yaml")

    assert cfg.environment == "staging"
    assert cfg.monitoring.enabled is False


def test_shipped_defaults_are_valid(monkeypatch):
    monkeypatch.delenv("REELHIVE_CONFIG_FILE", raising=False)
    monkeypatch.delenv("REELHIVE_ENVIRONMENT", raising=False)

    cfg = load_app_config(defaults_path=ROOT / "config/defaults.yaml")

    assert cfg.providers.runway.api_key_env == "RUNWAY_API_KEY"
    assert cfg.routing.fallback_order == ["runway", "pika", "luma", "kling"]
    assert cfg.monitoring.interval_seconds == 300
    assert cfg.cache.evict_margin == 100
