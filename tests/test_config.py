from pathlib import Path

import pytest
import yaml

from tenant_cadence.config import (
    DEFAULT_MAX_CALENDAR_DEPTH,
    default_store_path,
    load_config,
)


def test_defaults(monkeypatch):
    monkeypatch.delenv("TENANT_CADENCE_STORE_PATH", raising=False)
    cfg = load_config()
    assert cfg["timezone"] == "UTC"
    assert cfg["store_path"] == str(default_store_path())
    assert cfg["max_calendar_depth"] == DEFAULT_MAX_CALENDAR_DEPTH
    assert "metrics_port" not in cfg
    assert default_store_path() == Path.home() / ".tenant_cadence" / "store.yml"


def test_yaml_file(tmp_path, monkeypatch):
    monkeypatch.delenv("TENANT_CADENCE_STORE_PATH", raising=False)
    cfg_file = tmp_path / "cfg.yml"
    cfg_file.write_text(
        yaml.safe_dump(
            {
                "timezone": "US/Pacific",
                "store_path": "/srv/store.yml",
                "max_calendar_depth": 8,
                "metrics_port": "9100",
            }
        )
    )
    cfg = load_config(str(cfg_file))
    assert cfg["timezone"] == "US/Pacific"
    assert cfg["store_path"] == "/srv/store.yml"
    assert cfg["max_calendar_depth"] == 8
    assert cfg["metrics_port"] == 9100


def test_env_overrides_file(tmp_path, monkeypatch):
    cfg_file = tmp_path / "cfg.yml"
    cfg_file.write_text(yaml.safe_dump({"timezone": "US/Pacific", "max_calendar_depth": 8}))
    monkeypatch.setenv("TENANT_CADENCE_CONFIG", str(cfg_file))
    monkeypatch.setenv("TENANT_CADENCE_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("TENANT_CADENCE_MAX_CALENDAR_DEPTH", "4")
    monkeypatch.setenv("TENANT_CADENCE_STORE_PATH", str(tmp_path / "s.yml"))
    monkeypatch.setenv("TENANT_CADENCE_METRICS_PORT", "9200")

    cfg = load_config()

    assert cfg["timezone"] == "Europe/Berlin"
    assert cfg["max_calendar_depth"] == 4
    assert cfg["store_path"] == str(tmp_path / "s.yml")
    assert cfg["metrics_port"] == 9200


def test_missing_config_file_ignored(tmp_path):
    cfg = load_config(str(tmp_path / "nope.yml"))
    assert cfg["timezone"] == "UTC"


def test_depth_must_be_positive(monkeypatch):
    monkeypatch.setenv("TENANT_CADENCE_MAX_CALENDAR_DEPTH", "0")
    with pytest.raises(ValueError):
        load_config()
