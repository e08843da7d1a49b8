import pytest
import yaml
from apscheduler.schedulers.base import STATE_RUNNING

import tenant_cadence
from tenant_cadence import metrics
from tenant_cadence.scheduler import get_default_engine


STORE = {
    "jobs": [
        {
            "tenant": "tenant1",
            "job": "purge_messages",
            "version": 1,
            "job_class": "tenant_cadence.plugins:LogPayloadJob",
            "cron": "0 0 2 * * ?",
            "calendar": "holidays",
        },
        {
            "tenant": "tenant2",
            "job": "purge_messages",
            "version": 1,
            "job_class": "tenant_cadence.plugins:LogPayloadJob",
            "cron": "0 0 2 * * ?",
            "calendar": "payroll",
        },
    ],
    "global_calendars": [
        {"name": "holidays", "type": "HOLIDAY", "dates": ["2026-12-25"]},
    ],
}


def test_initialize_registers_and_starts(write_store, caplog):
    write_store(STORE)
    with caplog.at_level("ERROR"):
        report = tenant_cadence.initialize()

    assert [o.key for o in report.registered] == ["tenant1:purge_messages-v1"]
    assert [o.key for o in report.failed] == ["tenant2:purge_messages-v1"]
    assert "tenant2:purge_messages-v1" in caplog.text

    engine = get_default_engine()
    assert engine.scheduler.state == STATE_RUNNING
    assert engine.exists("tenant1:purge_messages-v1")
    assert engine.calendar_names() == ["tenant1:holidays"]


def test_initialize_uses_config_file(tmp_path, write_store, monkeypatch):
    store_path = write_store(STORE, name="custom.yml")
    cfg = tmp_path / "cfg.yml"
    cfg.write_text(yaml.safe_dump({"store_path": str(store_path), "timezone": "Europe/Berlin"}))
    monkeypatch.delenv("TENANT_CADENCE_STORE_PATH")

    tenant_cadence.initialize(str(cfg))

    engine = get_default_engine()
    assert str(engine.timezone) == "Europe/Berlin"
    assert engine.exists("tenant1:purge_messages-v1")


def test_initialize_starts_metrics_server(write_store, monkeypatch):
    write_store(STORE)
    ports = []
    monkeypatch.setattr(metrics, "start_http_server", lambda port: ports.append(port))
    monkeypatch.setenv("TENANT_CADENCE_METRICS_PORT", "9105")

    tenant_cadence.initialize()

    assert ports == [9105]


def test_initialize_without_store(monkeypatch, tmp_path):
    monkeypatch.setenv("TENANT_CADENCE_STORE_PATH", str(tmp_path / "absent.yml"))
    with pytest.raises(FileNotFoundError):
        tenant_cadence.initialize()
