import sys
from pathlib import Path

import pytest
import yaml

# Ensure package root and this directory (for sample_jobs) are on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
sys.path.insert(0, str(Path(__file__).resolve().parent))

import tenant_cadence as pkg  # noqa: E402
import sample_jobs  # noqa: E402
from tenant_cadence.scheduler import APSchedulerEngine  # noqa: E402

scheduler_module = pkg.scheduler


@pytest.fixture(autouse=True)
def shutdown_engine():
    yield
    engine = getattr(scheduler_module, "_default_engine", None)
    if engine is not None and hasattr(engine, "shutdown"):
        try:
            engine.shutdown(wait=False)
        except Exception:
            pass
    scheduler_module._default_engine = None


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for name in (
        "TENANT_CADENCE_CONFIG",
        "TENANT_CADENCE_TIMEZONE",
        "TENANT_CADENCE_MAX_CALENDAR_DEPTH",
        "TENANT_CADENCE_METRICS_PORT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TENANT_CADENCE_STORE_PATH", str(tmp_path / "store.yml"))
    sample_jobs.RECORDED.clear()
    yield


@pytest.fixture
def engine():
    eng = APSchedulerEngine(timezone="UTC")
    eng.start(paused=True)
    yield eng
    eng.shutdown(wait=False)


@pytest.fixture
def write_store(tmp_path):
    def _write(data, name="store.yml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data))
        return path

    return _write
