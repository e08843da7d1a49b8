"""tenant_cadence package root.

Registers tenant-owned, versioned cron jobs from a read-only store with an
APScheduler engine, applying exclusion calendars, and serves run-now
requests by identity key.
"""

from __future__ import annotations

import logging

from .config import GLOBAL_TENANT, load_config
from .identity import ScheduleIdentity, derive_key, parse_key
from .registrar import JobRegistrar, RegistrationReport, RegistrationState
from .run_now import RunNowTrigger, TriggerResult, trigger_now
from .scheduler import (
    APSchedulerEngine,
    create_engine,
    get_default_engine,
    set_default_engine,
)
from .store import load_store
from . import metrics

logger = logging.getLogger(__name__)


def initialize(config_path: str | None = None) -> RegistrationReport:
    """Load configuration and the store, register jobs and start the engine.

    The engine is created paused so that registration can rely on atomic
    adds, then resumed once the pass is over.  Failed definitions are logged
    and returned on the report; they do not stop the engine from starting.
    """

    cfg = load_config(config_path)
    if cfg.get("metrics_port") is not None:
        metrics.start_metrics_server(cfg["metrics_port"])

    store = load_store(cfg["store_path"])
    engine = create_engine(cfg["timezone"])
    set_default_engine(engine)

    report = JobRegistrar(
        store,
        store,
        engine,
        max_calendar_depth=cfg["max_calendar_depth"],
    ).run()
    for outcome in report.failed:
        logger.error("Job %s not scheduled: %s", outcome.label, outcome.error)

    engine.start()
    return report


from . import cli  # noqa: F401,E402


__all__ = [
    "APSchedulerEngine",
    "GLOBAL_TENANT",
    "JobRegistrar",
    "RegistrationReport",
    "RegistrationState",
    "RunNowTrigger",
    "ScheduleIdentity",
    "TriggerResult",
    "cli",
    "create_engine",
    "derive_key",
    "get_default_engine",
    "initialize",
    "load_config",
    "load_store",
    "parse_key",
    "set_default_engine",
    "trigger_now",
]
