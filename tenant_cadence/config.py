"""Configuration helpers for tenant_cadence."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import yaml


# Tenant id under which shared calendars are seeded and looked up.  The store's
# ``global_calendars`` section and the calendar resolver both read this value;
# lookups are exact, so a row stored as "global" is not a global row.
GLOBAL_TENANT = "GLOBAL"

DEFAULT_MAX_CALENDAR_DEPTH = 32
DEFAULT_TIMEZONE = "UTC"


def default_store_path() -> Path:
    return Path.home() / ".tenant_cadence" / "store.yml"


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Load configuration from ``path`` or the ``TENANT_CADENCE_CONFIG`` env var.

    Recognised keys are ``timezone``, ``store_path``, ``max_calendar_depth``
    and ``metrics_port``.  Each may be overridden by the matching
    ``TENANT_CADENCE_*`` environment variable.  Missing values fall back to
    UTC, ``~/.tenant_cadence/store.yml`` and a calendar depth of 32.
    """

    cfg: Dict[str, Any] = {}
    path = path or os.getenv("TENANT_CADENCE_CONFIG")
    if path and os.path.exists(path):
        with open(path, "r") as fh:
            cfg = yaml.safe_load(fh) or {}

    cfg["timezone"] = os.getenv(
        "TENANT_CADENCE_TIMEZONE", cfg.get("timezone", DEFAULT_TIMEZONE)
    )

    if "TENANT_CADENCE_STORE_PATH" in os.environ:
        cfg["store_path"] = os.environ["TENANT_CADENCE_STORE_PATH"]
    cfg["store_path"] = str(cfg.get("store_path") or default_store_path())

    depth = os.getenv("TENANT_CADENCE_MAX_CALENDAR_DEPTH")
    if depth is not None:
        cfg["max_calendar_depth"] = int(depth)
    else:
        cfg["max_calendar_depth"] = int(
            cfg.get("max_calendar_depth", DEFAULT_MAX_CALENDAR_DEPTH)
        )
    if cfg["max_calendar_depth"] < 1:
        raise ValueError("max_calendar_depth must be at least 1")

    if "TENANT_CADENCE_METRICS_PORT" in os.environ:
        cfg["metrics_port"] = int(os.environ["TENANT_CADENCE_METRICS_PORT"])
    elif cfg.get("metrics_port") is not None:
        cfg["metrics_port"] = int(cfg["metrics_port"])

    return cfg


__all__ = [
    "GLOBAL_TENANT",
    "DEFAULT_MAX_CALENDAR_DEPTH",
    "DEFAULT_TIMEZONE",
    "default_store_path",
    "load_config",
]
