"""Read-only job and calendar store backed by a YAML snapshot."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import yaml

from .config import GLOBAL_TENANT
from .errors import ConfigurationError
from .models import JobCalendar, JobDefinition
from .params import JobParameters


class JobDefinitionStore(Protocol):
    def list_enabled(self) -> Sequence[JobDefinition]:
        ...


class CalendarStore(Protocol):
    def find_by_tenant_and_name(
        self, tenant_id: str, name: str
    ) -> Optional[JobCalendar]:
        ...


_CALENDAR_KEYS = {"tenant", "name", "type", "parent", "description", "timezone"}


class SnapshotStore:
    """Immutable snapshot of job definitions and calendars.

    Implements both :class:`JobDefinitionStore` and :class:`CalendarStore`.
    """

    def __init__(
        self,
        definitions: Iterable[JobDefinition] = (),
        calendars: Iterable[JobCalendar] = (),
    ) -> None:
        self._definitions: Tuple[JobDefinition, ...] = tuple(definitions)
        seen: set[Tuple[str, str, int]] = set()
        for definition in self._definitions:
            triple = (definition.tenant_id, definition.job_id, definition.version)
            if triple in seen:
                raise ConfigurationError(
                    "duplicate job definition: tenant=%r job=%r version=%r" % triple
                )
            seen.add(triple)

        self._calendars: Dict[Tuple[str, str], JobCalendar] = {}
        for calendar in calendars:
            index = (calendar.tenant_id, calendar.calendar_name)
            if index in self._calendars:
                raise ConfigurationError(
                    f"duplicate calendar {calendar.calendar_name!r} "
                    f"for tenant {calendar.tenant_id!r}"
                )
            self._calendars[index] = calendar

    @property
    def definitions(self) -> Tuple[JobDefinition, ...]:
        return self._definitions

    @property
    def calendars(self) -> List[JobCalendar]:
        return list(self._calendars.values())

    def list_enabled(self) -> Sequence[JobDefinition]:
        return [d for d in self._definitions if d.enabled]

    def find_by_tenant_and_name(
        self, tenant_id: str, name: str
    ) -> Optional[JobCalendar]:
        return self._calendars.get((tenant_id, name))


def _parse_job(index: int, entry: Any) -> JobDefinition:
    where = f"jobs[{index}]"
    if not isinstance(entry, dict):
        raise ConfigurationError(f"{where}: entry must be a mapping")
    for required in ("tenant", "job", "version", "job_class", "cron"):
        if required not in entry:
            raise ConfigurationError(f"{where}: missing '{required}'")
    version = entry["version"]
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise ConfigurationError(f"{where}: 'version' must be a positive integer")
    cron = entry["cron"]
    if not isinstance(cron, str) or not cron.strip():
        raise ConfigurationError(f"{where}: 'cron' must be a non-empty string")
    job_class = entry["job_class"]
    if not isinstance(job_class, str) or not job_class:
        raise ConfigurationError(f"{where}: 'job_class' must be a non-empty string")
    enabled = entry.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ConfigurationError(f"{where}: 'enabled' must be a boolean")
    calendar = entry.get("calendar")
    if calendar is not None and (not isinstance(calendar, str) or not calendar):
        raise ConfigurationError(f"{where}: 'calendar' must be a non-empty string")
    try:
        parameters = JobParameters.from_mapping(entry.get("parameters"))
    except ConfigurationError as exc:
        raise ConfigurationError(f"{where}: {exc}") from exc
    return JobDefinition(
        tenant_id=str(entry["tenant"]),
        job_id=str(entry["job"]),
        version=version,
        job_class=job_class,
        cron_expression=cron,
        enabled=enabled,
        parameters=parameters,
        calendar_name=calendar,
    )


def _parse_calendar(where: str, entry: Any, tenant_id: str | None) -> JobCalendar:
    if not isinstance(entry, dict):
        raise ConfigurationError(f"{where}: entry must be a mapping")
    if tenant_id is None:
        if "tenant" not in entry:
            raise ConfigurationError(f"{where}: missing 'tenant'")
        tenant_id = str(entry["tenant"])
    elif "tenant" in entry:
        raise ConfigurationError(f"{where}: global calendars take no 'tenant'")
    for required in ("name", "type"):
        if required not in entry:
            raise ConfigurationError(f"{where}: missing '{required}'")
    parent = entry.get("parent")
    if parent is not None and (not isinstance(parent, str) or not parent):
        raise ConfigurationError(f"{where}: 'parent' must be a non-empty string")
    rule = {k: v for k, v in entry.items() if k not in _CALENDAR_KEYS}
    return JobCalendar(
        tenant_id=tenant_id,
        calendar_name=str(entry["name"]),
        calendar_type=str(entry["type"]),
        rule=rule,
        parent_calendar_name=parent,
        description=entry.get("description"),
        timezone=entry.get("timezone"),
    )


def parse_store(data: Dict[str, Any] | None) -> SnapshotStore:
    """Build a :class:`SnapshotStore` from already-loaded YAML data.

    Rows under ``global_calendars`` are seeded with :data:`GLOBAL_TENANT` as
    their tenant; the ``dependencies`` section is accepted and ignored.
    """

    data = data or {}
    if not isinstance(data, dict):
        raise ConfigurationError("store document must be a mapping")

    jobs = data.get("jobs") or []
    if not isinstance(jobs, list):
        raise ConfigurationError("'jobs' must be a list")
    definitions = [_parse_job(i, entry) for i, entry in enumerate(jobs)]

    calendars: List[JobCalendar] = []
    for section, tenant in (("calendars", None), ("global_calendars", GLOBAL_TENANT)):
        rows = data.get(section) or []
        if not isinstance(rows, list):
            raise ConfigurationError(f"'{section}' must be a list")
        for i, entry in enumerate(rows):
            calendars.append(_parse_calendar(f"{section}[{i}]", entry, tenant))

    return SnapshotStore(definitions, calendars)


def load_store(path: str | Path) -> SnapshotStore:
    """Read the YAML store at ``path`` into a snapshot."""

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Job store not found: {path}")
    with open(path, "r") as fh:
        data = yaml.safe_load(fh)
    return parse_store(data)


__all__ = [
    "JobDefinitionStore",
    "CalendarStore",
    "SnapshotStore",
    "parse_store",
    "load_store",
]
