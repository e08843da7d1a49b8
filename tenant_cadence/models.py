"""Rows read from the job/calendar store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .identity import ScheduleIdentity
from .params import JobParameters


@dataclass(frozen=True)
class JobDefinition:
    """A versioned, tenant-owned job definition."""

    tenant_id: str
    job_id: str
    version: int
    job_class: str
    cron_expression: str
    enabled: bool = True
    parameters: JobParameters = field(default_factory=JobParameters)
    calendar_name: str | None = None

    @property
    def identity(self) -> ScheduleIdentity:
        return ScheduleIdentity(self.tenant_id, self.job_id, self.version)


@dataclass(frozen=True)
class JobCalendar:
    """A stored exclusion calendar.

    ``calendar_type`` is kept exactly as stored; it is validated when the
    calendar is built so that an unknown type only fails the jobs using it.
    ``rule`` holds the type specific data (``dates``, ``weekdays``, ...).
    """

    tenant_id: str
    calendar_name: str
    calendar_type: str
    rule: Mapping[str, Any] = field(default_factory=dict)
    parent_calendar_name: str | None = None
    description: str | None = None
    timezone: str | None = None


__all__ = ["JobDefinition", "JobCalendar"]
