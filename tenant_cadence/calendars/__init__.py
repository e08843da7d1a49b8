"""Exclusion calendars.

A calendar marks instants at which a trigger must not fire even though its
cron expression matches.  Each stored calendar type maps onto one rule class
below; all rules answer the same question through ``excludes(instant)``.
Calendars with parents are flattened into a single :class:`ExclusionCalendar`
whose rules are OR-folded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import FrozenSet, Optional, Tuple, Union

from apscheduler.triggers.cron import CronTrigger

from ..cron import cron_matches


class CalendarType(str, Enum):
    ANNUAL = "ANNUAL"
    HOLIDAY = "HOLIDAY"
    WEEKLY = "WEEKLY"
    DAILY = "DAILY"
    MONTHLY = "MONTHLY"
    CRON = "CRON"
    BASE = "BASE"


def _local(instant: datetime, zone: Optional[tzinfo]) -> datetime:
    if zone is None or instant.tzinfo is None:
        return instant
    return instant.astimezone(zone)


def _next_midnight(instant: datetime, zone: Optional[tzinfo]) -> datetime:
    local = _local(instant, zone)
    return datetime.combine(local.date() + timedelta(days=1), time(), tzinfo=local.tzinfo)


@dataclass(frozen=True)
class AnnualRule:
    """Excludes the listed ``(month, day)`` pairs in every year."""

    days: FrozenSet[Tuple[int, int]]
    zone: Optional[tzinfo] = None

    def excludes(self, instant: datetime) -> bool:
        local = _local(instant, self.zone)
        return (local.month, local.day) in self.days

    def resume_after(self, instant: datetime) -> Optional[datetime]:
        return _next_midnight(instant, self.zone)


@dataclass(frozen=True)
class HolidayRule:
    """Excludes specific calendar dates."""

    dates: FrozenSet[date]
    zone: Optional[tzinfo] = None

    def excludes(self, instant: datetime) -> bool:
        return _local(instant, self.zone).date() in self.dates

    def resume_after(self, instant: datetime) -> Optional[datetime]:
        return _next_midnight(instant, self.zone)


@dataclass(frozen=True)
class WeeklyRule:
    """Excludes whole weekdays (ISO numbering, Monday is 1)."""

    weekdays: FrozenSet[int]
    zone: Optional[tzinfo] = None

    def excludes(self, instant: datetime) -> bool:
        return _local(instant, self.zone).isoweekday() in self.weekdays

    def resume_after(self, instant: datetime) -> Optional[datetime]:
        return _next_midnight(instant, self.zone)


@dataclass(frozen=True)
class DailyRule:
    """Restricts firing to the ``start``..``end`` window (both inclusive).

    Instants outside the window are excluded.  When ``inverted`` the window
    itself is excluded instead.
    """

    start: time
    end: time
    inverted: bool = False
    zone: Optional[tzinfo] = None

    def excludes(self, instant: datetime) -> bool:
        moment = _local(instant, self.zone).time().replace(tzinfo=None)
        inside = self.start <= moment <= self.end
        return inside if self.inverted else not inside

    def resume_after(self, instant: datetime) -> Optional[datetime]:
        local = _local(instant, self.zone)
        day = local.date()
        if self.inverted:
            edge = datetime.combine(day, self.end, tzinfo=local.tzinfo)
            return edge + timedelta(microseconds=1)
        if local.time().replace(tzinfo=None) > self.end:
            day += timedelta(days=1)
        return datetime.combine(day, self.start, tzinfo=local.tzinfo)


@dataclass(frozen=True)
class MonthlyRule:
    """Excludes the listed days of the month."""

    days: FrozenSet[int]
    zone: Optional[tzinfo] = None

    def excludes(self, instant: datetime) -> bool:
        return _local(instant, self.zone).day in self.days

    def resume_after(self, instant: datetime) -> Optional[datetime]:
        return _next_midnight(instant, self.zone)


@dataclass(frozen=True)
class CronRule:
    """Excludes every instant matched by a secondary cron expression."""

    expression: str
    trigger: CronTrigger = field(compare=False, repr=False)

    def excludes(self, instant: datetime) -> bool:
        return cron_matches(self.trigger, instant)

    def resume_after(self, instant: datetime) -> Optional[datetime]:
        return None


ExclusionRule = Union[AnnualRule, HolidayRule, WeeklyRule, DailyRule, MonthlyRule, CronRule]


@dataclass(frozen=True)
class ExclusionCalendar:
    """A flattened calendar chain.

    ``chain`` lists the calendar names from the requested calendar up to the
    root parent; ``rules`` holds the rules contributed along that chain (BASE
    calendars contribute none).  An instant is excluded when any rule
    excludes it.
    """

    name: str
    rules: Tuple[ExclusionRule, ...] = ()
    chain: Tuple[str, ...] = ()

    def is_excluded(self, instant: datetime) -> bool:
        return any(rule.excludes(instant) for rule in self.rules)

    def is_included(self, instant: datetime) -> bool:
        return not self.is_excluded(instant)

    def resume_after(self, instant: datetime) -> Optional[datetime]:
        """Return the earliest instant that may be permitted after an excluded ``instant``.

        Every rule excluding ``instant`` reports where its exclusion ends;
        nothing before the latest of those ends can be permitted.  ``None``
        means no rule can tell (CRON rules), so the caller has to step.
        """

        bounds = [
            rule.resume_after(instant) for rule in self.rules if rule.excludes(instant)
        ]
        bounds = [bound for bound in bounds if bound is not None]
        return max(bounds) if bounds else None


__all__ = [
    "CalendarType",
    "AnnualRule",
    "HolidayRule",
    "WeeklyRule",
    "DailyRule",
    "MonthlyRule",
    "CronRule",
    "ExclusionRule",
    "ExclusionCalendar",
]
