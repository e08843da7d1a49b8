"""Turn stored calendar rows into :class:`ExclusionCalendar` objects."""

from __future__ import annotations

from datetime import date, datetime, time, tzinfo
from typing import Any, Callable, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import DEFAULT_MAX_CALENDAR_DEPTH
from ..cron import parse_cron
from ..errors import ConfigurationError
from ..models import JobCalendar
from . import (
    AnnualRule,
    CalendarType,
    CronRule,
    DailyRule,
    ExclusionCalendar,
    ExclusionRule,
    HolidayRule,
    MonthlyRule,
    WeeklyRule,
)

ResolveParent = Callable[[str], JobCalendar]

_WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def _items(calendar: JobCalendar, key: str) -> List[Any]:
    value = calendar.rule.get(key, [])
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ConfigurationError(
            f"calendar {calendar.calendar_name!r}: '{key}' must be a list"
        )
    return list(value)


def _month_day(calendar: JobCalendar, item: Any) -> Tuple[int, int]:
    try:
        if isinstance(item, Mapping):
            month, day = int(item["month"]), int(item["day"])
        elif isinstance(item, str):
            raw_month, _, raw_day = item.lstrip("-").partition("-")
            month, day = int(raw_month), int(raw_day)
        else:
            raise TypeError(type(item).__name__)
        # 2000 is a leap year so 02-29 is accepted
        date(2000, month, day)
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"calendar {calendar.calendar_name!r}: invalid annual day {item!r}"
        ) from exc
    return month, day


def _date(calendar: JobCalendar, item: Any) -> date:
    if isinstance(item, datetime):
        return item.date()
    if isinstance(item, date):
        return item
    if isinstance(item, str):
        try:
            return date.fromisoformat(item)
        except ValueError:
            pass
    raise ConfigurationError(
        f"calendar {calendar.calendar_name!r}: invalid holiday date {item!r}"
    )


def _weekday(calendar: JobCalendar, item: Any) -> int:
    if isinstance(item, int) and not isinstance(item, bool) and 1 <= item <= 7:
        return item
    if isinstance(item, str):
        name = item.strip().lower()
        for number, full in enumerate(_WEEKDAY_NAMES, start=1):
            if name in (full, full[:3]):
                return number
    raise ConfigurationError(
        f"calendar {calendar.calendar_name!r}: invalid weekday {item!r}"
    )


def _time_of_day(calendar: JobCalendar, key: str) -> time:
    value = calendar.rule.get(key)
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        try:
            return time.fromisoformat(value)
        except ValueError:
            pass
    # YAML 1.1 reads unquoted 17:00 as a base-60 integer
    raise ConfigurationError(
        f"calendar {calendar.calendar_name!r}: '{key}' must be a quoted "
        f"HH:MM[:SS] string, got {value!r}"
    )


def _zone(calendar: JobCalendar, default: Optional[tzinfo]) -> Optional[tzinfo]:
    if not calendar.timezone:
        return default
    try:
        return ZoneInfo(calendar.timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(
            f"calendar {calendar.calendar_name!r}: unknown timezone {calendar.timezone!r}"
        ) from exc


def calendar_type(calendar: JobCalendar) -> CalendarType:
    try:
        return CalendarType(str(calendar.calendar_type).upper())
    except ValueError as exc:
        raise ConfigurationError(
            f"calendar {calendar.calendar_name!r}: unknown calendar type "
            f"{calendar.calendar_type!r}"
        ) from exc


def build_rule(calendar: JobCalendar, timezone: Optional[tzinfo] = None) -> Optional[ExclusionRule]:
    """Return the rule contributed by ``calendar`` alone, ignoring its parent."""

    kind = calendar_type(calendar)
    zone = _zone(calendar, timezone)

    if kind is CalendarType.BASE:
        return None
    if kind is CalendarType.ANNUAL:
        days = frozenset(_month_day(calendar, item) for item in _items(calendar, "days"))
        return AnnualRule(days, zone)
    if kind is CalendarType.HOLIDAY:
        dates = frozenset(_date(calendar, item) for item in _items(calendar, "dates"))
        return HolidayRule(dates, zone)
    if kind is CalendarType.WEEKLY:
        weekdays = frozenset(_weekday(calendar, item) for item in _items(calendar, "weekdays"))
        return WeeklyRule(weekdays, zone)
    if kind is CalendarType.MONTHLY:
        days = set()
        for item in _items(calendar, "days"):
            if isinstance(item, bool) or not isinstance(item, int) or not 1 <= item <= 31:
                raise ConfigurationError(
                    f"calendar {calendar.calendar_name!r}: invalid day of month {item!r}"
                )
            days.add(item)
        return MonthlyRule(frozenset(days), zone)
    if kind is CalendarType.DAILY:
        start = _time_of_day(calendar, "start")
        end = _time_of_day(calendar, "end")
        if not start < end:
            raise ConfigurationError(
                f"calendar {calendar.calendar_name!r}: start {start} must be before end {end}"
            )
        inverted = calendar.rule.get("inverted", False)
        if not isinstance(inverted, bool):
            raise ConfigurationError(
                f"calendar {calendar.calendar_name!r}: 'inverted' must be a boolean"
            )
        return DailyRule(start, end, inverted, zone)
    if kind is CalendarType.CRON:
        expression = calendar.rule.get("expression")
        if not isinstance(expression, str) or not expression.strip():
            raise ConfigurationError(
                f"calendar {calendar.calendar_name!r}: 'expression' is required"
            )
        # second resolution; UTC when no zone is configured at all
        trigger = parse_cron(expression, zone or ZoneInfo("UTC"))
        return CronRule(expression, trigger)
    raise ConfigurationError(f"unhandled calendar type {kind}")  # pragma: no cover


def build_calendar(
    root: JobCalendar,
    resolve_parent: ResolveParent,
    *,
    max_depth: int = DEFAULT_MAX_CALENDAR_DEPTH,
    timezone: Optional[tzinfo] = None,
) -> ExclusionCalendar:
    """Build ``root`` and its parent chain into one calendar.

    ``resolve_parent`` maps a parent name to its row (normally
    ``partial(resolver.resolve, tenant_id)``) and may raise
    :class:`~tenant_cadence.errors.NotFoundError`.  Revisiting a name on the
    chain, or a chain longer than ``max_depth``, raises
    :class:`ConfigurationError`.
    """

    stack: List[str] = []
    rules: List[ExclusionRule] = []
    current: Optional[JobCalendar] = root
    while current is not None:
        name = current.calendar_name
        if name in stack:
            cycle = " -> ".join(stack + [name])
            raise ConfigurationError(f"calendar cycle detected: {cycle}")
        stack.append(name)
        if len(stack) > max_depth:
            raise ConfigurationError(
                f"calendar chain for {root.calendar_name!r} exceeds depth {max_depth}"
            )
        rule = build_rule(current, timezone)
        if rule is not None:
            rules.append(rule)
        parent = current.parent_calendar_name
        current = resolve_parent(parent) if parent else None

    return ExclusionCalendar(name=root.calendar_name, rules=tuple(rules), chain=tuple(stack))


__all__ = ["build_calendar", "build_rule", "calendar_type", "ResolveParent"]
