"""Cron expression parsing on top of APScheduler's :class:`CronTrigger`.

Two dialects are accepted:

``m h dom mon dow``
    Classic five field crontab, handed to :meth:`CronTrigger.from_crontab`.

``s m h dom mon dow [year]``
    Quartz style.  ``?`` means "no specific value", weekdays are numbered
    1 (SUN) to 7 (SAT), ``L`` in the day-of-month means the last day and
    ``nL`` / ``n#k`` in the day-of-week select the last / k-th weekday of
    the month.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import List

from apscheduler.triggers.cron import CronTrigger

from .errors import ConfigurationError

_QUARTZ_DAYS = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
_ORDINALS = {1: "1st", 2: "2nd", 3: "3rd", 4: "4th", 5: "5th"}
_ANY = ("*", "?")


def _weekday_number(token: str, expression: str) -> int:
    token = token.strip().lower()
    if token.isdigit():
        number = int(token)
        if 1 <= number <= 7:
            return number
    elif token[:3] in _QUARTZ_DAYS and len(token) == 3:
        return _QUARTZ_DAYS.index(token) + 1
    raise ConfigurationError(f"invalid day-of-week {token!r} in {expression!r}")


def _expand_weekdays(token: str, expression: str) -> List[int]:
    step = 1
    if "/" in token:
        token, _, raw_step = token.partition("/")
        if not raw_step.isdigit() or int(raw_step) < 1:
            raise ConfigurationError(f"invalid step in {expression!r}")
        step = int(raw_step)
        if token in _ANY:
            token = "1-7"
        elif "-" not in token:
            token = f"{token}-7"
    if token in _ANY:
        return list(range(1, 8))
    if "-" in token:
        first_raw, _, last_raw = token.partition("-")
        first = _weekday_number(first_raw, expression)
        last = _weekday_number(last_raw, expression)
        span = (last - first) % 7
        days = [(first - 1 + offset) % 7 + 1 for offset in range(span + 1)]
    else:
        days = [_weekday_number(token, expression)]
    return days[::step]


def _translate_days(dom: str, dow: str, expression: str) -> tuple[str, str]:
    """Return APScheduler ``(day, day_of_week)`` values for Quartz fields."""

    if "W" in dom.upper():
        raise ConfigurationError(f"'W' day-of-month is not supported: {expression!r}")
    if dom not in _ANY and dow not in _ANY:
        raise ConfigurationError(
            f"day-of-month and day-of-week cannot both be restricted: {expression!r}"
        )

    if dom.upper() == "L":
        day = "last"
    elif dom.upper().startswith("L"):
        raise ConfigurationError(f"unsupported day-of-month {dom!r} in {expression!r}")
    else:
        day = "*" if dom in _ANY else dom

    upper = dow.upper()
    if upper == "L":
        return day, "sat"
    if upper.endswith("L"):
        weekday = _weekday_number(dow[:-1], expression)
        return f"last {_QUARTZ_DAYS[weekday - 1]}", "*"
    if "#" in dow:
        raw_day, _, raw_nth = dow.partition("#")
        weekday = _weekday_number(raw_day, expression)
        if not raw_nth.isdigit() or int(raw_nth) not in _ORDINALS:
            raise ConfigurationError(f"invalid '#' ordinal in {expression!r}")
        return f"{_ORDINALS[int(raw_nth)]} {_QUARTZ_DAYS[weekday - 1]}", "*"
    if dow in _ANY:
        return day, "*"

    days: List[int] = []
    for token in dow.split(","):
        for number in _expand_weekdays(token.strip(), expression):
            if number not in days:
                days.append(number)
    return day, ",".join(_QUARTZ_DAYS[number - 1] for number in days)


def parse_cron(expression: str, timezone: tzinfo | str) -> CronTrigger:
    """Return a :class:`CronTrigger` for ``expression``.

    Raises :class:`ConfigurationError` when the expression cannot be parsed.
    """

    if not isinstance(expression, str):
        raise ConfigurationError(f"cron expression must be a string: {expression!r}")
    fields = expression.split()
    try:
        if len(fields) == 5:
            return CronTrigger.from_crontab(expression, timezone=timezone)
        if len(fields) not in (6, 7):
            raise ConfigurationError(
                f"cron expression must have 5, 6 or 7 fields: {expression!r}"
            )
        second, minute, hour, dom, month, dow = fields[:6]
        year = fields[6] if len(fields) == 7 else None
        day, day_of_week = _translate_days(dom, dow, expression)
        return CronTrigger(
            year=None if year in (None, "*", "?") else year,
            month="*" if month == "?" else month.lower(),
            day=day,
            day_of_week=day_of_week,
            hour=hour,
            minute=minute,
            second=second,
            timezone=timezone,
        )
    except ConfigurationError:
        raise
    except (ValueError, TypeError, KeyError) as exc:
        raise ConfigurationError(f"invalid cron expression {expression!r}: {exc}") from exc


def cron_matches(trigger: CronTrigger, instant: datetime) -> bool:
    """Return ``True`` if ``trigger`` fires exactly at ``instant`` (second resolution)."""

    instant = instant.replace(microsecond=0)
    return trigger.get_next_fire_time(None, instant) == instant


__all__ = ["parse_cron", "cron_matches"]
