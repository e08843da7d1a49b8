from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from tenant_cadence.calendars import (
    AnnualRule,
    CronRule,
    DailyRule,
    ExclusionCalendar,
    HolidayRule,
    MonthlyRule,
    WeeklyRule,
)
from tenant_cadence.calendars.builder import build_calendar, build_rule
from tenant_cadence.errors import ConfigurationError, NotFoundError
from tenant_cadence.models import JobCalendar

UTC = timezone.utc


def cal(name, kind, parent=None, tz=None, **rule):
    return JobCalendar(
        tenant_id="tenant1",
        calendar_name=name,
        calendar_type=kind,
        rule=rule,
        parent_calendar_name=parent,
        timezone=tz,
    )


def resolver_for(*calendars):
    rows = {c.calendar_name: c for c in calendars}

    def resolve(name):
        try:
            return rows[name]
        except KeyError:
            raise NotFoundError(name)

    return resolve


def no_parents(name):
    raise AssertionError(f"unexpected parent lookup {name}")


def at(*args):
    return datetime(*args, tzinfo=UTC)


def test_annual_excludes_same_day_every_year():
    calendar = build_calendar(cal("newyear", "ANNUAL", days=["01-01"]), no_parents)
    assert calendar.is_excluded(at(2026, 1, 1, 10))
    assert calendar.is_excluded(at(2027, 1, 1, 10))
    assert calendar.is_included(at(2026, 1, 2, 10))


def test_annual_accepts_mappings_and_leap_day():
    rule = build_rule(cal("x", "ANNUAL", days=[{"month": 2, "day": 29}, "12-25"]))
    assert isinstance(rule, AnnualRule)
    assert rule.days == frozenset({(2, 29), (12, 25)})


@pytest.mark.parametrize("bad", ["13-01", "02-30", "xx", 5, {"month": 1}])
def test_annual_rejects_bad_days(bad):
    with pytest.raises(ConfigurationError):
        build_rule(cal("x", "ANNUAL", days=[bad]))


def test_holiday_excludes_listed_dates():
    calendar = build_calendar(
        cal("holidays", "HOLIDAY", dates=["2026-12-25", date(2026, 12, 26)]),
        no_parents,
    )
    assert calendar.is_excluded(at(2026, 12, 25, 2))
    assert calendar.is_excluded(at(2026, 12, 26, 23, 59))
    assert calendar.is_included(at(2027, 12, 25, 2))


def test_holiday_rejects_bad_date():
    with pytest.raises(ConfigurationError):
        build_rule(cal("x", "HOLIDAY", dates=["25/12/2026"]))


def test_weekly_excludes_weekdays():
    calendar = build_calendar(cal("weekends", "WEEKLY", weekdays=["SAT", "sunday"]), no_parents)
    # 2026-03-07 is a Saturday
    assert calendar.is_excluded(at(2026, 3, 7, 9))
    assert calendar.is_excluded(at(2026, 3, 8, 9))
    assert calendar.is_included(at(2026, 3, 9, 9))


def test_weekly_iso_numbers():
    rule = build_rule(cal("x", "WEEKLY", weekdays=[1, 7]))
    assert isinstance(rule, WeeklyRule)
    assert rule.weekdays == frozenset({1, 7})
    with pytest.raises(ConfigurationError):
        build_rule(cal("x", "WEEKLY", weekdays=[0]))
    with pytest.raises(ConfigurationError):
        build_rule(cal("x", "WEEKLY", weekdays=["funday"]))


def test_daily_window_restricts_firing():
    calendar = build_calendar(cal("hours", "DAILY", start="09:00", end="17:00"), no_parents)
    assert calendar.is_excluded(at(2026, 3, 2, 20))
    assert calendar.is_included(at(2026, 3, 2, 10))
    # both bounds inclusive
    assert calendar.is_included(at(2026, 3, 2, 9))
    assert calendar.is_included(at(2026, 3, 2, 17))


def test_daily_inverted_excludes_window():
    calendar = build_calendar(
        cal("quiet", "DAILY", start="09:00", end="17:00", inverted=True), no_parents
    )
    assert calendar.is_excluded(at(2026, 3, 2, 10))
    assert calendar.is_included(at(2026, 3, 2, 20))


def test_daily_accepts_time_objects():
    rule = build_rule(cal("x", "DAILY", start=time(1, 30), end="02:45:30"))
    assert isinstance(rule, DailyRule)
    assert rule.end == time(2, 45, 30)


@pytest.mark.parametrize(
    "start, end",
    [
        ("17:00", "09:00"),
        ("09:00", "09:00"),
        (61200, "18:00"),  # unquoted 17:00 as YAML 1.1 reads it
        ("9 o'clock", "17:00"),
        (None, "17:00"),
    ],
)
def test_daily_rejects_bad_windows(start, end):
    with pytest.raises(ConfigurationError):
        build_rule(cal("x", "DAILY", start=start, end=end))


def test_monthly_excludes_days():
    calendar = build_calendar(cal("paydays", "MONTHLY", days=[1, 15]), no_parents)
    assert calendar.is_excluded(at(2026, 4, 15, 8))
    assert calendar.is_included(at(2026, 4, 16, 8))
    rule = build_rule(cal("x", "MONTHLY", days=[31]))
    assert isinstance(rule, MonthlyRule)
    with pytest.raises(ConfigurationError):
        build_rule(cal("x", "MONTHLY", days=[32]))


def test_cron_calendar_excludes_matching_seconds():
    calendar = build_calendar(cal("nights", "CRON", expression="* * 0-7 ? * *"), no_parents)
    assert calendar.is_excluded(at(2026, 3, 2, 3, 15))
    assert calendar.is_included(at(2026, 3, 2, 9, 0))
    assert isinstance(calendar.rules[0], CronRule)


def test_cron_calendar_requires_valid_expression():
    with pytest.raises(ConfigurationError):
        build_rule(cal("x", "CRON"))
    with pytest.raises(ConfigurationError):
        build_rule(cal("x", "CRON", expression="not a cron"))


def test_calendar_timezone_applies_to_rules():
    # 2026-03-07T23:30Z is already Sunday in Berlin
    weekly = build_rule(cal("x", "WEEKLY", tz="Europe/Berlin", weekdays=["sun"]))
    assert weekly.excludes(at(2026, 3, 7, 23, 30))
    assert not weekly.excludes(at(2026, 3, 7, 22, 30))

    engine_zone = build_rule(cal("x", "WEEKLY", weekdays=["sun"]), ZoneInfo("Europe/Berlin"))
    assert engine_zone.excludes(at(2026, 3, 7, 23, 30))


def test_unknown_timezone_rejected():
    with pytest.raises(ConfigurationError):
        build_rule(cal("x", "WEEKLY", tz="Mars/Olympus", weekdays=["sun"]))


def test_type_is_case_insensitive_and_unknown_rejected():
    assert isinstance(build_rule(cal("x", "holiday", dates=[])), HolidayRule)
    with pytest.raises(ConfigurationError, match="unknown calendar type"):
        build_rule(cal("x", "LUNAR"))


def test_base_calendar_contributes_no_rule():
    calendar = build_calendar(cal("base", "BASE"), no_parents)
    assert calendar.rules == ()
    assert calendar.is_included(at(2026, 1, 1))


def test_parent_chain_or_composition():
    holidays = cal("holidays", "HOLIDAY", parent="weekends", dates=["2026-12-25"])
    weekends = cal("weekends", "WEEKLY", parent="root", weekdays=["sat", "sun"])
    root = cal("root", "BASE")
    calendar = build_calendar(holidays, resolver_for(weekends, root))

    assert calendar.chain == ("holidays", "weekends", "root")
    assert len(calendar.rules) == 2
    # Friday holiday, Saturday, ordinary Monday
    assert calendar.is_excluded(at(2026, 12, 25, 2))
    assert calendar.is_excluded(at(2026, 12, 26, 2))
    assert calendar.is_included(at(2026, 12, 28, 2))


def test_missing_parent_is_not_found():
    child = cal("child", "HOLIDAY", parent="ghost", dates=[])
    with pytest.raises(NotFoundError):
        build_calendar(child, resolver_for())


def test_cycle_detected():
    c1 = cal("C1", "BASE", parent="C2")
    c2 = cal("C2", "BASE", parent="C3")
    c3 = cal("C3", "BASE", parent="C1")
    with pytest.raises(ConfigurationError, match="C1 -> C2 -> C3 -> C1"):
        build_calendar(c1, resolver_for(c1, c2, c3))


def test_self_parent_cycle():
    loop = cal("loop", "BASE", parent="loop")
    with pytest.raises(ConfigurationError, match="cycle"):
        build_calendar(loop, resolver_for(loop))


def test_depth_limit():
    rows = [cal(f"c{i}", "BASE", parent=f"c{i + 1}") for i in range(5)]
    rows.append(cal("c5", "BASE"))
    resolve = resolver_for(*rows)

    assert len(build_calendar(rows[0], resolve, max_depth=6).chain) == 6
    with pytest.raises(ConfigurationError, match="exceeds depth"):
        build_calendar(rows[0], resolve, max_depth=5)


def test_exclusion_calendar_without_rules():
    empty = ExclusionCalendar("empty")
    assert not empty.is_excluded(at(2026, 1, 1))


@pytest.mark.parametrize("value", ["true", "false", 1, None])
def test_daily_inverted_must_be_a_boolean(value):
    with pytest.raises(ConfigurationError, match="'inverted' must be a boolean"):
        build_rule(cal("x", "DAILY", start="09:00", end="17:00", inverted=value))
