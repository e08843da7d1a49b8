from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger

from ..calendars import ExclusionCalendar

logger = logging.getLogger(__name__)

# Upper bound on consecutive excluded candidates examined for one fire time.
DEFAULT_MAX_SKIPS = 100_000


class CalendarCronTrigger(BaseTrigger):
    """Cron trigger that skips instants excluded by an :class:`ExclusionCalendar`.

    The wrapped :class:`CronTrigger` is left untouched.  After an excluded
    candidate the search resumes where the calendar says the exclusion ends
    (next midnight for whole-day rules, the window edge for DAILY rules) and
    only steps one cron tick at a time when no rule can tell.  If
    ``max_skips`` candidates in a row are excluded the trigger reports no
    further fire time.
    """

    def __init__(
        self,
        cron: CronTrigger,
        calendar: Optional[ExclusionCalendar] = None,
        *,
        max_skips: int = DEFAULT_MAX_SKIPS,
    ) -> None:
        self.cron = cron
        self.calendar = calendar
        self.max_skips = max_skips

    @property
    def timezone(self):
        return self.cron.timezone

    def get_next_fire_time(
        self, previous_fire_time: Optional[datetime], now: datetime
    ) -> Optional[datetime]:
        candidate = self.cron.get_next_fire_time(previous_fire_time, now)
        if self.calendar is None:
            return candidate
        skips = 0
        while candidate is not None and self.calendar.is_excluded(candidate):
            skips += 1
            if skips > self.max_skips:
                logger.warning(
                    "Calendar %s excluded %d consecutive fire times; giving up",
                    self.calendar.name,
                    self.max_skips,
                )
                return None
            resume = self.calendar.resume_after(candidate)
            if resume is not None and resume > candidate:
                candidate = self.cron.get_next_fire_time(None, resume)
            else:
                candidate = self.cron.get_next_fire_time(
                    candidate, candidate + timedelta(microseconds=1)
                )
        return candidate

    def __str__(self) -> str:
        if self.calendar is None:
            return str(self.cron)
        return f"{self.cron} excluding calendar {self.calendar.name}"

    def __repr__(self) -> str:
        return f"<CalendarCronTrigger ({self.cron!r}, calendar={self.calendar!r})>"


__all__ = ["CalendarCronTrigger", "DEFAULT_MAX_SKIPS"]
