"""Scheduling engine capability backed by APScheduler.

The registrar and the run-now trigger only talk to the small
:class:`SchedulingEngine` protocol.  :class:`APSchedulerEngine` implements it
on top of an APScheduler 3.x ``BackgroundScheduler``; exclusion calendars are
kept in an engine-level namespace and attached to jobs through
:class:`~tenant_cadence.scheduler.triggers.CalendarCronTrigger`.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, TYPE_CHECKING
from uuid import uuid4

from apscheduler.jobstores.base import ConflictingIdError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from ..calendars import ExclusionCalendar
from ..cron import parse_cron
from ..errors import DuplicateScheduleError, EngineError, NotFoundError
from ..params import JobParameters
from ..plugins import run_job
from .triggers import CalendarCronTrigger

if TYPE_CHECKING:  # pragma: no cover - used for type hints only
    from apscheduler.job import Job
    from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

# Separates an identity key from the per-request suffix of a run-now job id.
RUN_NOW_MARKER = "@run-now-"


class FireResult(str, Enum):
    ACCEPTED = "accepted"
    NOT_FOUND = "not_found"


class SchedulingEngine(Protocol):
    def exists(self, key: str) -> bool:
        ...

    def schedule_cron(
        self,
        key: str,
        cron_expression: str,
        calendar_name: Optional[str],
        payload: JobParameters,
        *,
        job_class: str,
        calendar: Optional[ExclusionCalendar] = None,
    ) -> Any:
        ...

    def fire_now(self, key: str) -> FireResult:
        ...


class APSchedulerEngine:
    """APScheduler-based engine.

    Parameters
    ----------
    timezone:
        Zone used to evaluate cron expressions and, unless a calendar says
        otherwise, calendar rules.
    scheduler:
        Optional pre-configured ``BackgroundScheduler`` (for instance one
        with a shared SQLAlchemy job store).

    ``schedule_cron`` relies on ``add_job(replace_existing=False)`` being
    checked by the job store, which only happens once the scheduler has been
    started; the engine therefore starts it paused on first use.
    """

    def __init__(
        self,
        timezone: str | ZoneInfo = "UTC",
        scheduler: Optional[BackgroundScheduler] = None,
    ) -> None:
        from zoneinfo import ZoneInfo

        tz = ZoneInfo(timezone) if isinstance(timezone, str) else timezone
        self.timezone = tz
        self.scheduler = scheduler or BackgroundScheduler(timezone=tz)
        self._calendars: Dict[str, ExclusionCalendar] = {}
        self._calendars_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def _ensure_started(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start(paused=True)

    def start(self, paused: bool = False) -> None:
        if not self.scheduler.running:
            self.scheduler.start(paused=paused)
        elif not paused:
            self.scheduler.resume()

    def pause(self) -> None:
        self._ensure_started()
        self.scheduler.pause()

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Calendars

    def register_calendar(
        self, name: str, calendar: ExclusionCalendar, *, replace: bool = True
    ) -> None:
        """Store ``calendar`` under the engine-wide ``name``."""

        with self._calendars_lock:
            if not replace and name in self._calendars:
                raise EngineError(f"calendar {name!r} already registered")
            self._calendars[name] = calendar
        logger.debug("Registered calendar %s (chain: %s)", name, " -> ".join(calendar.chain))

    def get_calendar(self, name: str) -> Optional[ExclusionCalendar]:
        with self._calendars_lock:
            return self._calendars.get(name)

    def calendar_names(self) -> List[str]:
        with self._calendars_lock:
            return sorted(self._calendars)

    # ------------------------------------------------------------------
    # Jobs

    def exists(self, key: str) -> bool:
        return self.scheduler.get_job(key) is not None

    def schedule_cron(
        self,
        key: str,
        cron_expression: str,
        calendar_name: Optional[str],
        payload: JobParameters,
        *,
        job_class: str,
        calendar: Optional[ExclusionCalendar] = None,
    ) -> Job:
        """Atomically add a cron job under ``key``.

        When ``calendar`` is given it is installed under ``calendar_name``
        only after the add succeeds, so losing a race leaves the registered
        calendar untouched.  Without it ``calendar_name`` must already be
        registered.

        Raises :class:`DuplicateScheduleError` when ``key`` is already taken,
        :class:`~tenant_cadence.errors.ConfigurationError` for a bad cron
        expression and :class:`EngineError` for an unknown calendar name.
        """

        cron = parse_cron(cron_expression, self.timezone)
        install = calendar is not None and calendar_name is not None
        if calendar_name is None:
            calendar = None
        elif calendar is None:
            calendar = self.get_calendar(calendar_name)
            if calendar is None:
                raise EngineError(f"calendar {calendar_name!r} is not registered")

        self._ensure_started()
        try:
            job = self.scheduler.add_job(
                run_job,
                trigger=CalendarCronTrigger(cron, calendar),
                args=(job_class, key, payload),
                id=key,
                name=key,
                replace_existing=False,
                coalesce=True,
            )
        except ConflictingIdError as exc:
            raise DuplicateScheduleError(f"schedule {key!r} already exists") from exc
        except (TypeError, ValueError, LookupError) as exc:
            raise EngineError(f"engine rejected {key!r}: {exc}") from exc
        if install:
            self.register_calendar(calendar_name, calendar)
        return job

    def fire_now(self, key: str) -> FireResult:
        """Queue one immediate, independent fire of the job registered as ``key``."""

        job = self.scheduler.get_job(key)
        if job is None:
            return FireResult.NOT_FOUND
        now = datetime.now(self.timezone)
        self.scheduler.add_job(
            job.func,
            trigger=DateTrigger(run_date=now, timezone=self.timezone),
            args=job.args,
            kwargs=job.kwargs,
            id=f"{key}{RUN_NOW_MARKER}{uuid4().hex}",
            name=f"run-now {key}",
            misfire_grace_time=None,
        )
        return FireResult.ACCEPTED

    def pending_run_now(self) -> List[Job]:
        """Return run-now requests the scheduler has not handed to an executor yet."""

        return [job for job in self.scheduler.get_jobs() if RUN_NOW_MARKER in job.id]

    def drain(self, timeout: float = 30.0) -> bool:
        """Wait for queued run-now fires, then shut down waiting for running jobs.

        A one-shot job leaves the job store once it is submitted, and
        ``shutdown(wait=True)`` blocks until submitted jobs finish.  Returns
        ``False`` when requests were still queued after ``timeout`` seconds
        (for instance because the scheduler is paused); those never run.
        """

        deadline = time.monotonic() + timeout
        while self.scheduler.running and self.pending_run_now():
            if time.monotonic() >= deadline:
                break
            time.sleep(0.05)
        pending = len(self.pending_run_now())
        if pending:
            logger.warning("Shutting down with %d run-now requests still queued", pending)
        self.shutdown(wait=True)
        return not pending

    def list_schedules(self) -> List[Job]:
        """Return the cron jobs, leaving out pending run-now requests."""

        return [job for job in self.scheduler.get_jobs() if RUN_NOW_MARKER not in job.id]

    def next_fire_times(
        self, key: str, count: int = 5, *, now: Optional[datetime] = None
    ) -> List[datetime]:
        """Preview the next ``count`` fire times of ``key`` honouring its calendar."""

        job = self.scheduler.get_job(key)
        if job is None:
            raise NotFoundError(f"schedule {key!r} is not registered")
        current = now or datetime.now(self.timezone)
        times: List[datetime] = []
        previous: Optional[datetime] = None
        while len(times) < count:
            fire = job.trigger.get_next_fire_time(previous, current)
            if fire is None:
                break
            times.append(fire)
            previous = fire
            current = fire + timedelta(microseconds=1)
        return times


# ---------------------------------------------------------------------------
# Default engine accessor

_default_engine: APSchedulerEngine | None = None


def set_default_engine(engine: APSchedulerEngine | None) -> None:
    """Set the global default engine instance."""

    global _default_engine
    _default_engine = engine


def get_default_engine() -> APSchedulerEngine:
    """Return the configured default engine."""

    if _default_engine is None:
        raise RuntimeError("Default engine has not been initialised")
    return _default_engine


def create_engine(timezone: str | ZoneInfo = "UTC") -> APSchedulerEngine:
    """Return an engine whose scheduler is started in paused state."""

    engine = APSchedulerEngine(timezone=timezone)
    engine.start(paused=True)
    return engine


__all__ = [
    "APSchedulerEngine",
    "CalendarCronTrigger",
    "FireResult",
    "RUN_NOW_MARKER",
    "SchedulingEngine",
    "create_engine",
    "get_default_engine",
    "set_default_engine",
]
