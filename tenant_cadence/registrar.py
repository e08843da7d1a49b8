"""Registration pass: reconcile enabled job definitions with the engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import tzinfo
from enum import Enum
from functools import partial
from typing import Dict, List, Optional, Tuple

from .calendars import ExclusionCalendar
from .calendars.builder import build_calendar
from .calendars.resolver import CalendarResolver
from .config import DEFAULT_MAX_CALENDAR_DEPTH
from .cron import parse_cron
from .errors import DuplicateScheduleError, EngineError, SchedulerError
from .identity import derive_key
from .models import JobDefinition
from .plugins import load_job
from .scheduler import SchedulingEngine
from .store import CalendarStore, JobDefinitionStore
from . import metrics

logger = logging.getLogger(__name__)


class RegistrationState(str, Enum):
    PENDING = "pending"
    IDEMPOTENT_SKIP = "idempotent_skip"
    REGISTERED = "registered"
    FAILED = "failed"


@dataclass
class RegistrationOutcome:
    """Result of processing one definition."""

    definition: JobDefinition
    key: Optional[str] = None
    state: RegistrationState = RegistrationState.PENDING
    calendar_name: Optional[str] = None
    error: Optional[SchedulerError] = None

    @property
    def label(self) -> str:
        if self.key is not None:
            return self.key
        d = self.definition
        return f"{d.tenant_id}/{d.job_id}/v{d.version}"


@dataclass
class RegistrationReport:
    outcomes: List[RegistrationOutcome] = field(default_factory=list)

    def _with(self, state: RegistrationState) -> List[RegistrationOutcome]:
        return [o for o in self.outcomes if o.state is state]

    @property
    def registered(self) -> List[RegistrationOutcome]:
        return self._with(RegistrationState.REGISTERED)

    @property
    def skipped(self) -> List[RegistrationOutcome]:
        return self._with(RegistrationState.IDEMPOTENT_SKIP)

    @property
    def failed(self) -> List[RegistrationOutcome]:
        return self._with(RegistrationState.FAILED)

    @property
    def ok(self) -> bool:
        return not self.failed


def engine_calendar_name(tenant_id: str, calendar_name: str) -> str:
    """Name under which a tenant's resolved calendar lives in the engine."""

    return f"{tenant_id}:{calendar_name}"


class JobRegistrar:
    """Run registration passes against a :class:`SchedulingEngine`.

    Each pass reads the store once, builds a fresh calendar resolver and
    processes the enabled definitions one at a time.  Failures are recorded
    on the returned :class:`RegistrationReport`; :meth:`run` never raises for
    a single bad definition.

    Two processes registering against one shared job store at the same time
    are safe only because ``schedule_cron`` is an atomic add: the loser of a
    race gets :class:`DuplicateScheduleError` and records a skip.
    """

    def __init__(
        self,
        job_store: JobDefinitionStore,
        calendar_store: CalendarStore,
        engine: SchedulingEngine,
        *,
        max_calendar_depth: int = DEFAULT_MAX_CALENDAR_DEPTH,
        timezone: Optional[tzinfo] = None,
    ) -> None:
        self.job_store = job_store
        self.calendar_store = calendar_store
        self.engine = engine
        self.max_calendar_depth = max_calendar_depth
        self.timezone = timezone or getattr(engine, "timezone", None)

    def run(self) -> RegistrationReport:
        report = RegistrationReport()
        resolver = CalendarResolver(self.calendar_store)
        built: Dict[Tuple[str, str], ExclusionCalendar] = {}
        for definition in self.job_store.list_enabled():
            if not definition.enabled:
                continue
            outcome = self._register(definition, resolver, built)
            metrics.REGISTRATION_OUTCOMES.labels(outcome.state.value).inc()
            report.outcomes.append(outcome)
        logger.info(
            "Registration pass finished: %d registered, %d skipped, %d failed",
            len(report.registered),
            len(report.skipped),
            len(report.failed),
        )
        return report

    def _register(
        self,
        definition: JobDefinition,
        resolver: CalendarResolver,
        built: Dict[Tuple[str, str], ExclusionCalendar],
    ) -> RegistrationOutcome:
        outcome = RegistrationOutcome(definition)
        try:
            outcome.key = key = derive_key(
                definition.tenant_id, definition.job_id, definition.version
            )
            if self.engine.exists(key):
                outcome.state = RegistrationState.IDEMPOTENT_SKIP
                logger.debug("Schedule %s already registered", key)
                return outcome

            payload = definition.parameters.merged_with_tenant(definition.tenant_id)
            parse_cron(definition.cron_expression, self.timezone or "UTC")
            load_job(definition.job_class)

            calendar = None
            if definition.calendar_name:
                outcome.calendar_name = engine_calendar_name(
                    definition.tenant_id, definition.calendar_name
                )
                calendar = self._calendar_for(
                    definition.tenant_id, definition.calendar_name, resolver, built
                )

            self.engine.schedule_cron(
                key,
                definition.cron_expression,
                outcome.calendar_name,
                payload,
                job_class=definition.job_class,
                calendar=calendar,
            )
        except DuplicateScheduleError:
            outcome.state = RegistrationState.IDEMPOTENT_SKIP
            logger.info("Schedule %s registered concurrently; skipping", outcome.label)
            return outcome
        except SchedulerError as exc:
            outcome.state = RegistrationState.FAILED
            outcome.error = exc
            logger.warning("Failed to register %s: %s", outcome.label, exc)
            return outcome
        except Exception as exc:
            outcome.state = RegistrationState.FAILED
            error = EngineError(f"unexpected error registering {outcome.label}: {exc}")
            error.__cause__ = exc
            outcome.error = error
            logger.exception("Unexpected error registering %s", outcome.label)
            return outcome

        outcome.state = RegistrationState.REGISTERED
        logger.info(
            "Registered %s (%s) cron=%r calendar=%s",
            key,
            definition.job_class,
            definition.cron_expression,
            outcome.calendar_name,
        )
        return outcome

    def _calendar_for(
        self,
        tenant_id: str,
        calendar_name: str,
        resolver: CalendarResolver,
        built: Dict[Tuple[str, str], ExclusionCalendar],
    ) -> ExclusionCalendar:
        cache_key = (tenant_id, calendar_name)
        calendar = built.get(cache_key)
        if calendar is None:
            resolve = partial(resolver.resolve, tenant_id)
            calendar = build_calendar(
                resolve(calendar_name),
                resolve,
                max_depth=self.max_calendar_depth,
                timezone=self.timezone,
            )
            built[cache_key] = calendar
        return calendar


def register_jobs(
    job_store: JobDefinitionStore,
    calendar_store: CalendarStore,
    engine: SchedulingEngine,
    **kwargs,
) -> RegistrationReport:
    """Convenience wrapper running a single pass."""

    return JobRegistrar(job_store, calendar_store, engine, **kwargs).run()


__all__ = [
    "JobRegistrar",
    "RegistrationOutcome",
    "RegistrationReport",
    "RegistrationState",
    "engine_calendar_name",
    "register_jobs",
]
