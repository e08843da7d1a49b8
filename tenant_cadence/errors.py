"""Exception hierarchy shared by the registrar, the calendars and the engine."""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for failures scoped to a single job definition."""


class ConfigurationError(SchedulerError, ValueError):
    """A definition or calendar is malformed (bad cron, unknown type, cycle...)."""


class MalformedIdentityError(ConfigurationError):
    """A string is not a ``{tenant}:{job}-v{version}`` identity key."""


class NotFoundError(SchedulerError, LookupError):
    """A referenced calendar could not be resolved."""


class EngineError(SchedulerError):
    """The scheduling engine rejected a request."""


class DuplicateScheduleError(EngineError):
    """A schedule with the same identity is already registered."""


__all__ = [
    "SchedulerError",
    "ConfigurationError",
    "MalformedIdentityError",
    "NotFoundError",
    "EngineError",
    "DuplicateScheduleError",
]
