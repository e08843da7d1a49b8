"""Job base classes and job class loading.

A job definition names the logic it runs with a ``module:attr`` reference.
``attr`` is either a :class:`BaseJob` subclass, instantiated once per fire,
or a plain callable.  Both receive the fire-time :class:`JobParameters`.
"""

from __future__ import annotations

import importlib
import inspect
import logging
from typing import Any, Callable, Union

from ..errors import ConfigurationError
from ..metrics import track_job
from ..params import JobParameters, TENANT_PARAM

logger = logging.getLogger(__name__)


class BaseJob:
    """Base class for scheduled jobs."""

    name: str = "base"

    def run(self, params: JobParameters) -> Any:
        """Execute the job. Subclasses must override this method."""
        raise NotImplementedError


JobTarget = Union[type, Callable[[JobParameters], Any]]


def load_job(path: str) -> JobTarget:
    """Return the object referenced by ``path`` (``module:attr``)."""

    module_path, sep, attr = path.partition(":")
    if not sep or not module_path or not attr:
        raise ConfigurationError(f"job class must look like 'module:attr': {path!r}")
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ConfigurationError(f"cannot import job module {module_path!r}: {exc}") from exc
    target: Any = module
    for part in attr.split("."):
        target = getattr(target, part, None)
        if target is None:
            raise ConfigurationError(f"job class {path!r} not found")
    if inspect.isclass(target):
        if not issubclass(target, BaseJob):
            raise ConfigurationError(f"job class {path!r} must subclass BaseJob")
    elif not callable(target):
        raise ConfigurationError(f"job class {path!r} is not callable")
    return target


@track_job
def run_job(job_class: str, key: str, params: JobParameters) -> Any:
    """Entry point the engine calls at fire time."""

    target = load_job(job_class)
    logger.info("Running %s for %s", job_class, key)
    if inspect.isclass(target):
        return target().run(params)
    return target(params)


# ---------------------------------------------------------------------------
# Example job shipped with this repository.


class LogPayloadJob(BaseJob):
    """Logs the tenant and parameters it was fired with."""

    name = "log_payload"

    def run(self, params: JobParameters) -> dict:
        payload = params.to_python()
        logger.info("Job fired for tenant %s with %s", payload.get(TENANT_PARAM), payload)
        return payload


__all__ = ["BaseJob", "JobTarget", "load_job", "run_job", "LogPayloadJob"]
