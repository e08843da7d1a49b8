"""Out-of-band "run now" requests addressed by identity key."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from .errors import MalformedIdentityError
from .identity import parse_key
from .scheduler import FireResult, SchedulingEngine, get_default_engine
from . import metrics

logger = logging.getLogger(__name__)


class TriggerResult(str, Enum):
    ACCEPTED = "accepted"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"


class RunNowTrigger:
    """Hand immediate fire requests to the engine.

    ``ACCEPTED`` only means the engine queued the fire; it says nothing about
    whether the job ran or succeeded.  Every call queues its own fire.
    """

    def __init__(self, engine: SchedulingEngine) -> None:
        self.engine = engine

    def trigger(self, key: str) -> TriggerResult:
        try:
            identity = parse_key(key)
        except MalformedIdentityError:
            logger.info("Rejected run-now request for malformed key %r", key)
            return self._record(TriggerResult.MALFORMED)

        fired = self.engine.fire_now(identity.key)
        if fired is FireResult.NOT_FOUND:
            logger.info("Run-now request for unknown schedule %s", key)
            return self._record(TriggerResult.NOT_FOUND)
        logger.info("Run-now request accepted for %s", key)
        return self._record(TriggerResult.ACCEPTED)

    @staticmethod
    def _record(result: TriggerResult) -> TriggerResult:
        metrics.RUN_NOW_REQUESTS.labels(result.value).inc()
        return result


def trigger_now(key: str, engine: Optional[SchedulingEngine] = None) -> TriggerResult:
    """Request an immediate fire of ``key`` on ``engine`` or the default engine."""

    return RunNowTrigger(engine or get_default_engine()).trigger(key)


__all__ = ["RunNowTrigger", "TriggerResult", "trigger_now"]
