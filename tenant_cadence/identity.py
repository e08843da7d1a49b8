"""Schedule identity derived from ``(tenant, job, version)``."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import ConfigurationError, MalformedIdentityError

TENANT_DELIMITER = ":"
VERSION_DELIMITER = "-v"

_KEY_RE = re.compile(r"^(?P<tenant>[^:]+):(?P<job>[^:]+?)-v(?P<version>[1-9][0-9]*)$")


@dataclass(frozen=True)
class ScheduleIdentity:
    """Identity of a scheduled job; ``key`` is what the engine stores."""

    tenant_id: str
    job_id: str
    version: int

    @property
    def key(self) -> str:
        return derive_key(self.tenant_id, self.job_id, self.version)

    def __str__(self) -> str:
        return self.key


def derive_key(tenant_id: str, job_id: str, version: int) -> str:
    """Return ``"{tenant_id}:{job_id}-v{version}"``.

    Tenant ids may not contain ``:`` and job ids may contain neither ``:`` nor
    ``-v``; together with a positive integer version this keeps the mapping
    injective.  Violations raise :class:`ConfigurationError`.
    """

    if not tenant_id or TENANT_DELIMITER in tenant_id:
        raise ConfigurationError(f"invalid tenant id: {tenant_id!r}")
    if not job_id or TENANT_DELIMITER in job_id or VERSION_DELIMITER in job_id:
        raise ConfigurationError(f"invalid job id: {job_id!r}")
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise ConfigurationError(f"version must be a positive integer: {version!r}")
    return f"{tenant_id}{TENANT_DELIMITER}{job_id}{VERSION_DELIMITER}{version}"


def parse_key(key: str) -> ScheduleIdentity:
    """Inverse of :func:`derive_key`."""

    match = _KEY_RE.match(key) if isinstance(key, str) else None
    if match is None or VERSION_DELIMITER in match.group("job"):
        raise MalformedIdentityError(f"malformed identity key: {key!r}")
    return ScheduleIdentity(
        tenant_id=match.group("tenant"),
        job_id=match.group("job"),
        version=int(match.group("version")),
    )


__all__ = ["ScheduleIdentity", "derive_key", "parse_key"]
