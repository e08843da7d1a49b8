"""Tagged parameter values handed to jobs at fire time.

Parameters are stored as plain YAML/JSON data.  Before crossing into a job they
are wrapped in :class:`ParamValue` so the kind of every value (string, number,
boolean, array, map or null) is explicit rather than inferred again on the
other side.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator

from .errors import ConfigurationError


class ParamKind(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    ARRAY = "array"
    MAP = "map"
    NULL = "null"


TENANT_PARAM = "tenantId"


@dataclass(frozen=True)
class ParamValue:
    """A single tagged value.

    ``ARRAY`` values hold a tuple of :class:`ParamValue`; ``MAP`` values hold a
    :class:`JobParameters`.
    """

    kind: ParamKind
    value: Any = None

    @classmethod
    def of(cls, raw: Any) -> "ParamValue":
        """Tag a plain Python value."""

        if isinstance(raw, ParamValue):
            return raw
        if raw is None:
            return cls(ParamKind.NULL)
        # bool is a subclass of int
        if isinstance(raw, bool):
            return cls(ParamKind.BOOLEAN, raw)
        if isinstance(raw, int):
            return cls(ParamKind.INTEGER, raw)
        if isinstance(raw, float):
            return cls(ParamKind.FLOAT, raw)
        if isinstance(raw, str):
            return cls(ParamKind.STRING, raw)
        if isinstance(raw, Mapping):
            return cls(ParamKind.MAP, JobParameters.from_mapping(raw))
        if isinstance(raw, (list, tuple)):
            return cls(ParamKind.ARRAY, tuple(cls.of(item) for item in raw))
        raise ConfigurationError(
            f"unsupported parameter value of type {type(raw).__name__}: {raw!r}"
        )

    def to_python(self) -> Any:
        if self.kind is ParamKind.ARRAY:
            return [item.to_python() for item in self.value]
        if self.kind is ParamKind.MAP:
            return self.value.to_python()
        return self.value


class JobParameters(Mapping):
    """Immutable ``str -> ParamValue`` mapping."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, ParamValue] | None = None) -> None:
        self._values: Dict[str, ParamValue] = dict(values or {})

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "JobParameters":
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"parameters must be a mapping, got {raw!r}")
        values: Dict[str, ParamValue] = {}
        for key, value in raw.items():
            if not isinstance(key, str):
                raise ConfigurationError(f"parameter names must be strings: {key!r}")
            values[key] = ParamValue.of(value)
        return cls(values)

    def merged_with_tenant(self, tenant_id: str) -> "JobParameters":
        """Return a copy carrying ``tenantId``; the tenant overrides any stored value."""

        values = dict(self._values)
        values[TENANT_PARAM] = ParamValue(ParamKind.STRING, tenant_id)
        return JobParameters(values)

    def to_python(self) -> Dict[str, Any]:
        return {key: value.to_python() for key, value in self._values.items()}

    def __getitem__(self, key: str) -> ParamValue:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, JobParameters):
            return self._values == other._values
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._values.items(), key=lambda item: item[0])))

    def __repr__(self) -> str:
        return f"JobParameters({self.to_python()!r})"


__all__ = ["ParamKind", "ParamValue", "JobParameters", "TENANT_PARAM"]
