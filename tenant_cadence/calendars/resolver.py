"""Tenant-first calendar lookup with a global fallback."""

from __future__ import annotations

import logging
from typing import Dict, Tuple

from ..config import GLOBAL_TENANT
from ..errors import NotFoundError
from ..models import JobCalendar
from ..store import CalendarStore

logger = logging.getLogger(__name__)


class CalendarResolver:
    """Resolve calendar names for a tenant.

    A lookup first tries ``(tenant_id, name)`` and then
    ``(GLOBAL_TENANT, name)``.  Results are memoised for the lifetime of the
    resolver, which is meant to be one registration pass.
    """

    def __init__(self, store: CalendarStore, *, global_tenant: str = GLOBAL_TENANT) -> None:
        self._store = store
        self._global_tenant = global_tenant
        self._cache: Dict[Tuple[str, str], JobCalendar] = {}

    def resolve(self, tenant_id: str, calendar_name: str) -> JobCalendar:
        key = (tenant_id, calendar_name)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        calendar = self._store.find_by_tenant_and_name(tenant_id, calendar_name)
        if calendar is None and tenant_id != self._global_tenant:
            calendar = self._store.find_by_tenant_and_name(
                self._global_tenant, calendar_name
            )
            if calendar is not None:
                logger.debug(
                    "Calendar %s for tenant %s resolved from global scope",
                    calendar_name,
                    tenant_id,
                )
        if calendar is None:
            raise NotFoundError(
                f"calendar {calendar_name!r} not found for tenant {tenant_id!r} "
                f"or global scope {self._global_tenant!r}"
            )
        self._cache[key] = calendar
        return calendar


__all__ = ["CalendarResolver"]
