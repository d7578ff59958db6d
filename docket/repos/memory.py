"""In-memory document store for hearings, cases and activity entries.

Stands in for the external document database: every read goes through a
filter query of ``(field, op, value)`` triples, and every method is a
coroutine so callers treat it like remote I/O.
"""

from __future__ import annotations

import asyncio
import operator
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, NamedTuple

from pydantic import BaseModel

from docket.domain.models import ActivityEntry, Case, Hearing


class StoreError(RuntimeError):
    """Raised when the document store cannot serve a request."""


class Filter(NamedTuple):
    field: str
    op: str
    value: Any


def _contains(actual: Any, expected: Any) -> bool:
    return actual is not None and expected in actual


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "in": lambda actual, expected: actual in expected,
    "array-contains": _contains,
}

_ORDERING_OPS = {">", ">=", "<", "<="}


def _check_filters(filters: Iterable[Filter]) -> list[Filter]:
    checked = list(filters)
    for flt in checked:
        if flt.op not in _OPERATORS:
            raise StoreError(f"Unsupported operator: {flt.op}")
    return checked


def _field_value(doc: BaseModel, path: str) -> Any:
    """Resolve a dotted path such as ``resource_scope.courtroom_id``."""
    value: Any = doc
    for part in path.split("."):
        value = getattr(value, part, None)
        if value is None:
            return None
    return value


def _matches(doc: BaseModel, flt: Filter) -> bool:
    actual = _field_value(doc, flt.field)
    if flt.op in _ORDERING_OPS and actual is None:
        return False
    return _OPERATORS[flt.op](actual, flt.value)


def _run_query(
    docs: Iterable[BaseModel],
    filters: Iterable[Filter],
    order_by: str | None,
    descending: bool,
    limit: int | None,
) -> list:
    checked = _check_filters(filters)
    found = [d for d in docs if all(_matches(d, f) for f in checked)]

    if order_by is not None:
        # Documents missing the sort field always go last
        present = [d for d in found if getattr(d, order_by, None) is not None]
        missing = [d for d in found if getattr(d, order_by, None) is None]
        present.sort(key=lambda d: getattr(d, order_by), reverse=descending)
        found = present + missing

    if limit is not None:
        found = found[:limit]
    return found


class HearingRepository:
    """Dict-backed store for Hearing instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Hearing] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def add(self, hearing: Hearing) -> Hearing:
        self._store[hearing.id] = hearing
        return hearing

    async def get(self, hearing_id: str) -> Hearing | None:
        return self._store.get(hearing_id)

    async def update(self, hearing_id: str, changes: dict[str, Any]) -> Hearing | None:
        """Apply *changes* and re-validate; returns the stored hearing."""
        existing = self._store.get(hearing_id)
        if existing is None:
            return None
        data = existing.model_dump()
        data.update(changes)
        data["id"] = hearing_id
        data["updated_at"] = datetime.now(timezone.utc)
        updated = Hearing.model_validate(data)
        self._store[hearing_id] = updated
        return updated

    async def delete(self, hearing_id: str) -> None:
        self._store.pop(hearing_id, None)

    async def query(
        self,
        filters: Iterable[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Hearing]:
        return _run_query(self._store.values(), filters, order_by, descending, limit)

    def owner_lock(self, owner: str) -> asyncio.Lock:
        """Lock serializing scan-then-write sequences for one owner.

        Locks are created on first use and kept for the life of the
        repository, one per owner seen.
        """
        return self._locks[owner]


class CaseRepository:
    """Dict-backed store for Case instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Case] = {}

    async def add(self, case: Case) -> Case:
        self._store[case.id] = case
        return case

    async def get(self, case_id: str) -> Case | None:
        return self._store.get(case_id)


class ActivityRepository:
    """List-backed store for ActivityEntry instances."""

    def __init__(self) -> None:
        self._entries: list[ActivityEntry] = []

    async def add(self, entry: ActivityEntry) -> None:
        self._entries.append(entry)

    async def list_for_hearing(self, hearing_id: str) -> list[ActivityEntry]:
        return sorted(
            [e for e in self._entries if e.hearing_id == hearing_id],
            key=lambda e: e.timestamp,
        )

    async def list_for_owner(self, owner: str) -> list[ActivityEntry]:
        return sorted(
            [e for e in self._entries if e.owner == owner],
            key=lambda e: e.timestamp,
            reverse=True,
        )


class DocumentStore:
    """Bundle of the repositories the service talks to."""

    def __init__(
        self,
        hearings: HearingRepository | None = None,
        cases: CaseRepository | None = None,
        activities: ActivityRepository | None = None,
    ) -> None:
        self.hearings = hearings or HearingRepository()
        self.cases = cases or CaseRepository()
        self.activities = activities or ActivityRepository()
