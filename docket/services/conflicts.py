"""Service for detecting scheduling conflicts between hearings."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection
from datetime import datetime

from docket.domain.models import (
    ACTIVE_STATUSES,
    ConflictReportEntry,
    ConflictScope,
    Hearing,
    ResourceScope,
)
from docket.repos.memory import DocumentStore, Filter, StoreError
from docket.services.timezones import HearingTimes, as_utc, materialize_hearing_times

logger = logging.getLogger(__name__)

# (scope, ResourceScope attribute, label) in report order
_SCOPE_MATCHERS = (
    (ConflictScope.COURTROOM, "courtroom_id", "Same courtroom"),
    (ConflictScope.COUNSEL, "counsel_id", "Same counsel"),
    (ConflictScope.CLIENT, "client_id", "Same client"),
)

TIME_OVERLAP_REASON = "Time overlap"


def overlaps(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """Return True if the half-open ranges [start_a, end_a) and [start_b, end_b) overlap.

    Exact boundary touches (end_a == start_b) are NOT considered overlaps.
    """
    return start_a < end_b and start_b < end_a


def match_scopes(
    candidate: ResourceScope,
    existing: ResourceScope | None,
    scopes: Collection[ConflictScope],
) -> list[str]:
    """Labels of every active scope on which both hearings use the same resource."""
    if existing is None:
        return []
    labels = []
    for scope, attr, label in _SCOPE_MATCHERS:
        wanted = getattr(candidate, attr)
        if scope in scopes and wanted and getattr(existing, attr) == wanted:
            labels.append(label)
    return labels


async def find_conflicts(
    user_id: str,
    start_at: datetime,
    end_at: datetime,
    resource_scope: ResourceScope | None = None,
    *,
    store: DocumentStore,
    scopes: Collection[ConflictScope],
    exclude_hearing_id: str | None = None,
) -> list[ConflictReportEntry]:
    """Return the user's active hearings that conflict with ``[start_at, end_at)``.

    An overlapping hearing is reported when the ``global`` scope is active or
    when it shares a resource on at least one active scope. The hearing with
    id *exclude_hearing_id* is never compared, which lets an edited hearing be
    re-checked against everything but itself.

    Failures fetching the hearings propagate as ``StoreError``. Case lookups
    for display are best-effort and never fail the scan.
    """
    candidate = resource_scope or ResourceScope()
    start_at, end_at = as_utc(start_at), as_utc(end_at)
    is_global = ConflictScope.GLOBAL in scopes

    hearings = await store.hearings.query(
        [
            Filter("owner", "==", user_id),
            Filter("status", "in", list(ACTIVE_STATUSES)),
        ]
    )

    found: list[tuple[Hearing, HearingTimes, list[str]]] = []
    for hearing in hearings:
        if exclude_hearing_id and hearing.id == exclude_hearing_id:
            continue

        try:
            times = materialize_hearing_times(hearing)
        except ValueError as exc:
            logger.warning("Skipping hearing %s with unreadable time fields: %s", hearing.id, exc)
            continue
        if times is None:
            continue

        if not overlaps(start_at, end_at, times.start_at, times.end_at):
            continue

        labels = match_scopes(candidate, hearing.resource_scope, scopes)
        if is_global or labels:
            found.append((hearing, times, labels))

    case_numbers = await asyncio.gather(
        *(_resolve_case_number(store, hearing.case_id) for hearing, _, _ in found)
    )

    logger.debug(
        "Conflict scan for user %s: %d candidates, %d conflicts",
        user_id,
        len(hearings),
        len(found),
    )

    return [
        ConflictReportEntry(
            hearing_id=hearing.id,
            case_number=case_number,
            start_at=times.start_at,
            end_at=times.end_at,
            conflict_reason=", ".join(labels) if labels else TIME_OVERLAP_REASON,
            resource_scope=labels,
        )
        for (hearing, times, labels), case_number in zip(found, case_numbers)
    ]


async def _resolve_case_number(store: DocumentStore, case_id: str) -> str:
    fallback = f"Case {case_id}"
    try:
        case = await store.cases.get(case_id)
    except StoreError as exc:
        logger.warning("Could not fetch case %s for conflict details: %s", case_id, exc)
        return fallback
    if case is None or not case.case_number:
        return fallback
    return case.case_number
