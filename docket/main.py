"""FastAPI application: entry point for the hearing scheduling service."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from docket.config import Settings, get_settings
from docket.domain.bus import EventBus
from docket.domain.events import (
    ConflictDetected,
    ConflictOverridden,
    HearingCreated,
    HearingDeleted,
    HearingUpdated,
)
from docket.domain.handlers import HandlerRegistry
from docket.domain.models import (
    ACTIVE_STATUSES,
    ActivityEntry,
    CaseSummary,
    ConflictCheckRequest,
    ConflictCheckResponse,
    ConflictOverride,
    ConflictReportEntry,
    Hearing,
    HearingCreate,
    HearingStatus,
    HearingUpdate,
    HearingWithCase,
    OverrideRequest,
    ResourceScope,
)
from docket.repos.memory import DocumentStore, Filter, StoreError
from docket.services.conflicts import find_conflicts
from docket.services.timezones import (
    DEFAULT_DURATION_MINUTES,
    as_utc,
    compute_hearing_times,
    materialize_hearing_times,
)
from docket.services.validation import (
    MAX_DURATION_MINUTES,
    MIN_DURATION_MINUTES,
    validate_hearing_data,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Active conflict scopes: %s", ", ".join(sorted(settings.active_scopes)))
    yield


app = FastAPI(title="Docket Hearing Service", lifespan=lifespan)

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
store = DocumentStore()
handler_registry = HandlerRegistry(bus=event_bus, store=store)

# Changing any of these re-runs validation and the conflict scan on update
_SCHEDULING_FIELDS = {
    "hearing_date",
    "hearing_time",
    "timezone",
    "start_at",
    "end_at",
    "duration",
    "status",
    "resource_scope",
}
_LEGACY_TIME_FIELDS = {"hearing_date", "hearing_time", "timezone"}


def current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Owner of the request; authentication happens upstream."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Document store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Document store unavailable"})


# ── Helpers ───────────────────────────────────────────────────────────


def _usable_duration(value: Any) -> int:
    if isinstance(value, int) and MIN_DURATION_MINUTES <= value <= MAX_DURATION_MINUTES:
        return value
    return DEFAULT_DURATION_MINUTES


def _fill_absolute_times(fields: dict[str, Any]) -> None:
    """Populate start_at/end_at from the legacy fields, and hearing_date from start_at."""
    duration = _usable_duration(fields.get("duration"))
    for key in ("start_at", "end_at"):
        if fields.get(key) is not None:
            fields[key] = as_utc(fields[key])

    if fields.get("start_at") is None and fields.get("hearing_date") is not None:
        times = compute_hearing_times(
            fields["hearing_date"],
            fields.get("hearing_time"),
            fields.get("timezone"),
            duration,
        )
        fields["start_at"], fields["end_at"] = times
    elif fields.get("start_at") is not None and fields.get("end_at") is None:
        fields["end_at"] = fields["start_at"] + timedelta(minutes=duration)

    if fields.get("hearing_date") is None and fields.get("start_at") is not None:
        fields["hearing_date"] = as_utc(fields["start_at"]).date()


def _shift_to_new_date(merged: dict[str, Any], existing: Hearing) -> None:
    """Move a hearing without a known wall-clock time to its new date.

    The stored instants keep their time of day; a timezone change alone
    leaves them untouched.
    """
    if existing.start_at is None or existing.end_at is None or existing.hearing_date is None:
        return
    shift = timedelta(days=(merged["hearing_date"] - existing.hearing_date).days)
    merged["start_at"] = existing.start_at + shift
    merged["end_at"] = existing.end_at + shift


def _accept_conflicts(
    conflicts: list[ConflictReportEntry],
    override: OverrideRequest | None,
    user_id: str,
) -> ConflictOverride:
    """Turn detected conflicts into an override record, or reject the write."""
    if override is None or not override.allowed:
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Hearing conflicts with existing hearings",
                "conflicts": [c.model_dump(mode="json") for c in conflicts],
            },
        )
    if not override.reason:
        raise HTTPException(
            status_code=422,
            detail={"errors": ["A reason is required to override a conflict"]},
        )
    return ConflictOverride(
        allowed=True,
        reason=override.reason,
        overridden_by=user_id,
        overridden_at=datetime.now(timezone.utc),
        conflicting_hearings=[c.hearing_id for c in conflicts],
    )


async def _publish_override(hearing_id: str, owner: str, override: ConflictOverride) -> None:
    await event_bus.publish(
        ConflictDetected(
            hearing_id=hearing_id,
            owner=owner,
            conflicting_hearing_ids=override.conflicting_hearings,
        )
    )
    await event_bus.publish(
        ConflictOverridden(
            hearing_id=hearing_id,
            owner=owner,
            reason=override.reason or "",
            conflicting_hearing_ids=override.conflicting_hearings,
        )
    )


async def _get_owned(hearing_id: str, user_id: str) -> Hearing:
    hearing = await store.hearings.get(hearing_id)
    if hearing is None:
        raise HTTPException(status_code=404, detail="Hearing not found")
    if hearing.owner != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return hearing


async def _with_case(hearing: Hearing) -> HearingWithCase:
    """Attach case number and client name when the case can be resolved."""
    summary = None
    try:
        case = await store.cases.get(hearing.case_id)
    except StoreError as exc:
        logger.warning("Could not fetch case %s for hearing %s: %s", hearing.case_id, hearing.id, exc)
        case = None
    if case is not None:
        summary = CaseSummary(case_number=case.case_number, client_name=case.client_name)
    return HearingWithCase(**hearing.model_dump(), case=summary)


def _reject_invalid(fields: dict[str, Any]) -> None:
    result = validate_hearing_data(fields)
    if not result.valid:
        raise HTTPException(status_code=422, detail={"errors": result.errors})


# ── Routes ────────────────────────────────────────────────────────────


@app.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict:
    return {"status": "ok", "conflict_scopes": sorted(settings.active_scopes)}


@app.post("/hearings", response_model=Hearing, status_code=201)
async def create_hearing(
    payload: HearingCreate,
    user_id: str = Depends(current_user_id),
    settings: Settings = Depends(get_settings),
) -> Hearing:
    """Create a hearing after validating it and scanning for conflicts.

    Conflicts reject the write with 409 unless the request carries an
    ``override`` with ``allowed`` set and a reason.
    """
    fields = payload.model_dump(exclude={"override"})
    fields["timezone"] = payload.timezone or settings.default_timezone
    _fill_absolute_times(fields)

    override = ConflictOverride()
    async with store.hearings.owner_lock(user_id):
        _reject_invalid(fields)

        if fields["status"] in ACTIVE_STATUSES:
            conflicts = await find_conflicts(
                user_id,
                fields["start_at"],
                fields["end_at"],
                payload.resource_scope,
                store=store,
                scopes=settings.active_scopes,
            )
            if conflicts:
                override = _accept_conflicts(conflicts, payload.override, user_id)

        hearing = Hearing(**fields, owner=user_id, conflict_override=override)
        await store.hearings.add(hearing)

    await event_bus.publish(HearingCreated(hearing_id=hearing.id, owner=user_id))
    if override.allowed:
        await _publish_override(hearing.id, user_id, override)
    return hearing


@app.post("/hearings/check-conflicts", response_model=ConflictCheckResponse)
async def check_conflicts(
    payload: ConflictCheckRequest,
    user_id: str = Depends(current_user_id),
    settings: Settings = Depends(get_settings),
) -> ConflictCheckResponse:
    """Dry run of the create/update checks; nothing is written."""
    fields = payload.model_dump(exclude={"exclude_hearing_id"})
    fields["timezone"] = payload.timezone or settings.default_timezone
    _fill_absolute_times(fields)

    result = validate_hearing_data(fields)
    if not result.valid:
        return ConflictCheckResponse(valid=False, errors=result.errors)

    conflicts = await find_conflicts(
        user_id,
        fields["start_at"],
        fields["end_at"],
        payload.resource_scope,
        store=store,
        scopes=settings.active_scopes,
        exclude_hearing_id=payload.exclude_hearing_id,
    )
    return ConflictCheckResponse(valid=True, conflicts=conflicts)


@app.get("/hearings", response_model=list[HearingWithCase])
async def list_hearings(
    status: HearingStatus | None = None,
    user_id: str = Depends(current_user_id),
) -> list[HearingWithCase]:
    """Return the user's hearings, newest hearing date first."""
    filters = [Filter("owner", "==", user_id)]
    if status is not None:
        filters.append(Filter("status", "==", status))
    hearings = await store.hearings.query(filters, order_by="hearing_date", descending=True)
    return list(await asyncio.gather(*(_with_case(h) for h in hearings)))


@app.get("/hearings/today", response_model=list[HearingWithCase])
async def list_todays_hearings(
    now: datetime | None = None,
    user_id: str = Depends(current_user_id),
) -> list[HearingWithCase]:
    """Return hearings starting on the current UTC day, earliest first.

    Pass *now* as a query param to control the clock.
    """
    current_time = as_utc(now) if now else datetime.now(timezone.utc)
    day_start = current_time.replace(hour=0, minute=0, second=0, microsecond=0)
    day_end = day_start + timedelta(days=1)

    todays = []
    for hearing in await store.hearings.query([Filter("owner", "==", user_id)]):
        times = materialize_hearing_times(hearing)
        if times is not None and day_start <= times.start_at < day_end:
            todays.append((times.start_at, hearing))
    todays.sort(key=lambda pair: pair[0])

    return list(await asyncio.gather(*(_with_case(h) for _, h in todays)))


@app.get("/hearings/case/{case_id}", response_model=list[Hearing])
async def list_case_hearings(
    case_id: str,
    user_id: str = Depends(current_user_id),
) -> list[Hearing]:
    return await store.hearings.query(
        [Filter("case_id", "==", case_id), Filter("owner", "==", user_id)],
        order_by="hearing_date",
        descending=True,
    )


@app.get("/hearings/{hearing_id}", response_model=HearingWithCase)
async def get_hearing(
    hearing_id: str,
    user_id: str = Depends(current_user_id),
) -> HearingWithCase:
    return await _with_case(await _get_owned(hearing_id, user_id))


@app.put("/hearings/{hearing_id}", response_model=Hearing)
async def update_hearing(
    hearing_id: str,
    payload: HearingUpdate,
    user_id: str = Depends(current_user_id),
    settings: Settings = Depends(get_settings),
) -> Hearing:
    """Apply a partial update, re-checking the hearing against all others but itself."""
    changes = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"override"})

    async with store.hearings.owner_lock(user_id):
        existing = await _get_owned(hearing_id, user_id)
        merged = existing.model_dump()
        merged.update(changes)

        changed = set(changes)
        if changed & _LEGACY_TIME_FIELDS and "start_at" not in changed:
            if merged.get("hearing_time") and merged.get("hearing_date") is not None:
                merged["start_at"] = merged["end_at"] = None
            else:
                _shift_to_new_date(merged, existing)
        if (
            changed & {"start_at", "duration"}
            and "end_at" not in changed
            and merged.get("start_at") is not None
        ):
            merged["end_at"] = None
        if "start_at" in changed and "hearing_date" not in changed:
            merged["hearing_date"] = None
            merged["hearing_time"] = None
        _fill_absolute_times(merged)

        override = None
        if changed & _SCHEDULING_FIELDS:
            _reject_invalid(merged)
            if merged["status"] in ACTIVE_STATUSES:
                conflicts = await find_conflicts(
                    user_id,
                    merged["start_at"],
                    merged["end_at"],
                    ResourceScope.model_validate(merged["resource_scope"]),
                    store=store,
                    scopes=settings.active_scopes,
                    exclude_hearing_id=hearing_id,
                )
                if conflicts:
                    override = _accept_conflicts(conflicts, payload.override, user_id)
                    merged["conflict_override"] = override

        updated = await store.hearings.update(hearing_id, merged)

    await event_bus.publish(
        HearingUpdated(hearing_id=hearing_id, owner=user_id, changed_fields=sorted(changed))
    )
    if override is not None:
        await _publish_override(hearing_id, user_id, override)
    return updated


@app.delete("/hearings/{hearing_id}")
async def delete_hearing(
    hearing_id: str,
    user_id: str = Depends(current_user_id),
) -> dict:
    hearing = await _get_owned(hearing_id, user_id)
    await store.hearings.delete(hearing_id)
    await event_bus.publish(
        HearingDeleted(
            hearing_id=hearing_id,
            owner=user_id,
            case_id=hearing.case_id,
            hearing_date=hearing.hearing_date,
        )
    )
    return {"ok": True}


@app.get("/hearings/{hearing_id}/activity", response_model=list[ActivityEntry])
async def hearing_activity(
    hearing_id: str,
    user_id: str = Depends(current_user_id),
) -> list[ActivityEntry]:
    """Return the hearing's activity timeline, oldest first."""
    await _get_owned(hearing_id, user_id)
    return await store.activities.list_for_hearing(hearing_id)


@app.get("/activity", response_model=list[ActivityEntry])
async def owner_activity(user_id: str = Depends(current_user_id)) -> list[ActivityEntry]:
    """Return all of the user's activity, newest first."""
    return await store.activities.list_for_owner(user_id)
