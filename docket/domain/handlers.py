"""Domain event handlers that keep the activity timeline, wired up at startup."""

from __future__ import annotations

from datetime import date

from docket.domain.bus import EventBus
from docket.domain.events import (
    ConflictDetected,
    ConflictOverridden,
    HearingCreated,
    HearingDeleted,
    HearingUpdated,
)
from docket.domain.models import ActivityEntry, ActivityType, Hearing
from docket.repos.memory import DocumentStore


def _describe_date(hearing_date: date | None) -> str:
    return hearing_date.isoformat() if hearing_date else "an unspecified date"


def _hearing_date(hearing: Hearing) -> date | None:
    if hearing.hearing_date is not None:
        return hearing.hearing_date
    if hearing.start_at is not None:
        return hearing.start_at.date()
    return None


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to the document store."""

    def __init__(self, bus: EventBus, store: DocumentStore) -> None:
        self.bus = bus
        self.store = store
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(HearingCreated, self.on_hearing_created)
        self.bus.subscribe(HearingUpdated, self.on_hearing_updated)
        self.bus.subscribe(HearingDeleted, self.on_hearing_deleted)
        self.bus.subscribe(ConflictDetected, self.on_conflict_detected)
        self.bus.subscribe(ConflictOverridden, self.on_conflict_overridden)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def on_hearing_created(self, event: HearingCreated) -> None:
        stored = await self.store.hearings.get(event.hearing_id)
        if stored is None:
            return

        await self.store.activities.add(
            ActivityEntry(
                owner=event.owner,
                hearing_id=event.hearing_id,
                type=ActivityType.HEARING_CREATED,
                description=(
                    f"New hearing scheduled for case {stored.case_id} "
                    f"on {_describe_date(_hearing_date(stored))}"
                ),
                payload={
                    "case_id": stored.case_id,
                    "hearing_type": stored.hearing_type,
                    "status": stored.status,
                },
            )
        )

    async def on_hearing_updated(self, event: HearingUpdated) -> None:
        stored = await self.store.hearings.get(event.hearing_id)
        if stored is None:
            return

        await self.store.activities.add(
            ActivityEntry(
                owner=event.owner,
                hearing_id=event.hearing_id,
                type=ActivityType.HEARING_UPDATED,
                description=(
                    f"Hearing updated for case {stored.case_id} "
                    f"on {_describe_date(_hearing_date(stored))}"
                ),
                payload={
                    "changed_fields": event.changed_fields,
                    "status": stored.status,
                },
            )
        )

    async def on_hearing_deleted(self, event: HearingDeleted) -> None:
        await self.store.activities.add(
            ActivityEntry(
                owner=event.owner,
                hearing_id=event.hearing_id,
                type=ActivityType.HEARING_DELETED,
                description=(
                    f"Hearing deleted for case {event.case_id} "
                    f"on {_describe_date(event.hearing_date)}"
                ),
                payload={"case_id": event.case_id},
            )
        )

    async def on_conflict_detected(self, event: ConflictDetected) -> None:
        await self.store.activities.add(
            ActivityEntry(
                owner=event.owner,
                hearing_id=event.hearing_id,
                type=ActivityType.CONFLICT_DETECTED,
                description=(
                    f"Hearing conflicts with {len(event.conflicting_hearing_ids)} "
                    "other hearing(s)"
                ),
                payload={"conflicting_hearing_ids": event.conflicting_hearing_ids},
            )
        )

    async def on_conflict_overridden(self, event: ConflictOverridden) -> None:
        await self.store.activities.add(
            ActivityEntry(
                owner=event.owner,
                hearing_id=event.hearing_id,
                type=ActivityType.CONFLICT_OVERRIDDEN,
                description=f"Conflict overridden: {event.reason}",
                payload={
                    "reason": event.reason,
                    "conflicting_hearing_ids": event.conflicting_hearing_ids,
                },
            )
        )
