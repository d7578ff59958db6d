"""Tests for the event bus and the activity timeline handlers."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from docket.domain.bus import EventBus
from docket.domain.events import (
    ConflictDetected,
    ConflictOverridden,
    HearingCreated,
    HearingDeleted,
    HearingUpdated,
)
from docket.domain.handlers import HandlerRegistry
from docket.domain.models import ActivityType, Hearing
from docket.repos.memory import DocumentStore

_NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def env():
    """Fresh bus + store + registry for each test."""
    bus = EventBus()
    store = DocumentStore()
    registry = HandlerRegistry(bus=bus, store=store)

    class Env:
        pass

    e = Env()
    e.bus = bus
    e.store = store
    e.registry = registry
    return e


def _make_hearing(**overrides) -> Hearing:
    defaults = dict(
        owner="user-1",
        case_id="case-1",
        hearing_date=date(2026, 6, 2),
        start_at=_NOW + timedelta(days=1),
        end_at=_NOW + timedelta(days=1, hours=1),
    )
    defaults.update(overrides)
    return Hearing(**defaults)


@pytest.mark.asyncio
async def test_handlers_run_in_subscription_order():
    bus = EventBus()
    calls: list[str] = []

    async def first(event):
        calls.append("first")

    async def second(event):
        calls.append("second")

    bus.subscribe(HearingCreated, first)
    bus.subscribe(HearingCreated, second)
    await bus.publish(HearingCreated(hearing_id="h", owner="u"))
    await bus.publish(HearingDeleted(hearing_id="h", owner="u", case_id="c"))

    assert calls == ["first", "second"]


@pytest.mark.asyncio
async def test_created_hearing_is_logged(env):
    hearing = await env.store.hearings.add(_make_hearing())

    await env.bus.publish(HearingCreated(hearing_id=hearing.id, owner="user-1"))

    entries = await env.store.activities.list_for_hearing(hearing.id)
    assert [e.type for e in entries] == [ActivityType.HEARING_CREATED]
    assert entries[0].description == "New hearing scheduled for case case-1 on 2026-06-02"
    assert entries[0].payload["status"] == "scheduled"


@pytest.mark.asyncio
async def test_unknown_hearing_is_not_logged(env):
    await env.bus.publish(HearingCreated(hearing_id="missing", owner="user-1"))
    await env.bus.publish(HearingUpdated(hearing_id="missing", owner="user-1"))

    assert await env.store.activities.list_for_owner("user-1") == []


@pytest.mark.asyncio
async def test_updated_hearing_records_changed_fields(env):
    hearing = await env.store.hearings.add(_make_hearing())

    await env.bus.publish(
        HearingUpdated(hearing_id=hearing.id, owner="user-1", changed_fields=["notes", "status"])
    )

    entries = await env.store.activities.list_for_hearing(hearing.id)
    assert entries[0].type == ActivityType.HEARING_UPDATED
    assert entries[0].payload["changed_fields"] == ["notes", "status"]


@pytest.mark.asyncio
async def test_deleted_hearing_is_logged_from_event_data(env):
    await env.bus.publish(
        HearingDeleted(
            hearing_id="gone",
            owner="user-1",
            case_id="case-3",
            hearing_date=date(2026, 7, 1),
        )
    )

    entries = await env.store.activities.list_for_owner("user-1")
    assert entries[0].type == ActivityType.HEARING_DELETED
    assert entries[0].description == "Hearing deleted for case case-3 on 2026-07-01"


@pytest.mark.asyncio
async def test_conflict_events_are_logged(env):
    hearing = await env.store.hearings.add(_make_hearing())

    await env.bus.publish(
        ConflictDetected(hearing_id=hearing.id, owner="user-1", conflicting_hearing_ids=["a", "b"])
    )
    await env.bus.publish(
        ConflictOverridden(
            hearing_id=hearing.id,
            owner="user-1",
            reason="Matter will be mentioned only",
            conflicting_hearing_ids=["a", "b"],
        )
    )

    entries = await env.store.activities.list_for_hearing(hearing.id)
    assert [e.type for e in entries] == [
        ActivityType.CONFLICT_DETECTED,
        ActivityType.CONFLICT_OVERRIDDEN,
    ]
    assert entries[0].description == "Hearing conflicts with 2 other hearing(s)"
    assert entries[1].payload["reason"] == "Matter will be mentioned only"
