"""Tests for the in-memory document store's query semantics."""

from __future__ import annotations

from datetime import date

import pytest

from docket.domain.models import Hearing, HearingStatus
from docket.repos.memory import Filter, HearingRepository, StoreError


def _make_hearing(**overrides) -> Hearing:
    defaults = dict(owner="user-1", case_id="case-1", hearing_date=date(2030, 1, 1))
    defaults.update(overrides)
    return Hearing(**defaults)


@pytest.fixture()
def repo() -> HearingRepository:
    return HearingRepository()


@pytest.mark.asyncio
async def test_equality_and_in_filters(repo):
    scheduled = await repo.add(_make_hearing())
    adjourned = await repo.add(_make_hearing(status=HearingStatus.ADJOURNED))
    await repo.add(_make_hearing(status=HearingStatus.CANCELLED))
    await repo.add(_make_hearing(owner="user-2"))

    found = await repo.query(
        [
            Filter("owner", "==", "user-1"),
            Filter("status", "in", ["scheduled", "adjourned"]),
        ]
    )

    assert {h.id for h in found} == {scheduled.id, adjourned.id}


@pytest.mark.asyncio
async def test_comparison_filters_skip_missing_values(repo):
    early = await repo.add(_make_hearing(hearing_date=date(2030, 1, 1)))
    late = await repo.add(_make_hearing(hearing_date=date(2030, 6, 1)))
    await repo.add(_make_hearing(hearing_date=None))

    found = await repo.query([Filter("hearing_date", ">=", date(2030, 2, 1))])
    assert [h.id for h in found] == [late.id]

    found = await repo.query([Filter("hearing_date", "<", date(2030, 2, 1))])
    assert [h.id for h in found] == [early.id]


@pytest.mark.asyncio
async def test_not_equal_filter(repo):
    await repo.add(_make_hearing(case_id="case-1"))
    other = await repo.add(_make_hearing(case_id="case-2"))

    found = await repo.query([Filter("case_id", "!=", "case-1")])
    assert [h.id for h in found] == [other.id]


@pytest.mark.asyncio
async def test_ordering_puts_missing_values_last(repo):
    undated = await repo.add(_make_hearing(hearing_date=None))
    older = await repo.add(_make_hearing(hearing_date=date(2030, 1, 1)))
    newer = await repo.add(_make_hearing(hearing_date=date(2030, 2, 1)))

    found = await repo.query(order_by="hearing_date", descending=True)
    assert [h.id for h in found] == [newer.id, older.id, undated.id]

    found = await repo.query(order_by="hearing_date", limit=1)
    assert [h.id for h in found] == [older.id]


@pytest.mark.asyncio
async def test_unsupported_operator_raises_store_error(repo):
    with pytest.raises(StoreError, match="Unsupported operator"):
        await repo.query([Filter("owner", "like", "user-%")])


@pytest.mark.asyncio
async def test_update_revalidates_and_bumps_timestamp(repo):
    hearing = await repo.add(_make_hearing())

    updated = await repo.update(hearing.id, {"status": "adjourned", "notes": "Moved"})

    assert updated.status == HearingStatus.ADJOURNED
    assert updated.notes == "Moved"
    assert updated.created_at == hearing.created_at
    assert updated.updated_at >= hearing.updated_at
    assert await repo.get(hearing.id) is updated


@pytest.mark.asyncio
async def test_update_missing_hearing_returns_none(repo):
    assert await repo.update("nope", {"notes": "x"}) is None


def test_owner_lock_is_shared_per_owner(repo):
    assert repo.owner_lock("user-1") is repo.owner_lock("user-1")
    assert repo.owner_lock("user-1") is not repo.owner_lock("user-2")


@pytest.mark.asyncio
async def test_dotted_paths_and_array_contains(repo):
    flagged = await repo.add(
        _make_hearing(
            resource_scope={"courtroom_id": "C1"},
            conflict_override={"allowed": True, "conflicting_hearings": ["h-9"]},
        )
    )
    await repo.add(_make_hearing(resource_scope={"courtroom_id": "C2"}))

    by_room = await repo.query([Filter("resource_scope.courtroom_id", "==", "C1")])
    assert [h.id for h in by_room] == [flagged.id]

    by_conflict = await repo.query(
        [Filter("conflict_override.conflicting_hearings", "array-contains", "h-9")]
    )
    assert [h.id for h in by_conflict] == [flagged.id]
