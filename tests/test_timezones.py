"""Tests for converting hearing dates and times to UTC."""

from datetime import date, datetime, timezone

import pytest

from docket.domain.models import Hearing
from docket.services.timezones import (
    compute_hearing_times,
    convert_to_utc,
    materialize_hearing_times,
)


def test_kolkata_is_five_and_a_half_hours_ahead():
    assert convert_to_utc("2024-03-01", "15:00", "Asia/Kolkata") == datetime(
        2024, 3, 1, 9, 30, tzinfo=timezone.utc
    )


def test_calcutta_alias_matches_kolkata():
    assert convert_to_utc("2024-03-01", "15:00", "Asia/Calcutta") == convert_to_utc(
        "2024-03-01", "15:00", "Asia/Kolkata"
    )


def test_new_york_uses_fixed_offset_even_in_summer():
    """No DST: July in New York is still treated as UTC-5."""
    assert convert_to_utc(date(2024, 7, 1), "09:00", "America/New_York") == datetime(
        2024, 7, 1, 14, 0, tzinfo=timezone.utc
    )


def test_unknown_zone_is_treated_as_utc():
    assert convert_to_utc("2024-03-01", "09:00", "Mars/Olympus") == datetime(
        2024, 3, 1, 9, 0, tzinfo=timezone.utc
    )


def test_early_morning_in_kolkata_falls_on_previous_utc_day():
    assert convert_to_utc("2024-03-01", "02:00", "Asia/Kolkata") == datetime(
        2024, 2, 29, 20, 30, tzinfo=timezone.utc
    )


def test_compute_hearing_times_adds_duration():
    times = compute_hearing_times("2024-03-01", "09:00", "UTC", 90)
    assert times.start_at == datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
    assert times.end_at == datetime(2024, 3, 1, 10, 30, tzinfo=timezone.utc)


def test_compute_hearing_times_defaults_to_ten_oclock_for_one_hour():
    start_at, end_at = compute_hearing_times(date(2024, 3, 1), None, "UTC")
    assert start_at == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert end_at == datetime(2024, 3, 1, 11, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "hearing_date",
    [
        date(2024, 3, 1),
        datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc),
        "2024-03-01",
        "2024-03-01T00:00:00Z",
        "March 1, 2024",
    ],
)
def test_compute_hearing_times_accepts_several_date_representations(hearing_date):
    times = compute_hearing_times(hearing_date, "10:00", "UTC")
    assert times.start_at == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


def test_materialize_prefers_stored_instants():
    hearing = Hearing(
        owner="user-1",
        case_id="case-1",
        hearing_date=date(2030, 1, 1),
        hearing_time="10:00",
        start_at=datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
        end_at=datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc),
    )
    times = materialize_hearing_times(hearing)
    assert times.start_at == datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_materialize_legacy_fields_is_deterministic():
    def legacy() -> Hearing:
        return Hearing(
            owner="user-1",
            case_id="case-1",
            hearing_date=date(2024, 3, 1),
            hearing_time="11:15",
            timezone="America/New_York",
            duration=45,
        )

    first, second = legacy(), legacy()
    results = {materialize_hearing_times(h) for h in (first, second, first, second)}
    assert results == {
        (
            datetime(2024, 3, 1, 16, 15, tzinfo=timezone.utc),
            datetime(2024, 3, 1, 17, 0, tzinfo=timezone.utc),
        )
    }


def test_materialize_without_time_of_day_returns_none():
    hearing = Hearing(owner="user-1", case_id="case-1", hearing_date=date(2024, 3, 1))
    assert materialize_hearing_times(hearing) is None
