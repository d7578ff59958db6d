"""Service for turning hearing dates and wall-clock times into UTC instants.

Offsets come from a fixed table; daylight-saving time is not modelled and
zones missing from the table are treated as UTC.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import NamedTuple

from dateutil import parser as date_parser

from docket.domain.models import Hearing

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Asia/Kolkata"
DEFAULT_HEARING_TIME = "10:00"
DEFAULT_DURATION_MINUTES = 60

TIMEZONE_OFFSETS_MINUTES = {
    "Asia/Kolkata": 330,
    "Asia/Calcutta": 330,
    "UTC": 0,
    "America/New_York": -300,
    "Europe/London": 0,
}


class HearingTimes(NamedTuple):
    start_at: datetime
    end_at: datetime


def convert_to_utc(
    day: date | str,
    time_of_day: str,
    tz_name: str = DEFAULT_TIMEZONE,
) -> datetime:
    """Convert a local date and ``HH:MM`` time in *tz_name* to an aware UTC datetime."""
    if isinstance(day, str):
        day = date.fromisoformat(day)
    hours, minutes = (int(part) for part in time_of_day.split(":")[:2])

    wall_clock = datetime(day.year, day.month, day.day, hours, minutes, tzinfo=timezone.utc)
    offset = TIMEZONE_OFFSETS_MINUTES.get(tz_name, 0)
    return wall_clock - timedelta(minutes=offset)


def compute_hearing_times(
    hearing_date: date | datetime | str,
    hearing_time: str | None,
    tz_name: str | None,
    duration: int = DEFAULT_DURATION_MINUTES,
) -> HearingTimes:
    """Compute ``(start_at, end_at)`` from legacy hearing fields.

    *hearing_date* may be a date, a datetime (aware values are read in UTC) or
    any string ``dateutil`` can parse. *hearing_time* defaults to 10:00.
    """
    start_at = convert_to_utc(
        _calendar_date(hearing_date),
        hearing_time or DEFAULT_HEARING_TIME,
        tz_name or DEFAULT_TIMEZONE,
    )
    return HearingTimes(start_at, start_at + timedelta(minutes=duration))


def materialize_hearing_times(hearing: Hearing) -> HearingTimes | None:
    """Return the effective time range of a stored hearing.

    Stored ``start_at``/``end_at`` win; otherwise the range is derived from
    ``hearing_date`` and ``hearing_time``. Returns ``None`` when neither is
    available.
    """
    if hearing.start_at is not None and hearing.end_at is not None:
        return HearingTimes(as_utc(hearing.start_at), as_utc(hearing.end_at))

    if hearing.hearing_date is not None and hearing.hearing_time:
        return compute_hearing_times(
            hearing.hearing_date,
            hearing.hearing_time,
            hearing.timezone or DEFAULT_TIMEZONE,
            hearing.duration or DEFAULT_DURATION_MINUTES,
        )

    logger.debug("Hearing %s has no usable time fields", hearing.id)
    return None


def as_utc(value: datetime) -> datetime:
    """Return *value* in UTC; naive datetimes are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _calendar_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return as_utc(value).date()
    if isinstance(value, date):
        return value
    parsed = date_parser.parse(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()
