"""Service for validating hearing drafts before a conflict scan."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from dateutil import parser as date_parser
from pydantic import BaseModel

from docket.domain.models import HearingStatus, ValidationResult
from docket.services.timezones import as_utc

MIN_DURATION_MINUTES = 1
MAX_DURATION_MINUTES = 1440


def validate_hearing_data(
    draft: Mapping[str, Any] | BaseModel,
    now: datetime | None = None,
) -> ValidationResult:
    """Check a hearing draft's time range, status and duration.

    *draft* is either raw request data (``startAt`` or ``start_at`` keys) or a
    pydantic model. All problems are collected rather than stopping at the
    first one.
    """
    data = draft.model_dump() if isinstance(draft, BaseModel) else dict(draft)
    now = now or datetime.now(timezone.utc)
    errors: list[str] = []

    raw_start = _pick(data, "start_at", "startAt")
    raw_end = _pick(data, "end_at", "endAt")

    if not raw_start:
        errors.append("startAt is required")
    if not raw_end:
        errors.append("endAt is required")

    start = _parse_instant(raw_start) if raw_start else None
    end = _parse_instant(raw_end) if raw_end else None

    if raw_start and raw_end:
        if start is None:
            errors.append("Invalid startAt date")
        if end is None:
            errors.append("Invalid endAt date")
        if start is not None and end is not None and start >= end:
            errors.append("endAt must be after startAt")

    if start is not None and data.get("status") == HearingStatus.SCHEDULED and start < now:
        errors.append("Hearing date cannot be in the past while status is scheduled")

    duration = data.get("duration")
    if duration is not None and not _duration_in_range(duration):
        errors.append(
            f"Duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes"
        )

    return ValidationResult(valid=not errors, errors=errors)


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _parse_instant(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        return None
    try:
        return as_utc(date_parser.isoparse(value))
    except (ValueError, OverflowError):
        return None


def _duration_in_range(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return MIN_DURATION_MINUTES <= value <= MAX_DURATION_MINUTES
