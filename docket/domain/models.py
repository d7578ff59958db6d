"""Domain models for the hearing scheduling service."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator


class HearingStatus(StrEnum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    ADJOURNED = "adjourned"
    CANCELLED = "cancelled"


# 24-hour wall-clock time, e.g. "9:05" or "17:30"
HH_MM_PATTERN = r"^([01]?\d|2[0-3]):[0-5]\d$"

# Only these statuses take part in conflict detection.
ACTIVE_STATUSES = (HearingStatus.SCHEDULED, HearingStatus.ADJOURNED)


class HearingType(StrEnum):
    FIRST_HEARING = "first_hearing"
    INTERIM_HEARING = "interim_hearing"
    FINAL_HEARING = "final_hearing"
    EVIDENCE_HEARING = "evidence_hearing"
    ARGUMENT_HEARING = "argument_hearing"
    JUDGMENT_HEARING = "judgment_hearing"
    OTHER = "other"


class ConflictScope(StrEnum):
    COURTROOM = "courtroom"
    COUNSEL = "counsel"
    CLIENT = "client"
    GLOBAL = "global"


class ActivityType(StrEnum):
    HEARING_CREATED = "hearing_created"
    HEARING_UPDATED = "hearing_updated"
    HEARING_DELETED = "hearing_deleted"
    CONFLICT_DETECTED = "conflict_detected"
    CONFLICT_OVERRIDDEN = "conflict_overridden"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class ResourceScope(BaseModel):
    """Identifiers along which two hearings can compete for the same resource."""

    courtroom_id: str | None = None
    counsel_id: str | None = None
    client_id: str | None = None


class ConflictOverride(BaseModel):
    """Audit record of a human accepting a detected conflict."""

    allowed: bool = False
    reason: str | None = None
    overridden_by: str | None = None
    overridden_at: datetime | None = None
    conflicting_hearings: list[str] = Field(default_factory=list)


class Case(BaseModel):
    id: str = Field(default_factory=_new_id)
    owner: str
    case_number: str | None = None
    client_name: str | None = None


class Hearing(BaseModel):
    id: str = Field(default_factory=_new_id)
    owner: str
    case_id: str

    # Legacy fields, superseded by start_at/end_at
    hearing_date: date | None = None
    hearing_time: str | None = Field(default=None, pattern=HH_MM_PATTERN)

    timezone: str = "Asia/Kolkata"
    start_at: datetime | None = None
    end_at: datetime | None = None
    duration: int = Field(default=60, ge=1, le=1440)

    court_name: str | None = None
    judge_name: str | None = None
    hearing_type: HearingType = HearingType.INTERIM_HEARING
    status: HearingStatus = HearingStatus.SCHEDULED
    purpose: str | None = None
    notes: str | None = None

    resource_scope: ResourceScope = Field(default_factory=ResourceScope)
    conflict_override: ConflictOverride = Field(default_factory=ConflictOverride)

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _end_after_start(self) -> Hearing:
        if self.start_at and self.end_at and self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class ConflictReportEntry(BaseModel):
    hearing_id: str
    case_number: str
    start_at: datetime
    end_at: datetime
    conflict_reason: str
    resource_scope: list[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class ActivityEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    owner: str
    hearing_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    type: ActivityType
    description: str
    payload: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class OverrideRequest(BaseModel):
    allowed: bool = False
    reason: str | None = None


class HearingCreate(BaseModel):
    """Draft of a new hearing.

    Either ``start_at``/``end_at`` or the legacy ``hearing_date`` (plus an
    optional ``hearing_time``) must be given. Time-range checks are left to
    the validator so that every problem is reported at once.
    """

    case_id: str
    hearing_date: date | None = None
    hearing_time: str | None = Field(default=None, pattern=HH_MM_PATTERN)
    timezone: str | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    duration: int = 60
    court_name: str | None = None
    judge_name: str | None = None
    hearing_type: HearingType = HearingType.INTERIM_HEARING
    status: HearingStatus = HearingStatus.SCHEDULED
    purpose: str | None = None
    notes: str | None = None
    resource_scope: ResourceScope = Field(default_factory=ResourceScope)
    override: OverrideRequest | None = None


class HearingUpdate(BaseModel):
    """Partial update; only fields explicitly sent are applied."""

    case_id: str | None = None
    hearing_date: date | None = None
    hearing_time: str | None = Field(default=None, pattern=HH_MM_PATTERN)
    timezone: str | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    duration: int | None = None
    court_name: str | None = None
    judge_name: str | None = None
    hearing_type: HearingType | None = None
    status: HearingStatus | None = None
    purpose: str | None = None
    notes: str | None = None
    resource_scope: ResourceScope | None = None
    override: OverrideRequest | None = None


class ConflictCheckRequest(BaseModel):
    start_at: datetime | None = None
    end_at: datetime | None = None
    hearing_date: date | None = None
    hearing_time: str | None = Field(default=None, pattern=HH_MM_PATTERN)
    timezone: str | None = None
    duration: int = 60
    status: HearingStatus = HearingStatus.SCHEDULED
    resource_scope: ResourceScope = Field(default_factory=ResourceScope)
    exclude_hearing_id: str | None = None


class ConflictCheckResponse(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    conflicts: list[ConflictReportEntry] = Field(default_factory=list)


class CaseSummary(BaseModel):
    case_number: str | None = None
    client_name: str | None = None


class HearingWithCase(Hearing):
    case: CaseSummary | None = None
