"""Domain events emitted while hearings are written."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class HearingCreated(BaseModel):
    """Fired when a new Hearing is persisted."""

    hearing_id: str
    owner: str


class HearingUpdated(BaseModel):
    """Fired after an existing Hearing has been changed."""

    hearing_id: str
    owner: str
    changed_fields: list[str] = Field(default_factory=list)


class HearingDeleted(BaseModel):
    """Fired after a Hearing has been removed; carries what the timeline needs."""

    hearing_id: str
    owner: str
    case_id: str
    hearing_date: date | None = None


class ConflictDetected(BaseModel):
    """Fired when a written hearing overlaps others under the active scopes."""

    hearing_id: str
    owner: str
    conflicting_hearing_ids: list[str]


class ConflictOverridden(BaseModel):
    """Fired when a user explicitly accepts the detected conflicts."""

    hearing_id: str
    owner: str
    reason: str
    conflicting_hearing_ids: list[str]
