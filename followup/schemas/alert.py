"""Pydantic schemas for critical alerts and their resolution."""

from datetime import datetime

from pydantic import BaseModel, Field


class CriticalAnswerRead(BaseModel):
    """A single answer at or below the threshold."""

    index: int
    text: str
    score: int

    model_config = {"from_attributes": True}


class AlertRead(BaseModel):
    """Critical alert with its resolution state."""

    response_id: str
    pathology_label: str
    average_score: float
    score_total: int | None = None
    submitted_at: datetime | None = None
    recipient_email: str | None = None
    patient_name: str | None = None
    comment: str | None = None
    critical_responses: list[CriticalAnswerRead]
    resolution_status: str
    assigned_to: str | None = None
    resolution_note: str | None = None
    resolved_at: datetime | None = None


class AlertCountsRead(BaseModel):
    """Alert counts by resolution status."""

    total: int
    new: int
    in_progress: int
    resolved: int


class ResolutionRead(BaseModel):
    """Resolution state of one alert."""

    response_id: str
    status: str
    resolution_note: str | None = None
    assigned_to: str | None = None
    resolved_at: datetime | None = None
    resolved_by: str | None = None

    model_config = {"from_attributes": True}


class ResolveRequest(BaseModel):
    """Request to resolve an alert."""

    note: str | None = Field(None, max_length=2000)
