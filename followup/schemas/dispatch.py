"""Pydantic schemas for dispatches and patient responses."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from followup.schemas.questionnaire import PromptSchema


class DispatchBatchCreate(BaseModel):
    """Request to create a batch of dispatches.

    Either ``questionnaire_id`` or an inline ``pathology_label`` plus
    ``prompts`` must be given.
    """

    questionnaire_id: str | None = None
    pathology_label: str | None = Field(None, max_length=255)
    prompts: list[PromptSchema] | None = None
    recipients_text: str | None = Field(None, max_length=50000)
    send_immediately: bool = False
    # Strings are accepted so malformed values get a readable error
    send_delay_days: int | str | None = None


class RecipientOutcomeRead(BaseModel):
    """Outcome for one recipient in a batch."""

    recipient: str | None
    succeeded: bool
    dispatch_id: str | None = None
    status: str | None = None
    reason: str | None = None


class BatchFailure(BaseModel):
    recipient: str | None
    reason: str | None


class BatchReportRead(BaseModel):
    """Structured batch result."""

    succeeded: int
    failed: int
    outcomes: list[RecipientOutcomeRead]
    failures: list[BatchFailure]
    invalid: list[str] = []
    duplicates: list[str] = []


class DispatchRead(BaseModel):
    """Dispatch with its derived status view."""

    id: str
    questionnaire_id: str | None = None
    pathology_label: str
    recipient_email: str | None = None
    send_after_days: int | None = None
    status: str | None
    status_label: str
    created_at: datetime
    sent_at: datetime | None = None
    completed_at: datetime | None = None
    expired_at: datetime | None = None
    reminder_sent_at: datetime | None = None
    reminder_cancelled: bool = False
    scheduled_date: date | None = None
    days_remaining: int | None = None
    is_overdue: bool = False
    awaiting_send: bool = False
    schedule_label: str | None = None
    patient_link: str


class StatusSummaryRead(BaseModel):
    """Dashboard counts of dispatches by status."""

    total: int
    by_status: dict[str, int]
    scheduled_next_30_days: int
    overdue: int


class ReminderBulkCancel(BaseModel):
    """Dispatches whose reminders should be cancelled."""

    dispatch_ids: list[UUID]


class ReminderBulkCancelRead(BaseModel):
    cancelled_count: int


class PublicDispatchRead(BaseModel):
    """What the patient sees when opening a link."""

    id: str
    pathology_label: str
    prompts: list[dict[str, Any]]
    status: str | None
    is_open: bool


class ResponseSubmit(BaseModel):
    """Patient answers for a dispatch."""

    answers: list[int]
    comment: str | None = Field(None, max_length=2000)


class ResponseSubmitted(BaseModel):
    """Acknowledgement of a stored response."""

    id: str
    dispatch_id: str
    average_score: float
    score_total: int
    submitted_at: datetime

    model_config = {"from_attributes": True}
