"""Dispatch and patient response models.

A dispatch is one questionnaire sent (or to be sent) to one recipient, or a
generic link with no recipient. A patient response completes it.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from followup.db.base import Base, SoftDeleteMixin, TimestampMixin


class DispatchStatus(str, Enum):
    """Lifecycle status of a dispatch."""

    PENDING = "pending"  # Generic link, no recipient
    SCHEDULED = "scheduled"  # Waiting for its send date
    SENT = "sent"  # Delivered to the recipient
    COMPLETED = "completed"  # Patient responded
    EXPIRED = "expired"  # Retention window elapsed without response


class Dispatch(Base, TimestampMixin, SoftDeleteMixin):
    """A questionnaire dispatch to a single recipient.

    Recipient and prompts never change after creation. Status only moves
    forward through the lifecycle in followup.dispatch.lifecycle.
    """

    __tablename__ = "dispatches"

    owner_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("practitioners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Source template; the snapshot below is what the patient answers
    questionnaire_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("questionnaire_definitions.id", ondelete="SET NULL"),
        nullable=True,
    )
    pathology_label: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    prompts: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
    )
    # Null for generic links
    recipient_email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )
    # 0 for immediate sends, null for generic links
    send_after_days: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    status: Mapped[DispatchStatus] = mapped_column(
        String(30),
        default=DispatchStatus.PENDING,
        nullable=False,
        index=True,
    )
    sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    expired_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # Reminder bookkeeping (at most one reminder per dispatch)
    reminder_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    reminder_cancelled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Dispatch {self.id} {self.status} to={self.recipient_email}>"


class PatientResponse(Base, TimestampMixin, SoftDeleteMixin):
    """A patient's answers to a dispatch.

    Immutable once created. At most one per dispatch.
    """

    __tablename__ = "patient_responses"

    dispatch_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("dispatches.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    owner_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("practitioners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    pathology_label: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    # One 1-5 score per prompt, in prompt order
    answers: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
    )
    average_score: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )
    score_total: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    comment: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<PatientResponse dispatch={self.dispatch_id[:8]}... avg={self.average_score}>"
