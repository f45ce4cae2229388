"""Alert resolution model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from followup.db.base import Base, TimestampMixin


class ResolutionStatus(str, Enum):
    """Triage state of a critical alert."""

    NEW = "new"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"


class AlertResolution(Base, TimestampMixin):
    """Practitioner follow-up on a critical response.

    Alerts themselves are derived on read; only their resolution is stored.
    Records are never deleted.
    """

    __tablename__ = "alert_resolutions"

    response_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("patient_responses.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    owner_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("practitioners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[ResolutionStatus] = mapped_column(
        String(20),
        default=ResolutionStatus.NEW,
        nullable=False,
        index=True,
    )
    resolution_note: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    assigned_to: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    resolved_by: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("practitioners.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<AlertResolution response={self.response_id[:8]}... {self.status}>"
