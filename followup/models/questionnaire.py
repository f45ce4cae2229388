"""Questionnaire definition model."""

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from followup.db.base import Base, SoftDeleteMixin, TimestampMixin


class QuestionnaireDefinition(Base, TimestampMixin, SoftDeleteMixin):
    """Practitioner-owned questionnaire template.

    Dispatches copy the pathology label and prompts at creation time, so
    later edits never change what a patient already received.
    """

    __tablename__ = "questionnaire_definitions"

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
    # Ordered list of {text, type, label_min, label_max}
    prompts: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
    )
    default_send_delay_days: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    is_favorite: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<QuestionnaireDefinition {self.pathology_label}>"
