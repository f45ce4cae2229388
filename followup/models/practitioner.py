"""Practitioner account model.

Accounts are provisioned by the external auth service; the engine only
needs enough of them for owner scoping and notification addresses.
"""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from followup.db.base import Base, SoftDeleteMixin, TimestampMixin


class Practitioner(Base, TimestampMixin, SoftDeleteMixin):
    """Practitioner who owns questionnaires, dispatches and alerts."""

    __tablename__ = "practitioners"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    full_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    def __repr__(self) -> str:
        return f"<Practitioner {self.email}>"
