"""Initial follow-up schema.

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the follow-up schema."""

    # Practitioners (provisioned by the auth service)
    op.create_table(
        "practitioners",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, default=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, default=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_practitioners"),
    )
    op.create_index("ix_practitioners_email", "practitioners", ["email"], unique=True)
    op.create_index("ix_practitioners_is_deleted", "practitioners", ["is_deleted"])

    # Questionnaire templates
    op.create_table(
        "questionnaire_definitions",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("pathology_label", sa.String(255), nullable=False),
        sa.Column("prompts", postgresql.JSON(), nullable=False),
        sa.Column("default_send_delay_days", sa.Integer(), nullable=True),
        sa.Column("is_favorite", sa.Boolean(), nullable=False, default=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, default=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["owner_id"],
            ["practitioners.id"],
            name="fk_questionnaire_definitions_owner_id_practitioners",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_questionnaire_definitions"),
    )
    op.create_index(
        "ix_questionnaire_definitions_owner_id", "questionnaire_definitions", ["owner_id"]
    )
    op.create_index(
        "ix_questionnaire_definitions_is_deleted", "questionnaire_definitions", ["is_deleted"]
    )

    # Dispatches
    op.create_table(
        "dispatches",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("questionnaire_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("pathology_label", sa.String(255), nullable=False),
        sa.Column("prompts", postgresql.JSON(), nullable=False),
        sa.Column("recipient_email", sa.String(255), nullable=True),
        sa.Column("send_after_days", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder_cancelled", sa.Boolean(), nullable=False, default=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, default=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["owner_id"],
            ["practitioners.id"],
            name="fk_dispatches_owner_id_practitioners",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["questionnaire_id"],
            ["questionnaire_definitions.id"],
            name="fk_dispatches_questionnaire_id_questionnaire_definitions",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_dispatches"),
    )
    op.create_index("ix_dispatches_owner_id", "dispatches", ["owner_id"])
    op.create_index("ix_dispatches_recipient_email", "dispatches", ["recipient_email"])
    op.create_index("ix_dispatches_status", "dispatches", ["status"])
    op.create_index("ix_dispatches_is_deleted", "dispatches", ["is_deleted"])

    # Patient responses (one per dispatch)
    op.create_table(
        "patient_responses",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("dispatch_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("pathology_label", sa.String(255), nullable=False),
        sa.Column("answers", postgresql.JSON(), nullable=False),
        sa.Column("average_score", sa.Float(), nullable=False),
        sa.Column("score_total", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, default=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["dispatch_id"],
            ["dispatches.id"],
            name="fk_patient_responses_dispatch_id_dispatches",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["owner_id"],
            ["practitioners.id"],
            name="fk_patient_responses_owner_id_practitioners",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_patient_responses"),
        sa.UniqueConstraint("dispatch_id", name="uq_patient_responses_dispatch_id"),
    )
    op.create_index("ix_patient_responses_owner_id", "patient_responses", ["owner_id"])
    op.create_index("ix_patient_responses_submitted_at", "patient_responses", ["submitted_at"])
    op.create_index("ix_patient_responses_is_deleted", "patient_responses", ["is_deleted"])

    # Alert resolutions
    op.create_table(
        "alert_resolutions",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("response_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("resolution_note", sa.Text(), nullable=True),
        sa.Column("assigned_to", sa.String(255), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["response_id"],
            ["patient_responses.id"],
            name="fk_alert_resolutions_response_id_patient_responses",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["owner_id"],
            ["practitioners.id"],
            name="fk_alert_resolutions_owner_id_practitioners",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["resolved_by"],
            ["practitioners.id"],
            name="fk_alert_resolutions_resolved_by_practitioners",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_alert_resolutions"),
        sa.UniqueConstraint("response_id", name="uq_alert_resolutions_response_id"),
    )
    op.create_index("ix_alert_resolutions_owner_id", "alert_resolutions", ["owner_id"])
    op.create_index("ix_alert_resolutions_status", "alert_resolutions", ["status"])

    # Audit events (append-only)
    op.create_table(
        "audit_events",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("actor_type", sa.String(50), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("metadata", postgresql.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_audit_events"),
    )
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])
    op.create_index("ix_audit_events_action", "audit_events", ["action"])
    op.create_index("ix_audit_events_created_at", "audit_events", ["created_at"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("audit_events")
    op.drop_table("alert_resolutions")
    op.drop_table("patient_responses")
    op.drop_table("dispatches")
    op.drop_table("questionnaire_definitions")
    op.drop_table("practitioners")
