"""Append-only audit event writing."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from followup.core.logging import audit_logger
from followup.models.audit_event import ActorType, AuditEvent


async def write_audit_event(
    session: AsyncSession,
    actor_type: ActorType,
    actor_id: str | None,
    action: str,
    entity_type: str,
    entity_id: str | None,
    metadata: dict[str, Any] | None = None,
    description: str | None = None,
) -> AuditEvent:
    """Write an audit event to the database and the audit log.

    Events are append-only and cannot be modified or deleted.

    Args:
        session: Database session
        actor_type: Type of actor (system, practitioner, patient)
        actor_id: ID of the acting practitioner, None otherwise
        action: Action performed (e.g. "dispatch_batch_created")
        entity_type: Type of entity affected (e.g. "dispatch")
        entity_id: ID of the affected entity
        metadata: Additional context as JSON
        description: Human-readable description

    Returns:
        Created AuditEvent instance
    """
    event = AuditEvent(
        actor_type=actor_type,
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        event_metadata=metadata,
        description=description,
    )

    session.add(event)
    await session.commit()

    audit_logger.log(
        action=action,
        actor_type=actor_type.value,
        actor_id=actor_id or actor_type.value,
        entity_type=entity_type,
        entity_id=entity_id or "none",
        metadata=metadata,
    )

    return event


async def get_entity_events(
    session: AsyncSession,
    entity_type: str,
    entity_id: str,
) -> list[AuditEvent]:
    """Audit trail for one entity, oldest first."""
    result = await session.execute(
        select(AuditEvent)
        .where(
            AuditEvent.entity_type == entity_type,
            AuditEvent.entity_id == entity_id,
        )
        .order_by(AuditEvent.created_at)
    )
    return list(result.scalars().all())
