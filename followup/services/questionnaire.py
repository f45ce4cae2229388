"""Questionnaire definition management."""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from followup.dispatch.scheduling import DispatchValidationError, clamp_send_delay
from followup.models.audit_event import ActorType
from followup.models.questionnaire import QuestionnaireDefinition
from followup.services.audit import write_audit_event
from followup.services.dispatch import normalize_prompts

logger = logging.getLogger(__name__)


class QuestionnaireNotFoundError(Exception):
    """Raised when a questionnaire does not exist for this practitioner."""

    pass


class QuestionnaireService:
    """Service for practitioner-owned questionnaire templates."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_questionnaire(
        self,
        owner_id: str,
        pathology_label: str,
        prompts: Any,
        default_send_delay_days: int | None = None,
        is_favorite: bool = False,
    ) -> QuestionnaireDefinition:
        """Create a questionnaire definition.

        Raises:
            DispatchValidationError: If the label or prompts are empty
        """
        if not pathology_label or not pathology_label.strip():
            raise DispatchValidationError("A pathology label is required")

        cleaned = normalize_prompts(prompts)
        if not cleaned:
            raise DispatchValidationError("At least one question is required")

        if default_send_delay_days is not None:
            default_send_delay_days = clamp_send_delay(default_send_delay_days)

        questionnaire = QuestionnaireDefinition(
            owner_id=owner_id,
            pathology_label=pathology_label.strip(),
            prompts=cleaned,
            default_send_delay_days=default_send_delay_days,
            is_favorite=is_favorite,
        )
        self.session.add(questionnaire)
        await self.session.commit()
        await self.session.refresh(questionnaire)

        logger.info(f"Created questionnaire {questionnaire.id} ({questionnaire.pathology_label})")
        return questionnaire

    async def get_questionnaire(self, questionnaire_id: str, owner_id: str) -> QuestionnaireDefinition:
        """Get a questionnaire owned by the practitioner.

        Raises:
            QuestionnaireNotFoundError: If missing or owned by someone else
        """
        result = await self.session.execute(
            select(QuestionnaireDefinition).where(
                QuestionnaireDefinition.id == questionnaire_id,
                QuestionnaireDefinition.owner_id == owner_id,
                QuestionnaireDefinition.is_deleted == False,
            )
        )
        questionnaire = result.scalar_one_or_none()
        if not questionnaire:
            raise QuestionnaireNotFoundError(f"Questionnaire {questionnaire_id} not found")
        return questionnaire

    async def list_questionnaires(self, owner_id: str) -> list[QuestionnaireDefinition]:
        """List a practitioner's questionnaires, favourites first."""
        result = await self.session.execute(
            select(QuestionnaireDefinition)
            .where(
                QuestionnaireDefinition.owner_id == owner_id,
                QuestionnaireDefinition.is_deleted == False,
            )
            .order_by(
                QuestionnaireDefinition.is_favorite.desc(),
                QuestionnaireDefinition.created_at.desc(),
            )
        )
        return list(result.scalars().all())

    async def delete_questionnaire(self, questionnaire_id: str, owner_id: str) -> None:
        """Soft delete a questionnaire template.

        Dispatches already created from it keep their own snapshot.

        Raises:
            QuestionnaireNotFoundError: If missing or owned by someone else
        """
        questionnaire = await self.get_questionnaire(questionnaire_id, owner_id)
        questionnaire.soft_delete()
        await self.session.commit()

        await write_audit_event(
            session=self.session,
            actor_type=ActorType.PRACTITIONER,
            actor_id=owner_id,
            action="questionnaire_deleted",
            entity_type="questionnaire",
            entity_id=questionnaire.id,
            metadata={"pathology_label": questionnaire.pathology_label},
        )
        logger.info(f"Deleted questionnaire {questionnaire.id}")
