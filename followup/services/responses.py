"""Patient response submission."""

import logging
import math
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from followup.core.config import settings
from followup.dispatch.lifecycle import (
    DispatchEvent,
    InvalidTransitionError,
    apply_event,
    current_status,
)
from followup.models.audit_event import ActorType
from followup.models.dispatch import Dispatch, DispatchStatus, PatientResponse
from followup.models.practitioner import Practitioner
from followup.services.audit import write_audit_event
from followup.services.delivery import (
    DeliveryError,
    DeliveryProvider,
    PractitionerNotice,
    get_delivery_provider,
)
from followup.services.dispatch import DispatchNotFoundError
from followup.utils.time import utc_now

logger = logging.getLogger(__name__)

MIN_ANSWER = 1
MAX_ANSWER = 5


class ResponseValidationError(Exception):
    """Raised when submitted answers are malformed."""

    pass


def score_answers(answers: Any, prompt_count: int | None = None) -> tuple[float, int]:
    """Validate answers and compute (mean, mean rounded half-up).

    Args:
        answers: One integer from 1 to 5 per prompt
        prompt_count: Expected number of answers, when known

    Raises:
        ResponseValidationError: If the answers are malformed
    """
    if not isinstance(answers, list) or not answers:
        raise ResponseValidationError("At least one answer is required")

    for i, answer in enumerate(answers, start=1):
        if isinstance(answer, bool) or not isinstance(answer, int):
            raise ResponseValidationError(f"Answer {i} must be a whole number")
        if not MIN_ANSWER <= answer <= MAX_ANSWER:
            raise ResponseValidationError(
                f"Answer {i} must be between {MIN_ANSWER} and {MAX_ANSWER}"
            )

    if prompt_count and len(answers) != prompt_count:
        raise ResponseValidationError(
            f"Expected {prompt_count} answers, got {len(answers)}"
        )

    average = sum(answers) / len(answers)
    return average, math.floor(average + 0.5)


class ResponseService:
    """Service for the public patient side of a dispatch."""

    def __init__(
        self,
        session: AsyncSession,
        provider: DeliveryProvider | None = None,
    ):
        self.session = session
        self.provider = provider or get_delivery_provider()

    async def get_public_dispatch(self, dispatch_id: str) -> Dispatch:
        """Load a dispatch by its link id.

        Raises:
            DispatchNotFoundError: If the link does not exist
        """
        result = await self.session.execute(
            select(Dispatch).where(
                Dispatch.id == dispatch_id,
                Dispatch.is_deleted == False,
            )
        )
        dispatch = result.scalar_one_or_none()
        if not dispatch:
            raise DispatchNotFoundError(f"Dispatch {dispatch_id} not found")
        return dispatch

    async def submit_response(
        self,
        dispatch_id: str,
        answers: Any,
        comment: str | None = None,
    ) -> PatientResponse:
        """Record a patient's answers and complete the dispatch.

        Raises:
            DispatchNotFoundError: If the link does not exist
            InvalidTransitionError: If the dispatch is already completed or expired
            ResponseValidationError: If the answers are malformed
        """
        dispatch = await self.get_public_dispatch(dispatch_id)
        status = current_status(dispatch)
        next_status = apply_event(status, DispatchEvent.RESPONSE_RECEIVED)

        prompt_count = len(dispatch.prompts) if isinstance(dispatch.prompts, list) else None
        average, score_total = score_answers(answers, prompt_count)

        now = utc_now()
        response = PatientResponse(
            dispatch_id=dispatch.id,
            owner_id=dispatch.owner_id,
            pathology_label=dispatch.pathology_label,
            answers=list(answers),
            average_score=average,
            score_total=score_total,
            comment=comment.strip() if comment and comment.strip() else None,
            submitted_at=now,
        )
        self.session.add(response)

        dispatch.status = next_status
        dispatch.completed_at = now

        try:
            await self.session.commit()
        except IntegrityError as e:
            # A concurrent submission won the unique dispatch_id constraint
            await self.session.rollback()
            raise InvalidTransitionError(
                DispatchStatus.COMPLETED, DispatchEvent.RESPONSE_RECEIVED
            ) from e

        is_critical = average <= settings.critical_score_threshold
        logger.info(
            f"Response received for dispatch {dispatch.id} "
            f"(average {average:.2f}, critical={is_critical})"
        )

        await write_audit_event(
            session=self.session,
            actor_type=ActorType.PATIENT,
            actor_id=None,
            action="response_received",
            entity_type="dispatch",
            entity_id=dispatch.id,
            metadata={
                "previous_status": status.value if status else None,
                "average_score": average,
                "is_critical": is_critical,
            },
        )

        await self._notify_practitioner(dispatch, average, is_critical)
        return response

    async def _notify_practitioner(
        self,
        dispatch: Dispatch,
        average: float,
        is_critical: bool,
    ) -> None:
        """Email the owner about the new response. Never fails the submission."""
        result = await self.session.execute(
            select(Practitioner).where(Practitioner.id == dispatch.owner_id)
        )
        practitioner = result.scalar_one_or_none()
        if not practitioner or not practitioner.is_active:
            logger.warning(f"No active practitioner to notify for dispatch {dispatch.id}")
            return

        try:
            await self.provider.notify_practitioner(
                PractitionerNotice(
                    practitioner_email=practitioner.email,
                    practitioner_name=practitioner.full_name,
                    dispatch_id=dispatch.id,
                    pathology_label=dispatch.pathology_label,
                    patient_email=dispatch.recipient_email,
                    average_score=average,
                    is_critical=is_critical,
                )
            )
        except DeliveryError as e:
            logger.warning(
                f"Practitioner notification failed for dispatch {dispatch.id}: {e.reason}"
            )
