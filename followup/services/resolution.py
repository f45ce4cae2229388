"""Resolution tracking for critical alerts.

A practitioner first takes action on an alert (in-progress) and later
resolves it with a note. Resolving directly from new is allowed. Writes are
last-write-wins.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from followup.alerts.detector import is_critical
from followup.core.config import settings
from followup.models.audit_event import ActorType
from followup.models.dispatch import PatientResponse
from followup.models.practitioner import Practitioner
from followup.models.resolution import AlertResolution, ResolutionStatus
from followup.services.audit import write_audit_event
from followup.utils.time import utc_now

logger = logging.getLogger(__name__)


class AlertNotFoundError(Exception):
    """Raised when the response does not exist for this practitioner."""

    pass


class AlertNotEligibleError(Exception):
    """Raised when the response's score is above the critical threshold."""

    pass


class ResolutionNoteRequiredError(Exception):
    """Raised when resolving without a note."""

    pass


class ResolutionService:
    """Service for the take-action / resolve workflow."""

    def __init__(self, session: AsyncSession, threshold: float | None = None):
        self.session = session
        self.threshold = threshold if threshold is not None else settings.critical_score_threshold

    async def _get_owned_response(self, response_id: str, owner_id: str) -> PatientResponse:
        result = await self.session.execute(
            select(PatientResponse).where(
                PatientResponse.id == response_id,
                PatientResponse.owner_id == owner_id,
                PatientResponse.is_deleted == False,
            )
        )
        response = result.scalar_one_or_none()
        if not response:
            raise AlertNotFoundError(f"Response {response_id} not found")
        return response

    async def _get_eligible_response(self, response_id: str, owner_id: str) -> PatientResponse:
        response = await self._get_owned_response(response_id, owner_id)

        if not is_critical(response.average_score, self.threshold):
            raise AlertNotEligibleError(
                f"Response {response_id} scored {response.average_score:.2f}, "
                f"above the alert threshold of {self.threshold}"
            )
        return response

    async def get_resolution(self, response_id: str) -> AlertResolution | None:
        result = await self.session.execute(
            select(AlertResolution).where(AlertResolution.response_id == response_id)
        )
        return result.scalar_one_or_none()

    async def get_owned_resolution(self, response_id: str, owner_id: str) -> AlertResolution | None:
        """Resolution of a response the practitioner owns.

        Raises:
            AlertNotFoundError: If the response is missing or owned by someone else
        """
        await self._get_owned_response(response_id, owner_id)
        return await self.get_resolution(response_id)

    async def get_resolution_status(self, response_id: str) -> ResolutionStatus:
        """Resolution state of an alert; new when nothing is recorded."""
        resolution = await self.get_resolution(response_id)
        if resolution is None:
            return ResolutionStatus.NEW
        return ResolutionStatus(resolution.status)

    async def _upsert(self, response: PatientResponse) -> AlertResolution:
        resolution = await self.get_resolution(response.id)
        if resolution is None:
            resolution = AlertResolution(response_id=response.id, owner_id=response.owner_id)
            self.session.add(resolution)
        return resolution

    async def take_action(self, response_id: str, practitioner: Practitioner) -> AlertResolution:
        """Mark an alert as being handled by the practitioner.

        Overwrites any earlier resolution, clearing note and resolution time.
        """
        response = await self._get_eligible_response(response_id, practitioner.id)
        resolution = await self._upsert(response)

        resolution.status = ResolutionStatus.IN_PROGRESS
        resolution.assigned_to = practitioner.display_name
        resolution.resolution_note = None
        resolution.resolved_at = None
        resolution.resolved_by = None

        await self.session.commit()
        await self.session.refresh(resolution)

        await write_audit_event(
            session=self.session,
            actor_type=ActorType.PRACTITIONER,
            actor_id=practitioner.id,
            action="alert_taken",
            entity_type="patient_response",
            entity_id=response.id,
        )

        logger.info(f"Alert {response.id} taken by {practitioner.id}")
        return resolution

    async def resolve(
        self,
        response_id: str,
        practitioner: Practitioner,
        note: str | None,
    ) -> AlertResolution:
        """Close an alert with a resolution note.

        Raises:
            ResolutionNoteRequiredError: If the note is missing or blank
            AlertNotFoundError: If the response does not exist for this practitioner
            AlertNotEligibleError: If the response is not critical
        """
        if not note or not note.strip():
            raise ResolutionNoteRequiredError("A resolution note is required")

        response = await self._get_eligible_response(response_id, practitioner.id)
        resolution = await self._upsert(response)

        resolution.status = ResolutionStatus.RESOLVED
        resolution.resolution_note = note.strip()
        resolution.resolved_at = utc_now()
        resolution.resolved_by = practitioner.id
        resolution.assigned_to = practitioner.display_name

        await self.session.commit()
        await self.session.refresh(resolution)

        await write_audit_event(
            session=self.session,
            actor_type=ActorType.PRACTITIONER,
            actor_id=practitioner.id,
            action="alert_resolved",
            entity_type="patient_response",
            entity_id=response.id,
        )

        logger.info(f"Alert {response.id} resolved by {practitioner.id}")
        return resolution
