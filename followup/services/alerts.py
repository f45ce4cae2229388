"""Critical alert queue for a practitioner."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from followup.alerts.detector import Alert, ScoredResponse, detect_alerts
from followup.core.config import settings
from followup.models.dispatch import Dispatch, PatientResponse
from followup.models.resolution import AlertResolution, ResolutionStatus
from followup.utils.time import utc_now

logger = logging.getLogger(__name__)


@dataclass
class TrackedAlert:
    """An alert together with its resolution record, if any."""

    alert: Alert
    resolution: AlertResolution | None = None

    @property
    def status(self) -> ResolutionStatus:
        if self.resolution is None:
            return ResolutionStatus.NEW
        return ResolutionStatus(self.resolution.status)


class AlertService:
    """Derives alerts from stored responses and attaches their resolution state."""

    def __init__(self, session: AsyncSession, threshold: float | None = None):
        self.session = session
        self.threshold = threshold if threshold is not None else settings.critical_score_threshold

    async def _load_scored_responses(self, owner_id: str) -> list[ScoredResponse]:
        result = await self.session.execute(
            select(PatientResponse, Dispatch)
            .join(Dispatch, Dispatch.id == PatientResponse.dispatch_id)
            .where(
                PatientResponse.owner_id == owner_id,
                PatientResponse.is_deleted == False,
            )
        )
        return [
            ScoredResponse(
                response_id=response.id,
                pathology_label=response.pathology_label,
                answers=response.answers,
                average_score=response.average_score,
                score_total=response.score_total,
                submitted_at=response.submitted_at,
                prompts=dispatch.prompts,
                recipient_email=dispatch.recipient_email,
                comment=response.comment,
            )
            for response, dispatch in result.all()
        ]

    async def _load_resolutions(self, response_ids: list[str]) -> dict[str, AlertResolution]:
        if not response_ids:
            return {}
        result = await self.session.execute(
            select(AlertResolution).where(AlertResolution.response_id.in_(response_ids))
        )
        return {resolution.response_id: resolution for resolution in result.scalars().all()}

    async def list_alerts(
        self,
        owner_id: str,
        pathology: str | None = None,
        lookback_days: int | None = None,
        status: ResolutionStatus | None = None,
        now: datetime | None = None,
    ) -> list[TrackedAlert]:
        """List a practitioner's alerts, most recent first.

        Args:
            owner_id: Practitioner whose responses are scanned
            pathology: Only alerts for this pathology label
            lookback_days: Only alerts submitted in the last N days
            status: Only alerts in this resolution state
            now: Reference time for the lookback window
        """
        since = None
        if lookback_days is not None:
            since = (now or utc_now()) - timedelta(days=lookback_days)

        alerts = detect_alerts(
            await self._load_scored_responses(owner_id),
            threshold=self.threshold,
            pathology=pathology,
            since=since,
        )
        resolutions = await self._load_resolutions([alert.response_id for alert in alerts])

        tracked = [TrackedAlert(alert=alert, resolution=resolutions.get(alert.response_id)) for alert in alerts]
        if status is not None:
            tracked = [item for item in tracked if item.status == status]
        return tracked

    async def get_alert_counts(self, owner_id: str) -> dict[str, int]:
        """Total alerts and alerts per resolution status."""
        counts = {"total": 0}
        counts.update({status.value: 0 for status in ResolutionStatus})

        for item in await self.list_alerts(owner_id):
            counts["total"] += 1
            counts[item.status.value] += 1
        return counts
