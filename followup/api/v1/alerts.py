"""Critical alert endpoints."""

from fastapi import APIRouter, HTTPException, Query, status

from followup.api.deps import CurrentPractitioner, DbSession
from followup.models.resolution import AlertResolution, ResolutionStatus
from followup.schemas.alert import (
    AlertCountsRead,
    AlertRead,
    CriticalAnswerRead,
    ResolutionRead,
    ResolveRequest,
)
from followup.services.alerts import AlertService, TrackedAlert
from followup.services.resolution import (
    AlertNotEligibleError,
    AlertNotFoundError,
    ResolutionNoteRequiredError,
    ResolutionService,
)

router = APIRouter()


def to_alert_read(item: TrackedAlert) -> AlertRead:
    alert = item.alert
    resolution = item.resolution
    return AlertRead(
        response_id=alert.response_id,
        pathology_label=alert.pathology_label,
        average_score=alert.average_score,
        score_total=alert.score_total,
        submitted_at=alert.submitted_at,
        recipient_email=alert.recipient_email,
        patient_name=alert.patient_name,
        comment=alert.comment,
        critical_responses=[
            CriticalAnswerRead.model_validate(answer) for answer in alert.critical_responses
        ],
        resolution_status=item.status.value,
        assigned_to=resolution.assigned_to if resolution else None,
        resolution_note=resolution.resolution_note if resolution else None,
        resolved_at=resolution.resolved_at if resolution else None,
    )


def to_resolution_read(response_id: str, resolution: AlertResolution | None) -> ResolutionRead:
    if resolution is None:
        return ResolutionRead(response_id=response_id, status=ResolutionStatus.NEW.value)
    return ResolutionRead.model_validate(resolution)


@router.get(
    "",
    response_model=list[AlertRead],
)
async def list_alerts(
    practitioner: CurrentPractitioner,
    session: DbSession,
    pathology: str | None = None,
    lookback_days: int | None = Query(None, ge=1, le=3650),
    status_filter: ResolutionStatus | None = Query(None, alias="status"),
) -> list[AlertRead]:
    """List critical alerts, most recent first."""
    service = AlertService(session)
    alerts = await service.list_alerts(
        owner_id=practitioner.id,
        pathology=pathology,
        lookback_days=lookback_days,
        status=status_filter,
    )
    return [to_alert_read(item) for item in alerts]


@router.get(
    "/counts",
    response_model=AlertCountsRead,
)
async def get_alert_counts(
    practitioner: CurrentPractitioner,
    session: DbSession,
) -> AlertCountsRead:
    """Alert counts by resolution status."""
    service = AlertService(session)
    counts = await service.get_alert_counts(practitioner.id)
    return AlertCountsRead(
        total=counts["total"],
        new=counts[ResolutionStatus.NEW.value],
        in_progress=counts[ResolutionStatus.IN_PROGRESS.value],
        resolved=counts[ResolutionStatus.RESOLVED.value],
    )


@router.get(
    "/{response_id}/resolution",
    response_model=ResolutionRead,
)
async def get_resolution(
    response_id: str,
    practitioner: CurrentPractitioner,
    session: DbSession,
) -> ResolutionRead:
    """Resolution state of one alert."""
    service = ResolutionService(session)
    try:
        resolution = await service.get_owned_resolution(response_id, practitioner.id)
    except AlertNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert not found",
        )
    return to_resolution_read(response_id, resolution)


@router.post(
    "/{response_id}/take-action",
    response_model=ResolutionRead,
)
async def take_action(
    response_id: str,
    practitioner: CurrentPractitioner,
    session: DbSession,
) -> ResolutionRead:
    """Start handling an alert."""
    service = ResolutionService(session)
    try:
        resolution = await service.take_action(response_id, practitioner)
    except AlertNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert not found",
        )
    except AlertNotEligibleError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )

    return to_resolution_read(response_id, resolution)


@router.post(
    "/{response_id}/resolve",
    response_model=ResolutionRead,
)
async def resolve_alert(
    response_id: str,
    request: ResolveRequest,
    practitioner: CurrentPractitioner,
    session: DbSession,
) -> ResolutionRead:
    """Close an alert with a resolution note."""
    service = ResolutionService(session)
    try:
        resolution = await service.resolve(response_id, practitioner, request.note)
    except ResolutionNoteRequiredError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except AlertNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert not found",
        )
    except AlertNotEligibleError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )

    return to_resolution_read(response_id, resolution)
