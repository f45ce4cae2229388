"""Dispatch endpoints for practitioners."""

from datetime import date

from fastapi import APIRouter, HTTPException, Query, status

from followup.api.deps import CurrentPractitioner, DbSession, Provider
from followup.core.config import settings
from followup.dispatch.lifecycle import InvalidTransitionError, describe
from followup.dispatch.scheduling import DispatchValidationError
from followup.models.dispatch import Dispatch, DispatchStatus
from followup.schemas.dispatch import (
    BatchReportRead,
    DispatchBatchCreate,
    DispatchRead,
    RecipientOutcomeRead,
    ReminderBulkCancel,
    ReminderBulkCancelRead,
    StatusSummaryRead,
)
from followup.services.delivery import DeliveryError
from followup.services.dispatch import (
    BatchReport,
    DispatchNotFoundError,
    DispatchService,
    ReminderAlreadySentError,
)
from followup.services.questionnaire import QuestionnaireNotFoundError, QuestionnaireService
from followup.utils.time import utc_today

router = APIRouter()


def patient_link(dispatch_id: str) -> str:
    return f"{settings.app_url.rstrip('/')}/questionnaire/{dispatch_id}"


def to_dispatch_read(dispatch: Dispatch, today: date) -> DispatchRead:
    """Combine a dispatch record with its derived status view."""
    view = describe(dispatch, today)
    return DispatchRead(
        id=dispatch.id,
        questionnaire_id=dispatch.questionnaire_id,
        pathology_label=dispatch.pathology_label,
        recipient_email=dispatch.recipient_email,
        send_after_days=dispatch.send_after_days,
        status=view.status.value if view.status else None,
        status_label=view.label,
        created_at=dispatch.created_at,
        sent_at=dispatch.sent_at,
        completed_at=dispatch.completed_at,
        expired_at=dispatch.expired_at,
        reminder_sent_at=dispatch.reminder_sent_at,
        reminder_cancelled=dispatch.reminder_cancelled,
        scheduled_date=view.scheduled_date,
        days_remaining=view.days_remaining,
        is_overdue=view.is_overdue,
        awaiting_send=view.awaiting_send,
        schedule_label=view.schedule_label,
        patient_link=patient_link(dispatch.id),
    )


def to_batch_read(report: BatchReport) -> BatchReportRead:
    return BatchReportRead(
        succeeded=report.succeeded,
        failed=report.failed,
        outcomes=[
            RecipientOutcomeRead(
                recipient=outcome.recipient,
                succeeded=outcome.succeeded,
                dispatch_id=outcome.dispatch_id,
                status=outcome.status.value if outcome.status else None,
                reason=outcome.reason,
            )
            for outcome in report.outcomes
        ],
        failures=report.failures,
        invalid=report.invalid,
        duplicates=report.duplicates,
    )


@router.post(
    "/batch",
    response_model=BatchReportRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_batch(
    request: DispatchBatchCreate,
    practitioner: CurrentPractitioner,
    session: DbSession,
    provider: Provider,
) -> BatchReportRead:
    """Create one dispatch per pasted recipient.

    With no recipients a single generic link is created.
    """
    pathology_label = request.pathology_label
    prompts = [prompt.model_dump() for prompt in request.prompts] if request.prompts else []
    send_delay_days = request.send_delay_days

    if request.questionnaire_id:
        try:
            questionnaire = await QuestionnaireService(session).get_questionnaire(
                request.questionnaire_id, practitioner.id
            )
        except QuestionnaireNotFoundError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Questionnaire not found",
            )
        pathology_label = questionnaire.pathology_label
        prompts = questionnaire.prompts
        if send_delay_days is None:
            send_delay_days = questionnaire.default_send_delay_days

    service = DispatchService(session, provider=provider)
    try:
        report = await service.create_batch_from_text(
            owner_id=practitioner.id,
            pathology_label=pathology_label,
            prompts=prompts,
            recipients_text=request.recipients_text,
            send_immediately=request.send_immediately,
            send_delay_days=send_delay_days,
            questionnaire_id=request.questionnaire_id,
        )
    except DispatchValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return to_batch_read(report)


@router.get(
    "",
    response_model=list[DispatchRead],
)
async def list_dispatches(
    practitioner: CurrentPractitioner,
    session: DbSession,
    status_filter: DispatchStatus | None = Query(None, alias="status"),
    has_recipient: bool | None = None,
) -> list[DispatchRead]:
    """List the practitioner's dispatches, newest first."""
    service = DispatchService(session)
    dispatches = await service.list_dispatches(
        owner_id=practitioner.id,
        status=status_filter,
        has_recipient=has_recipient,
    )
    today = utc_today()
    return [to_dispatch_read(d, today) for d in dispatches]


@router.get(
    "/summary",
    response_model=StatusSummaryRead,
)
async def get_status_summary(
    practitioner: CurrentPractitioner,
    session: DbSession,
) -> StatusSummaryRead:
    """Dashboard counts by status."""
    service = DispatchService(session)
    summary = await service.get_status_summary(practitioner.id)
    return StatusSummaryRead(
        total=summary.total,
        by_status=summary.by_status,
        scheduled_next_30_days=summary.scheduled_next_30_days,
        overdue=summary.overdue,
    )


@router.get(
    "/{dispatch_id}",
    response_model=DispatchRead,
)
async def get_dispatch(
    dispatch_id: str,
    practitioner: CurrentPractitioner,
    session: DbSession,
) -> DispatchRead:
    """Get one dispatch."""
    service = DispatchService(session)
    try:
        dispatch = await service.get_dispatch(dispatch_id, practitioner.id)
    except DispatchNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Dispatch not found",
        )

    return to_dispatch_read(dispatch, utc_today())


@router.post(
    "/{dispatch_id}/send-now",
    response_model=DispatchRead,
)
async def send_now(
    dispatch_id: str,
    practitioner: CurrentPractitioner,
    session: DbSession,
    provider: Provider,
) -> DispatchRead:
    """Send a scheduled dispatch without waiting for its send date."""
    service = DispatchService(session, provider=provider)
    try:
        dispatch = await service.send_now(dispatch_id, practitioner.id)
    except DispatchNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Dispatch not found",
        )
    except InvalidTransitionError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Only scheduled dispatches can be sent now",
        )
    except DeliveryError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=e.reason,
        )

    return to_dispatch_read(dispatch, utc_today())


@router.post(
    "/{dispatch_id}/cancel-reminder",
    response_model=DispatchRead,
)
async def cancel_reminder(
    dispatch_id: str,
    practitioner: CurrentPractitioner,
    session: DbSession,
) -> DispatchRead:
    """Stop the follow-up reminder for a dispatch."""
    service = DispatchService(session)
    try:
        dispatch = await service.cancel_reminder(dispatch_id, practitioner.id)
    except DispatchNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Dispatch not found",
        )
    except ReminderAlreadySentError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The reminder has already been sent",
        )

    return to_dispatch_read(dispatch, utc_today())


@router.post(
    "/cancel-reminders",
    response_model=ReminderBulkCancelRead,
)
async def cancel_reminders(
    request: ReminderBulkCancel,
    practitioner: CurrentPractitioner,
    session: DbSession,
) -> ReminderBulkCancelRead:
    """Stop the follow-up reminders for several dispatches."""
    if not request.dispatch_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one dispatch id is required",
        )

    service = DispatchService(session)
    cancelled = await service.cancel_reminders(
        [str(dispatch_id) for dispatch_id in request.dispatch_ids],
        practitioner.id,
    )
    return ReminderBulkCancelRead(cancelled_count=cancelled)
