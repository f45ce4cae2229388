"""Test data helpers shared across test modules."""

from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from followup.models import Dispatch, DispatchStatus, PatientResponse, Practitioner
from followup.services.delivery import (
    DeliveryError,
    DeliveryProvider,
    DeliveryResult,
    PractitionerNotice,
    SendRequest,
)

DEFAULT_PROMPTS = [
    {"text": "How is your pain today?", "type": "scale", "label_min": "Severe", "label_max": "None"},
    {"text": "How well are you sleeping?", "type": "scale", "label_min": "Badly", "label_max": "Well"},
    {"text": "How is your mobility?", "type": "scale", "label_min": "Poor", "label_max": "Good"},
]


class RecordingProvider(DeliveryProvider):
    """Delivery provider that records requests and fails on demand."""

    def __init__(
        self,
        fail_for: set[str] | None = None,
        fail_notifications: bool = False,
        crash_for: set[str] | None = None,
    ):
        self.fail_for = fail_for or set()
        self.fail_notifications = fail_notifications
        self.crash_for = crash_for or set()
        self.sent: list[SendRequest] = []
        self.notices: list[PractitionerNotice] = []

    async def send(self, request: SendRequest) -> DeliveryResult:
        self.sent.append(request)
        if request.patient_email in self.fail_for:
            raise DeliveryError("Mailbox unavailable")
        if request.patient_email in self.crash_for:
            raise RuntimeError("connection reset")
        return DeliveryResult(provider_message_id=f"test_{len(self.sent)}")

    async def notify_practitioner(self, notice: PractitionerNotice) -> DeliveryResult:
        self.notices.append(notice)
        if self.fail_notifications:
            raise DeliveryError("Delivery service is unavailable")
        return DeliveryResult(provider_message_id=f"notice_{len(self.notices)}")


async def make_dispatch(
    session: AsyncSession,
    owner: Practitioner,
    recipient: str | None = "patient@example.com",
    status: DispatchStatus | str = DispatchStatus.SCHEDULED,
    send_after_days: int | None = 14,
    created_at: datetime | None = None,
    sent_at: datetime | None = None,
    prompts: list | None = None,
) -> Dispatch:
    """Insert a dispatch directly, bypassing the scheduler."""
    dispatch = Dispatch(
        owner_id=owner.id,
        pathology_label="Knee arthroplasty",
        prompts=prompts if prompts is not None else DEFAULT_PROMPTS,
        recipient_email=recipient,
        send_after_days=send_after_days,
        status=status,
        sent_at=sent_at,
        created_at=created_at or datetime.now(timezone.utc),
    )
    session.add(dispatch)
    await session.commit()
    await session.refresh(dispatch)
    return dispatch


async def make_response(
    session: AsyncSession,
    owner: Practitioner,
    answers: list[int],
    recipient: str | None = "jane.doe@example.com",
    pathology_label: str = "Knee arthroplasty",
    submitted_at: datetime | None = None,
) -> PatientResponse:
    """Insert a completed dispatch and its response."""
    dispatch = await make_dispatch(
        session,
        owner,
        recipient=recipient,
        status=DispatchStatus.COMPLETED,
        send_after_days=0,
    )
    average = sum(answers) / len(answers)
    response = PatientResponse(
        dispatch_id=dispatch.id,
        owner_id=owner.id,
        pathology_label=pathology_label,
        answers=answers,
        average_score=average,
        score_total=int(average + 0.5),
        submitted_at=submitted_at or datetime.now(timezone.utc),
    )
    session.add(response)
    await session.commit()
    await session.refresh(response)
    return response


def days_ago(days: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)
