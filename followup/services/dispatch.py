"""Dispatch scheduling and lifecycle service.

Turns a questionnaire snapshot plus a recipient list into one dispatch per
recipient, fires scheduled dispatches when they fall due, sends the single
follow-up reminder and expires dispatches that never got a response.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from followup.core.config import settings
from followup.dispatch.lifecycle import (
    DispatchEvent,
    InvalidTransitionError,
    apply_event,
    creation_event,
    current_status,
    describe,
    is_expiry_due,
    is_terminal,
)
from followup.dispatch.recipients import parse_recipients
from followup.dispatch.scheduling import (
    DispatchValidationError,
    clamp_send_delay,
    is_due,
    scheduled_date,
)
from followup.models.audit_event import ActorType
from followup.models.dispatch import Dispatch, DispatchStatus
from followup.services.audit import write_audit_event
from followup.services.delivery import (
    DeliveryError,
    DeliveryProvider,
    SendRequest,
    get_delivery_provider,
)
from followup.utils.time import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class DispatchNotFoundError(Exception):
    """Raised when a dispatch does not exist or belongs to someone else."""

    pass


class ReminderAlreadySentError(Exception):
    """Raised when cancelling a reminder that has already gone out."""

    pass


@dataclass
class RecipientOutcome:
    """Outcome of one recipient's job within a batch."""

    recipient: str | None
    succeeded: bool
    dispatch_id: str | None = None
    status: DispatchStatus | None = None
    reason: str | None = None


@dataclass
class BatchReport:
    """Structured result of a batch, in submission order."""

    outcomes: list[RecipientOutcome] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.succeeded)

    @property
    def failures(self) -> list[dict[str, str | None]]:
        return [
            {"recipient": outcome.recipient, "reason": outcome.reason}
            for outcome in self.outcomes
            if not outcome.succeeded
        ]


@dataclass
class JobReport:
    """Tally of a time-based job run."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def record_failure(self, dispatch_id: str, reason: str) -> None:
        self.failed += 1
        self.errors.append({"dispatch_id": dispatch_id, "reason": reason})


@dataclass
class StatusSummary:
    """Dashboard counts for one practitioner's dispatches."""

    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    scheduled_next_30_days: int = 0
    overdue: int = 0


def normalize_prompts(prompts: Any) -> list[dict[str, Any]]:
    """Drop blank prompts and coerce plain strings into prompt dicts."""
    if not isinstance(prompts, list):
        return []

    cleaned = []
    for prompt in prompts:
        if isinstance(prompt, str):
            prompt = {"text": prompt}
        if not isinstance(prompt, dict):
            continue
        text = prompt.get("text")
        if not isinstance(text, str) or not text.strip():
            continue
        cleaned.append(
            {
                "text": text.strip(),
                "type": prompt.get("type") or "scale",
                "label_min": prompt.get("label_min"),
                "label_max": prompt.get("label_max"),
            }
        )
    return cleaned


class DispatchService:
    """Service for creating and advancing questionnaire dispatches."""

    def __init__(
        self,
        session: AsyncSession,
        provider: DeliveryProvider | None = None,
    ):
        self.session = session
        self.provider = provider or get_delivery_provider()

    def validate_batch(
        self,
        pathology_label: str | None,
        prompts: Any,
        recipients: Sequence[str],
        send_immediately: bool,
        send_delay_days: Any,
    ) -> tuple[list[dict[str, Any]], int | None]:
        """Validate a batch request before any record is created.

        Returns:
            (cleaned prompts, delay to store)

        Raises:
            DispatchValidationError: If the batch cannot be created
        """
        if not pathology_label or not pathology_label.strip():
            raise DispatchValidationError("A pathology label is required")

        cleaned = normalize_prompts(prompts)
        if not cleaned:
            raise DispatchValidationError("At least one question is required")

        if len(recipients) > settings.max_recipients_per_batch:
            raise DispatchValidationError(
                f"Too many recipients ({len(recipients)}); "
                f"the limit is {settings.max_recipients_per_batch} per batch"
            )

        if not recipients:
            return cleaned, None
        if send_immediately:
            return cleaned, 0

        if send_delay_days is None:
            send_delay_days = settings.default_send_delay_days
        return cleaned, clamp_send_delay(send_delay_days)

    async def create_batch(
        self,
        owner_id: str,
        pathology_label: str,
        prompts: Any,
        recipients: Sequence[str],
        send_immediately: bool = False,
        send_delay_days: Any = None,
        questionnaire_id: str | None = None,
    ) -> BatchReport:
        """Create one dispatch per recipient and send the immediate ones.

        Recipients are processed one at a time. A failure for one recipient
        is recorded in the report and never stops the rest of the batch.
        An empty recipient list creates a single generic link.
        """
        cleaned_prompts, delay = self.validate_batch(
            pathology_label, prompts, recipients, send_immediately, send_delay_days
        )
        pathology_label = pathology_label.strip()

        report = BatchReport()
        targets: list[str | None] = list(recipients) or [None]

        for recipient in targets:
            outcome = await self._create_and_send(
                owner_id=owner_id,
                questionnaire_id=questionnaire_id,
                pathology_label=pathology_label,
                prompts=cleaned_prompts,
                recipient=recipient,
                send_immediately=send_immediately and recipient is not None,
                delay=delay,
            )
            report.outcomes.append(outcome)

        logger.info(
            f"Batch for {pathology_label}: {report.succeeded} succeeded, {report.failed} failed"
        )

        await write_audit_event(
            session=self.session,
            actor_type=ActorType.PRACTITIONER,
            actor_id=owner_id,
            action="dispatch_batch_created",
            entity_type="questionnaire",
            entity_id=questionnaire_id,
            metadata={
                "pathology_label": pathology_label,
                "send_immediately": send_immediately,
                "send_after_days": delay,
                "succeeded": report.succeeded,
                "failed": report.failed,
            },
        )

        return report

    async def create_batch_from_text(
        self,
        owner_id: str,
        pathology_label: str,
        prompts: Any,
        recipients_text: str | None,
        send_immediately: bool = False,
        send_delay_days: Any = None,
        questionnaire_id: str | None = None,
    ) -> BatchReport:
        """Parse pasted recipients, then create the batch.

        Raises:
            DispatchValidationError: If recipients were given but none is valid
        """
        parsed = parse_recipients(recipients_text)
        if not parsed.is_empty and not parsed.has_valid:
            raise DispatchValidationError(
                f"No valid email address found ({len(parsed.invalid)} invalid)"
            )

        report = await self.create_batch(
            owner_id=owner_id,
            pathology_label=pathology_label,
            prompts=prompts,
            recipients=parsed.valid,
            send_immediately=send_immediately,
            send_delay_days=send_delay_days,
            questionnaire_id=questionnaire_id,
        )
        report.invalid = parsed.invalid
        report.duplicates = parsed.duplicates
        return report

    async def _create_and_send(
        self,
        owner_id: str,
        questionnaire_id: str | None,
        pathology_label: str,
        prompts: list[dict[str, Any]],
        recipient: str | None,
        send_immediately: bool,
        delay: int | None,
    ) -> RecipientOutcome:
        """Create one dispatch and, when immediate, send it."""
        status = apply_event(None, creation_event(recipient is not None, send_immediately))

        dispatch = Dispatch(
            owner_id=owner_id,
            questionnaire_id=questionnaire_id,
            pathology_label=pathology_label,
            prompts=prompts,
            recipient_email=recipient,
            send_after_days=delay,
            status=status,
            sent_at=utc_now() if status == DispatchStatus.SENT else None,
        )

        try:
            self.session.add(dispatch)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to create dispatch for {recipient}: {e}")
            return RecipientOutcome(
                recipient=recipient,
                succeeded=False,
                reason="The questionnaire could not be saved",
            )

        outcome = RecipientOutcome(
            recipient=recipient,
            succeeded=True,
            dispatch_id=dispatch.id,
            status=status,
        )

        if not send_immediately:
            return outcome

        try:
            await self.provider.send(
                SendRequest(patient_email=recipient, questionnaire_id=dispatch.id, send_delay_days=0)
            )
        except DeliveryError as e:
            logger.error(f"Failed to send dispatch {dispatch.id} to {recipient}: {e.reason}")
            outcome.succeeded = False
            outcome.reason = e.reason
        except Exception:
            logger.exception(f"Unexpected error sending dispatch {dispatch.id} to {recipient}")
            outcome.succeeded = False
            outcome.reason = "The email could not be sent"

        return outcome

    async def get_dispatch(self, dispatch_id: str, owner_id: str | None = None) -> Dispatch:
        """Get a dispatch, optionally scoped to its owner.

        Raises:
            DispatchNotFoundError: If missing, deleted or owned by someone else
        """
        query = select(Dispatch).where(
            Dispatch.id == dispatch_id,
            Dispatch.is_deleted == False,
        )
        if owner_id is not None:
            query = query.where(Dispatch.owner_id == owner_id)

        result = await self.session.execute(query)
        dispatch = result.scalar_one_or_none()
        if not dispatch:
            raise DispatchNotFoundError(f"Dispatch {dispatch_id} not found")
        return dispatch

    async def list_dispatches(
        self,
        owner_id: str,
        status: DispatchStatus | None = None,
        has_recipient: bool | None = None,
    ) -> list[Dispatch]:
        """List a practitioner's dispatches, newest first."""
        query = (
            select(Dispatch)
            .where(
                Dispatch.owner_id == owner_id,
                Dispatch.is_deleted == False,
            )
            .order_by(Dispatch.created_at.desc())
        )
        if has_recipient is True:
            query = query.where(Dispatch.recipient_email.is_not(None))
        elif has_recipient is False:
            query = query.where(Dispatch.recipient_email.is_(None))

        result = await self.session.execute(query)
        dispatches = list(result.scalars().all())

        # Filtered after loading so legacy raw values still match
        if status is not None:
            dispatches = [d for d in dispatches if current_status(d) == status]
        return dispatches

    async def _fire(self, dispatch: Dispatch, actor_type: ActorType, actor_id: str | None) -> Dispatch:
        """Send a scheduled dispatch and mark it sent.

        Raises:
            InvalidTransitionError: If the dispatch is not scheduled
            DeliveryError: If the send fails; the dispatch stays scheduled
        """
        next_status = apply_event(current_status(dispatch), DispatchEvent.FIRE_SUCCEEDED)

        await self.provider.send(
            SendRequest(
                patient_email=dispatch.recipient_email,
                questionnaire_id=dispatch.id,
                send_delay_days=0,
            )
        )

        dispatch.status = next_status
        dispatch.sent_at = utc_now()
        await self.session.commit()

        await write_audit_event(
            session=self.session,
            actor_type=actor_type,
            actor_id=actor_id,
            action="dispatch_sent",
            entity_type="dispatch",
            entity_id=dispatch.id,
            metadata={"send_after_days": dispatch.send_after_days},
        )
        return dispatch

    async def send_now(self, dispatch_id: str, owner_id: str) -> Dispatch:
        """Fire a scheduled dispatch immediately at the practitioner's request."""
        dispatch = await self.get_dispatch(dispatch_id, owner_id)
        if dispatch.recipient_email is None:
            raise InvalidTransitionError(current_status(dispatch), DispatchEvent.FIRE_SUCCEEDED)

        dispatch = await self._fire(dispatch, ActorType.PRACTITIONER, owner_id)
        logger.info(f"Dispatch {dispatch.id} sent ahead of schedule")
        return dispatch

    async def _open_dispatches_with_recipient(self) -> list[Dispatch]:
        result = await self.session.execute(
            select(Dispatch)
            .where(
                Dispatch.is_deleted == False,
                Dispatch.recipient_email.is_not(None),
                Dispatch.status.not_in(
                    [DispatchStatus.COMPLETED.value, DispatchStatus.EXPIRED.value]
                ),
            )
            .order_by(Dispatch.created_at)
        )
        return [d for d in result.scalars().all() if not is_terminal(current_status(d))]

    async def get_due_dispatches(self, today: date | None = None) -> list[Dispatch]:
        """Scheduled dispatches whose send date is today or earlier."""
        today = today or utc_now().date()
        due = []
        for dispatch in await self._open_dispatches_with_recipient():
            if current_status(dispatch) != DispatchStatus.SCHEDULED:
                continue
            send_date = scheduled_date(dispatch.created_at, dispatch.send_after_days)
            if send_date is not None and is_due(send_date, today):
                due.append(dispatch)
        return due

    async def fire_due_dispatches(self, today: date | None = None) -> JobReport:
        """Send every scheduled dispatch that has fallen due."""
        report = JobReport()

        # Ids are taken up front; a rollback expires every loaded dispatch
        due_ids = [dispatch.id for dispatch in await self.get_due_dispatches(today)]

        for dispatch_id in due_ids:
            report.processed += 1
            dispatch = await self.session.get(Dispatch, dispatch_id)
            try:
                await self._fire(dispatch, ActorType.SYSTEM, None)
            except DeliveryError as e:
                logger.error(f"Failed to fire dispatch {dispatch_id}: {e.reason}")
                report.record_failure(dispatch_id, e.reason)
                continue
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(f"Failed to save fired dispatch {dispatch_id}: {e}")
                report.record_failure(dispatch_id, "The dispatch could not be saved")
                continue
            except Exception:
                logger.exception(f"Unexpected error firing dispatch {dispatch_id}")
                report.record_failure(dispatch_id, "The email could not be sent")
                continue
            report.succeeded += 1

        logger.info(
            f"Fired {report.succeeded} due dispatches ({report.failed} failed)"
        )
        return report

    async def get_reminder_candidates(self, now: datetime | None = None) -> list[Dispatch]:
        """Sent dispatches still waiting for a response past the reminder delay."""
        now = now or utc_now()
        threshold = now - timedelta(days=settings.reminder_delay_days)

        candidates = []
        for dispatch in await self._open_dispatches_with_recipient():
            if current_status(dispatch) != DispatchStatus.SENT:
                continue
            if dispatch.reminder_sent_at is not None or dispatch.reminder_cancelled:
                continue
            sent_at = ensure_utc(dispatch.sent_at or dispatch.created_at)
            if sent_at is not None and sent_at < threshold:
                candidates.append(dispatch)
        return candidates

    async def send_reminders(self, now: datetime | None = None) -> JobReport:
        """Send the single follow-up reminder to patients who have not responded."""
        now = now or utc_now()
        report = JobReport()

        candidate_ids = [dispatch.id for dispatch in await self.get_reminder_candidates(now)]

        for dispatch_id in candidate_ids:
            report.processed += 1
            dispatch = await self.session.get(Dispatch, dispatch_id)
            try:
                await self.provider.send(
                    SendRequest(
                        patient_email=dispatch.recipient_email,
                        questionnaire_id=dispatch.id,
                        send_delay_days=0,
                        reminder=True,
                    )
                )
            except DeliveryError as e:
                logger.error(f"Failed to send reminder for dispatch {dispatch_id}: {e.reason}")
                report.record_failure(dispatch_id, e.reason)
                continue
            except Exception:
                logger.exception(f"Unexpected error sending reminder for dispatch {dispatch_id}")
                report.record_failure(dispatch_id, "The email could not be sent")
                continue

            dispatch.reminder_sent_at = now
            try:
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(f"Failed to save reminder for dispatch {dispatch_id}: {e}")
                report.record_failure(dispatch_id, "The reminder could not be saved")
                continue
            report.succeeded += 1

        logger.info(f"Sent {report.succeeded} reminders ({report.failed} failed)")
        return report

    async def cancel_reminder(self, dispatch_id: str, owner_id: str) -> Dispatch:
        """Suppress the follow-up reminder for a dispatch.

        Raises:
            ReminderAlreadySentError: If the reminder has already been sent
        """
        dispatch = await self.get_dispatch(dispatch_id, owner_id)

        if dispatch.reminder_cancelled:
            return dispatch
        if dispatch.reminder_sent_at is not None:
            raise ReminderAlreadySentError(f"Reminder for dispatch {dispatch_id} was already sent")

        dispatch.reminder_cancelled = True
        await self.session.commit()

        logger.info(f"Reminder cancelled for dispatch {dispatch.id}")
        return dispatch

    async def cancel_reminders(self, dispatch_ids: Sequence[str], owner_id: str) -> int:
        """Suppress the follow-up reminder for several dispatches at once.

        Ids owned by someone else, already reminded or already cancelled
        are skipped.

        Returns:
            Number of reminders cancelled by this call
        """
        if not dispatch_ids:
            return 0

        result = await self.session.execute(
            select(Dispatch).where(
                Dispatch.id.in_(list(dispatch_ids)),
                Dispatch.owner_id == owner_id,
                Dispatch.is_deleted == False,
                Dispatch.reminder_sent_at.is_(None),
                Dispatch.reminder_cancelled == False,
            )
        )
        dispatches = list(result.scalars().all())

        for dispatch in dispatches:
            dispatch.reminder_cancelled = True
        await self.session.commit()

        logger.info(f"Cancelled {len(dispatches)} reminders for practitioner {owner_id}")
        return len(dispatches)

    async def expire_stale(self, now: datetime | None = None) -> JobReport:
        """Expire dispatches whose retention window elapsed without a response."""
        now = now or utc_now()
        report = JobReport()

        for dispatch in await self._open_dispatches_with_recipient():
            if not is_expiry_due(
                dispatch,
                now,
                scheduled_grace_days=settings.scheduled_grace_days,
                response_retention_days=settings.response_retention_days,
            ):
                continue

            report.processed += 1
            previous = current_status(dispatch)
            dispatch.status = apply_event(previous, DispatchEvent.RETENTION_ELAPSED)
            dispatch.expired_at = now
            await self.session.commit()

            await write_audit_event(
                session=self.session,
                actor_type=ActorType.SYSTEM,
                actor_id=None,
                action="dispatch_expired",
                entity_type="dispatch",
                entity_id=dispatch.id,
                metadata={"previous_status": previous.value},
            )
            report.succeeded += 1

        logger.info(f"Expired {report.succeeded} dispatches")
        return report

    async def get_status_summary(self, owner_id: str, today: date | None = None) -> StatusSummary:
        """Counts per status plus sends scheduled in the next 30 days."""
        today = today or utc_now().date()
        horizon = today + timedelta(days=30)
        summary = StatusSummary(by_status={status.value: 0 for status in DispatchStatus})
        summary.by_status["unlabeled"] = 0

        for dispatch in await self.list_dispatches(owner_id):
            view = describe(dispatch, today)
            key = view.status.value if view.status else "unlabeled"
            summary.by_status[key] += 1
            summary.total += 1

            if view.awaiting_send:
                if view.is_overdue:
                    summary.overdue += 1
                elif view.scheduled_date <= horizon:
                    summary.scheduled_next_30_days += 1

        return summary
