"""Dispatch status state machine.

Every surface reads a dispatch's status through ``current_status`` and
``describe``; every write goes through ``apply_event``.

    (none) --create generic-->   PENDING
    (none) --create delayed-->   SCHEDULED
    (none) --create immediate--> SENT
    SCHEDULED --fire succeeded--> SENT
    PENDING | SCHEDULED | SENT --response received--> COMPLETED
    SCHEDULED | SENT --retention elapsed--> EXPIRED

COMPLETED and EXPIRED are terminal.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Optional

from followup.dispatch.scheduling import (
    days_remaining,
    is_overdue,
    schedule_label,
    scheduled_date,
)
from followup.models.dispatch import DispatchStatus
from followup.utils.time import ensure_utc

logger = logging.getLogger(__name__)


class DispatchEvent(str, Enum):
    """Events that move a dispatch through its lifecycle."""

    CREATE_GENERIC = "create_generic"
    CREATE_DELAYED = "create_delayed"
    CREATE_IMMEDIATE = "create_immediate"
    FIRE_SUCCEEDED = "fire_succeeded"
    RESPONSE_RECEIVED = "response_received"
    RETENTION_ELAPSED = "retention_elapsed"


class InvalidTransitionError(Exception):
    """Raised when an event is not allowed from the current status."""

    def __init__(self, status: Optional[DispatchStatus], event: DispatchEvent) -> None:
        self.status = status
        self.event = event
        current = status.value if status else "none"
        super().__init__(f"Cannot apply {event.value} to a dispatch in status {current}")


TERMINAL_STATUSES = frozenset({DispatchStatus.COMPLETED, DispatchStatus.EXPIRED})

TRANSITIONS: dict[tuple[Optional[DispatchStatus], DispatchEvent], DispatchStatus] = {
    (None, DispatchEvent.CREATE_GENERIC): DispatchStatus.PENDING,
    (None, DispatchEvent.CREATE_DELAYED): DispatchStatus.SCHEDULED,
    (None, DispatchEvent.CREATE_IMMEDIATE): DispatchStatus.SENT,
    (DispatchStatus.SCHEDULED, DispatchEvent.FIRE_SUCCEEDED): DispatchStatus.SENT,
    (DispatchStatus.PENDING, DispatchEvent.RESPONSE_RECEIVED): DispatchStatus.COMPLETED,
    (DispatchStatus.SCHEDULED, DispatchEvent.RESPONSE_RECEIVED): DispatchStatus.COMPLETED,
    (DispatchStatus.SENT, DispatchEvent.RESPONSE_RECEIVED): DispatchStatus.COMPLETED,
    (DispatchStatus.SCHEDULED, DispatchEvent.RETENTION_ELAPSED): DispatchStatus.EXPIRED,
    (DispatchStatus.SENT, DispatchEvent.RETENTION_ELAPSED): DispatchStatus.EXPIRED,
}

STATUS_LABELS = {
    DispatchStatus.PENDING: "Pending",
    DispatchStatus.SCHEDULED: "Scheduled",
    DispatchStatus.SENT: "Sent",
    DispatchStatus.COMPLETED: "Completed",
    DispatchStatus.EXPIRED: "Expired",
}

UNLABELED = "Unlabeled"

# Raw values written by older clients, keyed case-insensitively
LEGACY_STATUS_ALIASES = {
    "en_attente": DispatchStatus.PENDING,
    "en attente": DispatchStatus.PENDING,
    "programmé": DispatchStatus.SCHEDULED,
    "programme": DispatchStatus.SCHEDULED,
    "envoyé": DispatchStatus.SENT,
    "envoye": DispatchStatus.SENT,
    "complété": DispatchStatus.COMPLETED,
    "complete": DispatchStatus.COMPLETED,
    "expiré": DispatchStatus.EXPIRED,
    "expire": DispatchStatus.EXPIRED,
}


def normalize_status(raw: Any) -> Optional[DispatchStatus]:
    """Map a stored status value to a DispatchStatus.

    Unknown values yield None so callers can render them as unlabeled
    instead of failing.
    """
    if isinstance(raw, DispatchStatus):
        return raw
    if not isinstance(raw, str):
        return None

    key = raw.strip().lower()
    try:
        return DispatchStatus(key)
    except ValueError:
        return LEGACY_STATUS_ALIASES.get(key)


def current_status(dispatch: Any) -> Optional[DispatchStatus]:
    """Read a dispatch's status. Pure: never mutates the record."""
    status = normalize_status(getattr(dispatch, "status", None))
    if status is None:
        logger.warning(
            f"Dispatch {getattr(dispatch, 'id', '?')} has unrecognised status "
            f"{getattr(dispatch, 'status', None)!r}"
        )
    return status


def status_label(status: Optional[DispatchStatus]) -> str:
    if status is None:
        return UNLABELED
    return STATUS_LABELS[status]


def is_terminal(status: Optional[DispatchStatus]) -> bool:
    return status in TERMINAL_STATUSES


def apply_event(status: Optional[DispatchStatus], event: DispatchEvent) -> DispatchStatus:
    """Return the status reached by applying an event.

    Raises:
        InvalidTransitionError: If the transition is not in the table
    """
    next_status = TRANSITIONS.get((status, event))
    if next_status is None:
        raise InvalidTransitionError(status, event)
    return next_status


def creation_event(has_recipient: bool, send_immediately: bool) -> DispatchEvent:
    """Pick the creation event for a new dispatch."""
    if not has_recipient:
        return DispatchEvent.CREATE_GENERIC
    if send_immediately:
        return DispatchEvent.CREATE_IMMEDIATE
    return DispatchEvent.CREATE_DELAYED


@dataclass
class StatusView:
    """Derived, read-only view of a dispatch status.

    Attributes:
        status: Normalised status, None when unrecognised
        label: Display label
        scheduled_date: Date the dispatch is (or was) due to be sent
        days_remaining: Days until the scheduled date, clamped at 0
        is_overdue: Scheduled date is in the past
        awaiting_send: Still waiting for its fire time
        schedule_label: Countdown text for scheduled dispatches
    """

    status: Optional[DispatchStatus]
    label: str
    scheduled_date: Optional[date] = None
    days_remaining: Optional[int] = None
    is_overdue: bool = False
    awaiting_send: bool = False
    schedule_label: Optional[str] = None


def describe(dispatch: Any, today: date) -> StatusView:
    """Build the status view consumed by listings and dashboards."""
    status = current_status(dispatch)
    view = StatusView(status=status, label=status_label(status))

    if dispatch.recipient_email is None:
        return view

    view.scheduled_date = scheduled_date(dispatch.created_at, dispatch.send_after_days)
    if view.scheduled_date is None or status != DispatchStatus.SCHEDULED:
        return view

    view.awaiting_send = True
    view.days_remaining = days_remaining(view.scheduled_date, today)
    view.is_overdue = is_overdue(view.scheduled_date, today)
    view.schedule_label = schedule_label(view.days_remaining)
    return view


def is_expiry_due(
    dispatch: Any,
    now: datetime,
    scheduled_grace_days: int,
    response_retention_days: int,
) -> bool:
    """Whether the retention window has elapsed without a response.

    Scheduled dispatches expire once their send date is more than
    ``scheduled_grace_days`` in the past; sent dispatches once they were
    sent more than ``response_retention_days`` ago.
    """
    status = current_status(dispatch)
    today = ensure_utc(now).date()

    if status == DispatchStatus.SCHEDULED:
        due = scheduled_date(dispatch.created_at, dispatch.send_after_days)
        if due is None:
            return False
        return due < today - timedelta(days=scheduled_grace_days)

    if status == DispatchStatus.SENT:
        sent_at = ensure_utc(dispatch.sent_at or dispatch.created_at)
        if sent_at is None:
            return False
        return sent_at < ensure_utc(now) - timedelta(days=response_retention_days)

    return False
