"""Send delay validation and scheduled-date arithmetic.

All date math is done on calendar dates in UTC: a dispatch created at any
time on day D with a delay of N days is due on D + N.
"""

import re
from datetime import date, datetime, timedelta
from typing import Any

from followup.core.config import settings
from followup.utils.time import ensure_utc

_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")


class DispatchValidationError(Exception):
    """Raised when a batch request is rejected before any record is created."""

    pass


def parse_send_delay(value: Any) -> int:
    """Coerce a requested delay to an integer.

    Accepts ints and integer strings. Anything else (floats, booleans,
    free text) is malformed.

    Raises:
        DispatchValidationError: If the value is not an integer
    """
    if isinstance(value, bool):
        raise DispatchValidationError(f"Send delay must be a whole number of days, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER_PATTERN.match(value.strip()):
        return int(value.strip())
    raise DispatchValidationError(f"Send delay must be a whole number of days, got {value!r}")


def clamp_send_delay(
    days: Any,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    """Clamp a delay into the allowed range.

    Args:
        days: Requested delay in days
        minimum: Lower bound (defaults to settings.min_send_delay_days)
        maximum: Upper bound (defaults to settings.max_send_delay_days)

    Returns:
        Delay within [minimum, maximum]
    """
    if minimum is None:
        minimum = settings.min_send_delay_days
    if maximum is None:
        maximum = settings.max_send_delay_days

    return max(minimum, min(maximum, parse_send_delay(days)))


def scheduled_date(created_at: datetime | None, send_after_days: int | None) -> date | None:
    """Calendar date a dispatch is due to be sent.

    Returns None for generic links (no delay) or records without a
    creation timestamp.
    """
    if created_at is None or send_after_days is None:
        return None
    return ensure_utc(created_at).date() + timedelta(days=send_after_days)


def days_remaining(scheduled: date, today: date) -> int:
    """Whole days until the scheduled date, never negative.

    A same-day send reads 0.
    """
    return max(0, (scheduled - today).days)


def is_overdue(scheduled: date, today: date) -> bool:
    return scheduled < today


def is_due(scheduled: date, today: date) -> bool:
    """Whether the send date is today or earlier."""
    return scheduled <= today


def schedule_label(remaining: int) -> str:
    """Human-readable countdown for a scheduled send."""
    if remaining <= 0:
        return "Sending today"
    if remaining == 1:
        return "Sending in 1 day"
    return f"Sending in {remaining} days"
