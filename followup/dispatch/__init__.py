"""Dispatch module: recipient parsing, scheduling and status lifecycle."""

from followup.dispatch.lifecycle import (
    DispatchEvent,
    InvalidTransitionError,
    StatusView,
    apply_event,
    current_status,
    describe,
)
from followup.dispatch.recipients import ParsedRecipients, parse_recipients
from followup.dispatch.scheduling import DispatchValidationError, clamp_send_delay

__all__ = [
    "ParsedRecipients",
    "parse_recipients",
    "DispatchValidationError",
    "clamp_send_delay",
    "DispatchEvent",
    "InvalidTransitionError",
    "StatusView",
    "apply_event",
    "current_status",
    "describe",
]
