"""Pydantic schemas for request/response validation."""

from followup.schemas.alert import (
    AlertCountsRead,
    AlertRead,
    CriticalAnswerRead,
    ResolutionRead,
    ResolveRequest,
)
from followup.schemas.dispatch import (
    BatchReportRead,
    DispatchBatchCreate,
    DispatchRead,
    PublicDispatchRead,
    RecipientOutcomeRead,
    ReminderBulkCancel,
    ReminderBulkCancelRead,
    ResponseSubmit,
    ResponseSubmitted,
    StatusSummaryRead,
)
from followup.schemas.questionnaire import PromptSchema, QuestionnaireCreate, QuestionnaireRead

__all__ = [
    # Questionnaires
    "PromptSchema",
    "QuestionnaireCreate",
    "QuestionnaireRead",
    # Dispatches
    "DispatchBatchCreate",
    "BatchReportRead",
    "RecipientOutcomeRead",
    "DispatchRead",
    "StatusSummaryRead",
    "ReminderBulkCancel",
    "ReminderBulkCancelRead",
    "PublicDispatchRead",
    "ResponseSubmit",
    "ResponseSubmitted",
    # Alerts
    "AlertRead",
    "AlertCountsRead",
    "CriticalAnswerRead",
    "ResolutionRead",
    "ResolveRequest",
]
