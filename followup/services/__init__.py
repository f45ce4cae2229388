"""Business logic services."""

from followup.services.alerts import AlertService, TrackedAlert
from followup.services.audit import write_audit_event
from followup.services.delivery import (
    DeliveryError,
    DeliveryProvider,
    HttpDeliveryProvider,
    LoggingDeliveryProvider,
    SendRequest,
)
from followup.services.dispatch import BatchReport, DispatchNotFoundError, DispatchService
from followup.services.questionnaire import QuestionnaireNotFoundError, QuestionnaireService
from followup.services.resolution import (
    AlertNotEligibleError,
    AlertNotFoundError,
    ResolutionNoteRequiredError,
    ResolutionService,
)
from followup.services.responses import ResponseService, ResponseValidationError

__all__ = [
    "AlertService",
    "TrackedAlert",
    "write_audit_event",
    "DeliveryError",
    "DeliveryProvider",
    "HttpDeliveryProvider",
    "LoggingDeliveryProvider",
    "SendRequest",
    "BatchReport",
    "DispatchNotFoundError",
    "DispatchService",
    "QuestionnaireNotFoundError",
    "QuestionnaireService",
    "AlertNotEligibleError",
    "AlertNotFoundError",
    "ResolutionNoteRequiredError",
    "ResolutionService",
    "ResponseService",
    "ResponseValidationError",
]
