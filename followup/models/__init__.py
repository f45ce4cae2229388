"""Database models for the follow-up dispatch engine."""

from followup.models.audit_event import ActorType, AuditEvent
from followup.models.dispatch import Dispatch, DispatchStatus, PatientResponse
from followup.models.practitioner import Practitioner
from followup.models.questionnaire import QuestionnaireDefinition
from followup.models.resolution import AlertResolution, ResolutionStatus

__all__ = [
    # Accounts
    "Practitioner",
    # Questionnaires
    "QuestionnaireDefinition",
    # Dispatch lifecycle
    "Dispatch",
    "DispatchStatus",
    "PatientResponse",
    # Alerts
    "AlertResolution",
    "ResolutionStatus",
    # Audit
    "AuditEvent",
    "ActorType",
]
