"""Alert module for deriving critical responses."""

from followup.alerts.detector import Alert, CriticalAnswer, ScoredResponse, detect_alerts

__all__ = [
    "Alert",
    "CriticalAnswer",
    "ScoredResponse",
    "detect_alerts",
]
