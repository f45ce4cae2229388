"""Critical alert detection.

An alert is a completed response whose aggregate (mean) score is at or
below the critical threshold. Alerts are derived on read and never stored;
the individual answers at or below the threshold are attached as
annotations so the practitioner can see what drove the low score.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

from followup.dispatch.recipients import patient_name_from_email
from followup.utils.time import ensure_utc

logger = logging.getLogger(__name__)


@dataclass
class ScoredResponse:
    """A completed response as seen by the detector."""

    response_id: str
    pathology_label: str
    answers: Any
    average_score: Optional[float]
    submitted_at: Optional[datetime]
    prompts: Any = None
    score_total: Optional[int] = None
    recipient_email: Optional[str] = None
    comment: Optional[str] = None


@dataclass
class CriticalAnswer:
    """A single answer at or below the threshold (1-based index)."""

    index: int
    text: str
    score: int


@dataclass
class Alert:
    """A response that needs practitioner follow-up."""

    response_id: str
    pathology_label: str
    average_score: float
    score_total: Optional[int]
    submitted_at: Optional[datetime]
    recipient_email: Optional[str] = None
    patient_name: Optional[str] = None
    comment: Optional[str] = None
    critical_responses: list[CriticalAnswer] = field(default_factory=list)


def prompt_text(prompts: Any, index: int) -> str:
    """Text of the prompt at a 0-based index, or "Question N"."""
    fallback = f"Question {index + 1}"
    if not isinstance(prompts, list) or index >= len(prompts):
        return fallback

    prompt = prompts[index]
    if isinstance(prompt, dict):
        text = prompt.get("text")
    elif isinstance(prompt, str):
        text = prompt
    else:
        text = None

    if isinstance(text, str) and text.strip():
        return text
    return fallback


def critical_answers(answers: Any, prompts: Any, threshold: float) -> list[CriticalAnswer]:
    """Answers at or below the threshold, in prompt order.

    Malformed answer lists yield no critical answers.
    """
    if not isinstance(answers, list):
        return []

    critical = []
    for i, score in enumerate(answers):
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            continue
        if score <= threshold:
            critical.append(CriticalAnswer(index=i + 1, text=prompt_text(prompts, i), score=int(score)))
    return critical


def aggregate_score(response: ScoredResponse) -> Optional[float]:
    """Stored mean score, or the mean of the answers when missing."""
    if response.average_score is not None:
        return float(response.average_score)

    answers = response.answers
    if not isinstance(answers, list) or not answers:
        return None
    if any(isinstance(a, bool) or not isinstance(a, (int, float)) for a in answers):
        return None
    return sum(answers) / len(answers)


def is_critical(score: Optional[float], threshold: float) -> bool:
    return score is not None and score <= threshold


def detect_alerts(
    responses: Iterable[ScoredResponse],
    threshold: float,
    pathology: Optional[str] = None,
    since: Optional[datetime] = None,
) -> list[Alert]:
    """Derive alerts from completed responses.

    Args:
        responses: Completed responses to evaluate
        threshold: Critical score threshold (inclusive)
        pathology: Only keep responses with this label (case-insensitive)
        since: Only keep responses submitted at or after this instant

    Returns:
        Alerts, most recently submitted first
    """
    pathology_key = pathology.strip().lower() if pathology and pathology.strip() else None
    since = ensure_utc(since)

    alerts = []
    for response in responses:
        if pathology_key and (response.pathology_label or "").strip().lower() != pathology_key:
            continue

        submitted_at = ensure_utc(response.submitted_at)
        if since is not None and (submitted_at is None or submitted_at < since):
            continue

        score = aggregate_score(response)
        if score is None:
            logger.warning(f"Response {response.response_id} has no usable score, skipping")
            continue
        if not is_critical(score, threshold):
            continue

        alerts.append(
            Alert(
                response_id=response.response_id,
                pathology_label=response.pathology_label,
                average_score=score,
                score_total=response.score_total,
                submitted_at=submitted_at,
                recipient_email=response.recipient_email,
                patient_name=patient_name_from_email(response.recipient_email),
                comment=response.comment,
                critical_responses=critical_answers(response.answers, response.prompts, threshold),
            )
        )

    alerts.sort(
        key=lambda alert: alert.submitted_at.timestamp() if alert.submitted_at else float("-inf"),
        reverse=True,
    )
    return alerts
