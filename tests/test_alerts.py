"""Tests for critical alert detection and the alert queue."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from followup.alerts.detector import (
    ScoredResponse,
    critical_answers,
    detect_alerts,
    prompt_text,
)
from followup.models import Practitioner, ResolutionStatus
from followup.services.alerts import AlertService
from followup.services.resolution import ResolutionService
from tests.factories import days_ago, make_response

PROMPTS = [
    {"text": "Pain"},
    {"text": "Sleep"},
    {"text": "Mobility"},
    {"text": "Mood"},
    {"text": "Appetite"},
]


def scored(
    answers,
    response_id="r-1",
    average=None,
    pathology="Knee arthroplasty",
    submitted_at=None,
    prompts=PROMPTS,
    recipient="jane.doe@example.com",
) -> ScoredResponse:
    if average is None and isinstance(answers, list) and answers:
        average = sum(answers) / len(answers)
    return ScoredResponse(
        response_id=response_id,
        pathology_label=pathology,
        answers=answers,
        average_score=average,
        submitted_at=submitted_at or datetime.now(timezone.utc),
        prompts=prompts,
        recipient_email=recipient,
    )


class TestDetectAlerts:
    """Tests for the pure detector."""

    def test_mixed_answers_above_threshold_is_not_an_alert(self) -> None:
        """Test only the average decides, not individual low answers."""
        # Mean 3.4
        assert detect_alerts([scored([5, 1, 4, 2, 5])], threshold=2) == []

    def test_low_aggregate_is_an_alert(self) -> None:
        """Test a low average raises an alert listing the critical answers."""
        alerts = detect_alerts([scored([1, 2, 2, 3, 1])], threshold=2)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.average_score == pytest.approx(1.8)
        assert [(c.index, c.text, c.score) for c in alert.critical_responses] == [
            (1, "Pain", 1),
            (2, "Sleep", 2),
            (3, "Mobility", 2),
            (5, "Appetite", 1),
        ]

    def test_threshold_is_inclusive(self) -> None:
        """Test an average equal to the threshold is an alert."""
        assert len(detect_alerts([scored([2, 2, 2])], threshold=2)) == 1
        assert detect_alerts([scored([3, 2, 2])], threshold=2) == []

    def test_threshold_is_injected(self) -> None:
        """Test the threshold is a parameter rather than a constant."""
        response = scored([3, 3, 3])
        assert detect_alerts([response], threshold=2) == []
        assert len(detect_alerts([response], threshold=3)) == 1

    def test_patient_name_is_derived(self) -> None:
        """Test the patient name comes from the recipient address."""
        alerts = detect_alerts([scored([1, 1, 1])], threshold=2)
        assert alerts[0].patient_name == "Jane Doe"

    def test_pathology_filter_is_case_insensitive(self) -> None:
        """Test the pathology filter ignores case."""
        responses = [
            scored([1, 1, 1], response_id="knee"),
            scored([1, 1, 1], response_id="hip", pathology="Hip replacement"),
        ]

        alerts = detect_alerts(responses, threshold=2, pathology="  HIP replacement ")

        assert [a.response_id for a in alerts] == ["hip"]

    def test_lookback_window(self) -> None:
        """Test responses older than the lookback window are dropped."""
        now = datetime.now(timezone.utc)
        responses = [
            scored([1, 1, 1], response_id="recent", submitted_at=now - timedelta(days=2)),
            scored([1, 1, 1], response_id="old", submitted_at=now - timedelta(days=40)),
        ]

        alerts = detect_alerts(responses, threshold=2, since=now - timedelta(days=30))

        assert [a.response_id for a in alerts] == ["recent"]

    def test_most_recent_first(self) -> None:
        """Test alerts are ordered newest first."""
        now = datetime.now(timezone.utc)
        responses = [
            scored([1, 1, 1], response_id="older", submitted_at=now - timedelta(days=3)),
            scored([1, 1, 1], response_id="newest", submitted_at=now),
            scored([1, 1, 1], response_id="middle", submitted_at=now - timedelta(days=1)),
        ]

        alerts = detect_alerts(responses, threshold=2)

        assert [a.response_id for a in alerts] == ["newest", "middle", "older"]

    def test_malformed_answers_keep_alert_without_annotations(self) -> None:
        """Test unreadable answers keep the alert but list no critical answers."""
        alerts = detect_alerts([scored("garbled", average=1.5)], threshold=2)

        assert len(alerts) == 1
        assert alerts[0].critical_responses == []

    def test_unscorable_response_is_skipped(self) -> None:
        """Test a response with no score and no answers is skipped."""
        assert detect_alerts([scored("garbled", average=None)], threshold=2) == []

    def test_missing_average_is_computed_from_answers(self) -> None:
        """Test the average is computed when it was not stored."""
        response = scored([1, 2, 1])
        response.average_score = None

        alerts = detect_alerts([response], threshold=2)

        assert alerts[0].average_score == pytest.approx(4 / 3)


class TestPromptText:
    """Tests for prompt labels on critical answers."""

    def test_falls_back_when_prompts_missing(self) -> None:
        """Test a numbered label is used when the prompt is missing."""
        assert prompt_text(None, 0) == "Question 1"
        assert prompt_text([{"text": "Pain"}], 3) == "Question 4"

    def test_falls_back_on_blank_or_malformed_prompt(self) -> None:
        """Test blank or non-dict prompts fall back to a numbered label."""
        assert prompt_text([{"text": "   "}], 0) == "Question 1"
        assert prompt_text([42], 0) == "Question 1"

    def test_plain_string_prompts(self) -> None:
        """Test plain string prompts are used as their own text."""
        assert prompt_text(["Pain"], 0) == "Pain"

    def test_non_numeric_answers_are_ignored(self) -> None:
        """Test non-numeric answers are never flagged as critical."""
        critical = critical_answers([1, "x", None, 2], None, threshold=2)
        assert [(c.index, c.text) for c in critical] == [(1, "Question 1"), (4, "Question 4")]


class TestAlertService:
    """Tests for the practitioner alert queue."""

    @pytest.mark.asyncio
    async def test_lists_only_critical_responses(
        self, async_session: AsyncSession, practitioner: Practitioner
    ) -> None:
        """Test only responses at or below the threshold are listed."""
        critical = await make_response(async_session, practitioner, [1, 2, 1])
        await make_response(async_session, practitioner, [4, 5, 4], recipient="ok@example.com")

        alerts = await AlertService(async_session).list_alerts(practitioner.id)

        assert [item.alert.response_id for item in alerts] == [critical.id]
        assert alerts[0].status == ResolutionStatus.NEW
        assert alerts[0].alert.critical_responses[0].text == "How is your pain today?"

    @pytest.mark.asyncio
    async def test_scoped_to_owner(
        self,
        async_session: AsyncSession,
        practitioner: Practitioner,
        other_practitioner: Practitioner,
    ) -> None:
        """Test practitioners never see each other's alerts."""
        await make_response(async_session, other_practitioner, [1, 1, 1])

        assert await AlertService(async_session).list_alerts(practitioner.id) == []

    @pytest.mark.asyncio
    async def test_attaches_resolution_and_filters_by_status(
        self, async_session: AsyncSession, practitioner: Practitioner
    ) -> None:
        """Test alerts carry their resolution and filter by its status."""
        first = await make_response(async_session, practitioner, [1, 1, 1], submitted_at=days_ago(1))
        second = await make_response(async_session, practitioner, [2, 1, 2], recipient="b@example.com")
        await ResolutionService(async_session).take_action(first.id, practitioner)

        service = AlertService(async_session)
        in_progress = await service.list_alerts(practitioner.id, status=ResolutionStatus.IN_PROGRESS)
        new = await service.list_alerts(practitioner.id, status=ResolutionStatus.NEW)

        assert [item.alert.response_id for item in in_progress] == [first.id]
        assert in_progress[0].resolution.assigned_to == "Dr Claire Martin"
        assert [item.alert.response_id for item in new] == [second.id]

    @pytest.mark.asyncio
    async def test_lookback_filter(
        self, async_session: AsyncSession, practitioner: Practitioner
    ) -> None:
        """Test the lookback filter applies to stored responses."""
        await make_response(async_session, practitioner, [1, 1, 1], submitted_at=days_ago(60))
        recent = await make_response(
            async_session, practitioner, [1, 1, 1], recipient="b@example.com", submitted_at=days_ago(5)
        )

        alerts = await AlertService(async_session).list_alerts(practitioner.id, lookback_days=30)

        assert [item.alert.response_id for item in alerts] == [recent.id]

    @pytest.mark.asyncio
    async def test_counts(self, async_session: AsyncSession, practitioner: Practitioner) -> None:
        """Test alert counts per resolution status."""
        first = await make_response(async_session, practitioner, [1, 1, 1])
        second = await make_response(async_session, practitioner, [1, 2, 1], recipient="b@example.com")
        await make_response(async_session, practitioner, [1, 1, 2], recipient="c@example.com")
        await make_response(async_session, practitioner, [5, 5, 5], recipient="d@example.com")

        resolution = ResolutionService(async_session)
        await resolution.take_action(first.id, practitioner)
        await resolution.resolve(second.id, practitioner, "Called the patient")

        counts = await AlertService(async_session).get_alert_counts(practitioner.id)

        assert counts == {"total": 3, "new": 1, "in-progress": 1, "resolved": 1}
