"""API tests for the critical alert queue."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from followup.models import Practitioner
from tests.conftest import create_test_token
from tests.factories import days_ago, make_response


class TestAlertEndpoints:
    """Tests for listing and triaging alerts."""

    @pytest.mark.asyncio
    async def test_list_alerts(
        self,
        async_client: AsyncClient,
        async_session: AsyncSession,
        practitioner: Practitioner,
        auth_headers: dict,
    ) -> None:
        """Test listing returns only critical responses with their details."""
        critical = await make_response(async_session, practitioner, [1, 2, 3])
        await make_response(async_session, practitioner, [5, 4, 5], recipient="fine@example.com")

        response = await async_client.get("/api/v1/alerts", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        alert = data[0]
        assert alert["response_id"] == critical.id
        assert alert["patient_name"] == "Jane Doe"
        assert alert["resolution_status"] == "new"
        assert [c["index"] for c in alert["critical_responses"]] == [1, 2]

    @pytest.mark.asyncio
    async def test_filters(
        self,
        async_client: AsyncClient,
        async_session: AsyncSession,
        practitioner: Practitioner,
        auth_headers: dict,
    ) -> None:
        """Test the pathology and lookback query filters."""
        hip = await make_response(
            async_session, practitioner, [1, 1, 1], recipient="a@example.com", pathology_label="Hip replacement"
        )
        await make_response(async_session, practitioner, [1, 1, 1], recipient="b@example.com")
        await make_response(
            async_session,
            practitioner,
            [1, 1, 1],
            recipient="c@example.com",
            pathology_label="Hip replacement",
            submitted_at=days_ago(45),
        )

        response = await async_client.get(
            "/api/v1/alerts",
            params={"pathology": "hip replacement", "lookback_days": 30},
            headers=auth_headers,
        )

        assert [a["response_id"] for a in response.json()] == [hip.id]

    @pytest.mark.asyncio
    async def test_take_action_then_resolve(
        self,
        async_client: AsyncClient,
        async_session: AsyncSession,
        practitioner: Practitioner,
        auth_headers: dict,
    ) -> None:
        """Test the full take-action then resolve workflow."""
        response = await make_response(async_session, practitioner, [1, 1, 2])

        taken = await async_client.post(
            f"/api/v1/alerts/{response.id}/take-action", headers=auth_headers
        )
        assert taken.status_code == 200
        assert taken.json()["status"] == "in-progress"
        assert taken.json()["assigned_to"] == "Dr Claire Martin"

        resolved = await async_client.post(
            f"/api/v1/alerts/{response.id}/resolve",
            json={"note": "Physio appointment booked"},
            headers=auth_headers,
        )
        assert resolved.status_code == 200
        assert resolved.json()["status"] == "resolved"
        assert resolved.json()["resolution_note"] == "Physio appointment booked"

        state = await async_client.get(
            f"/api/v1/alerts/{response.id}/resolution", headers=auth_headers
        )
        assert state.json()["status"] == "resolved"

        counts = await async_client.get("/api/v1/alerts/counts", headers=auth_headers)
        assert counts.json() == {"total": 1, "new": 0, "in_progress": 0, "resolved": 1}

        filtered = await async_client.get(
            "/api/v1/alerts", params={"status": "resolved"}, headers=auth_headers
        )
        assert [a["response_id"] for a in filtered.json()] == [response.id]

    @pytest.mark.asyncio
    async def test_resolve_requires_note(
        self,
        async_client: AsyncClient,
        async_session: AsyncSession,
        practitioner: Practitioner,
        auth_headers: dict,
    ) -> None:
        """Test resolving with a blank note is rejected."""
        response = await make_response(async_session, practitioner, [1, 1, 1])

        resolved = await async_client.post(
            f"/api/v1/alerts/{response.id}/resolve",
            json={"note": "  "},
            headers=auth_headers,
        )

        assert resolved.status_code == 400

    @pytest.mark.asyncio
    async def test_non_critical_response(
        self,
        async_client: AsyncClient,
        async_session: AsyncSession,
        practitioner: Practitioner,
        auth_headers: dict,
    ) -> None:
        """Test acting on a non-critical response is a conflict."""
        response = await make_response(async_session, practitioner, [4, 4, 4])

        taken = await async_client.post(
            f"/api/v1/alerts/{response.id}/take-action", headers=auth_headers
        )

        assert taken.status_code == 409

    @pytest.mark.asyncio
    async def test_untouched_alert_reads_new(
        self,
        async_client: AsyncClient,
        async_session: AsyncSession,
        practitioner: Practitioner,
        auth_headers: dict,
    ) -> None:
        """Test an untouched alert reads as new."""
        response = await make_response(async_session, practitioner, [1, 1, 1])

        state = await async_client.get(
            f"/api/v1/alerts/{response.id}/resolution", headers=auth_headers
        )

        assert state.status_code == 200
        assert state.json()["status"] == "new"

    @pytest.mark.asyncio
    async def test_unknown_alert(self, async_client: AsyncClient, auth_headers: dict) -> None:
        """Test acting on an unknown alert is not found."""
        taken = await async_client.post(
            "/api/v1/alerts/00000000-0000-0000-0000-000000000000/take-action",
            headers=auth_headers,
        )

        assert taken.status_code == 404

    @pytest.mark.asyncio
    async def test_resolution_of_unknown_or_foreign_response(
        self,
        async_client: AsyncClient,
        async_session: AsyncSession,
        practitioner: Practitioner,
        other_practitioner: Practitioner,
        auth_headers: dict,
    ) -> None:
        """Test resolution state is only readable by the owning practitioner."""
        response = await make_response(async_session, practitioner, [1, 1, 1])
        other_headers = {"Authorization": f"Bearer {create_test_token(other_practitioner)}"}

        foreign = await async_client.get(
            f"/api/v1/alerts/{response.id}/resolution", headers=other_headers
        )
        unknown = await async_client.get(
            "/api/v1/alerts/00000000-0000-0000-0000-000000000000/resolution",
            headers=auth_headers,
        )

        assert foreign.status_code == 404
        assert unknown.status_code == 404
