"""Tests for delivery providers."""

import json

import httpx
import pytest

from followup.services import delivery
from followup.services.delivery import (
    DeliveryError,
    HttpDeliveryProvider,
    LoggingDeliveryProvider,
    PractitionerNotice,
    SendRequest,
    get_delivery_provider,
)


def make_provider(handler, api_key: str | None = "secret") -> HttpDeliveryProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpDeliveryProvider(
        base_url="https://mail.example.test/api/",
        api_key=api_key,
        timeout=2.0,
        client=client,
    )


class TestPayloads:
    """Tests for the request bodies sent to the delivery service."""

    def test_send_payload(self) -> None:
        """Test the send request serializes to the mail API payload."""
        request = SendRequest(patient_email="a@x.com", questionnaire_id="q-1", send_delay_days=0)

        assert request.to_payload() == {
            "patientEmail": "a@x.com",
            "questionnaireId": "q-1",
            "sendDelayDays": 0,
        }

    def test_reminder_flag(self) -> None:
        """Test reminders are flagged in the payload."""
        request = SendRequest(patient_email="a@x.com", questionnaire_id="q-1", reminder=True)
        assert request.to_payload()["reminder"] is True

    def test_notice_payload(self) -> None:
        """Test the practitioner notice serializes to the mail API payload."""
        notice = PractitionerNotice(
            practitioner_email="dr@x.com",
            practitioner_name="Dr X",
            dispatch_id="q-1",
            pathology_label="Knee arthroplasty",
            patient_email="a@x.com",
            average_score=1.6666,
            is_critical=True,
        )

        payload = notice.to_payload()

        assert payload["questionnaireId"] == "q-1"
        assert payload["averageScore"] == 1.67
        assert payload["isCritical"] is True


class TestLoggingProvider:
    """Tests for the simulated provider."""

    @pytest.mark.asyncio
    async def test_send_returns_simulated_id(self) -> None:
        """Test the logging provider returns a simulated message id."""
        provider = LoggingDeliveryProvider(from_email="noreply@example.com")

        result = await provider.send(SendRequest(patient_email="a@x.com", questionnaire_id="q-1"))

        assert result.provider_message_id.startswith("sim_")
        assert result.metadata["to"] == "a@x.com"


class TestHttpProvider:
    """Tests for the HTTP provider against a mocked transport."""

    @pytest.mark.asyncio
    async def test_successful_send(self) -> None:
        """Test a successful send posts with the bearer key."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "msg-42"})

        provider = make_provider(handler)
        result = await provider.send(
            SendRequest(patient_email="a@x.com", questionnaire_id="q-1", send_delay_days=0)
        )

        assert result.provider_message_id == "msg-42"
        assert seen["url"] == "https://mail.example.test/api/send-questionnaire"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["sendDelayDays"] == 0

    @pytest.mark.asyncio
    async def test_notification_endpoint(self) -> None:
        """Test practitioner notices use the notification endpoint."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            return httpx.Response(202, json={"messageId": "n-1"})

        provider = make_provider(handler, api_key=None)
        result = await provider.notify_practitioner(
            PractitionerNotice(
                practitioner_email="dr@x.com",
                practitioner_name=None,
                dispatch_id="q-1",
                pathology_label="Hip",
                patient_email=None,
                average_score=3.0,
            )
        )

        assert seen["path"] == "/api/notify-practitioner"
        assert result.provider_message_id == "n-1"

    @pytest.mark.asyncio
    async def test_error_message_from_body(self) -> None:
        """Test the error message is taken from the response body."""
        provider = make_provider(lambda request: httpx.Response(400, json={"error": "Invalid recipient"}))

        with pytest.raises(DeliveryError) as exc_info:
            await provider.send(SendRequest(patient_email="a@x.com", questionnaire_id="q-1"))

        assert exc_info.value.reason == "Invalid recipient"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code,reason",
        [
            (500, "Delivery service is unavailable"),
            (503, "Delivery service is unavailable"),
            (429, "Delivery service is rate limiting requests"),
            (403, "Delivery rejected (HTTP 403)"),
        ],
    )
    async def test_status_codes_without_body(self, status_code: int, reason: str) -> None:
        """Test readable reasons for error statuses without a body."""
        provider = make_provider(lambda request: httpx.Response(status_code, text="oops"))

        with pytest.raises(DeliveryError) as exc_info:
            await provider.send(SendRequest(patient_email="a@x.com", questionnaire_id="q-1"))

        assert exc_info.value.reason == reason

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Test a timeout becomes a delivery error."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        provider = make_provider(handler)

        with pytest.raises(DeliveryError) as exc_info:
            await provider.send(SendRequest(patient_email="a@x.com", questionnaire_id="q-1"))

        assert exc_info.value.reason == "Delivery service timed out"

    @pytest.mark.asyncio
    async def test_connection_failure(self) -> None:
        """Test a connection failure becomes a delivery error."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        provider = make_provider(handler)

        with pytest.raises(DeliveryError) as exc_info:
            await provider.send(SendRequest(patient_email="a@x.com", questionnaire_id="q-1"))

        assert exc_info.value.reason == "Delivery service unreachable: ConnectError"


class TestProviderSelection:
    """Tests for choosing a provider from configuration."""

    def test_logging_provider_without_endpoint(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the logging provider is used when no endpoint is set."""
        monkeypatch.setattr(delivery.settings, "delivery_endpoint_url", None)
        assert isinstance(get_delivery_provider(), LoggingDeliveryProvider)

    def test_http_provider_with_endpoint(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the HTTP provider is used when an endpoint is set."""
        monkeypatch.setattr(delivery.settings, "delivery_endpoint_url", "https://mail.example.test")
        monkeypatch.setattr(delivery.settings, "delivery_api_key", "k")

        provider = get_delivery_provider()

        assert isinstance(provider, HttpDeliveryProvider)
        assert provider.base_url == "https://mail.example.test"
        assert provider.api_key == "k"
