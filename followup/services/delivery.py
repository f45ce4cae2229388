"""Outbound delivery of questionnaire emails.

The transactional email service is an external collaborator. Providers
here turn a send request into a call to it and normalise the outcome into
either a DeliveryResult or a DeliveryError with a human-readable reason.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

import httpx

from followup.core.config import settings

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Raised when the delivery collaborator rejects or fails a send."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


@dataclass
class SendRequest:
    """Request to email a questionnaire link to one patient."""

    patient_email: str
    questionnaire_id: str
    send_delay_days: int = 0
    reminder: bool = False

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "patientEmail": self.patient_email,
            "questionnaireId": self.questionnaire_id,
            "sendDelayDays": self.send_delay_days,
        }
        if self.reminder:
            payload["reminder"] = True
        return payload


@dataclass
class PractitionerNotice:
    """New-response notification for the owning practitioner."""

    practitioner_email: str
    practitioner_name: str | None
    dispatch_id: str
    pathology_label: str
    patient_email: str | None
    average_score: float
    is_critical: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "practitionerEmail": self.practitioner_email,
            "practitionerName": self.practitioner_name,
            "questionnaireId": self.dispatch_id,
            "pathology": self.pathology_label,
            "patientEmail": self.patient_email,
            "averageScore": round(self.average_score, 2),
            "isCritical": self.is_critical,
        }


@dataclass
class DeliveryResult:
    """Successful delivery outcome."""

    provider_message_id: str
    metadata: dict[str, Any] = field(default_factory=dict)


class DeliveryProvider(ABC):
    """Abstract base class for delivery providers."""

    @abstractmethod
    async def send(self, request: SendRequest) -> DeliveryResult:
        """Send a questionnaire email.

        Raises DeliveryError on failure.
        """
        pass

    @abstractmethod
    async def notify_practitioner(self, notice: PractitionerNotice) -> DeliveryResult:
        """Tell a practitioner a patient has responded.

        Raises DeliveryError on failure.
        """
        pass


class LoggingDeliveryProvider(DeliveryProvider):
    """Simulated provider that only logs.

    Used when no delivery endpoint is configured (development and tests).
    """

    def __init__(self, from_email: str | None = None):
        self.from_email = from_email or settings.email_from

    async def send(self, request: SendRequest) -> DeliveryResult:
        kind = "reminder" if request.reminder else "questionnaire"
        logger.info(f"Sending {kind} {request.questionnaire_id} to {request.patient_email}")

        return DeliveryResult(
            provider_message_id=f"sim_{uuid4().hex[:16]}",
            metadata={"provider": "logging", "from": self.from_email, "to": request.patient_email},
        )

    async def notify_practitioner(self, notice: PractitionerNotice) -> DeliveryResult:
        logger.info(
            f"Notifying {notice.practitioner_email} of response to {notice.dispatch_id}"
        )

        return DeliveryResult(
            provider_message_id=f"sim_{uuid4().hex[:16]}",
            metadata={"provider": "logging", "to": notice.practitioner_email},
        )


class HttpDeliveryProvider(DeliveryProvider):
    """Provider that calls the delivery service over HTTP.

    Questionnaire sends are POSTed to ``{base_url}/send-questionnaire`` and
    notifications to ``{base_url}/notify-practitioner``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout if timeout is not None else settings.delivery_timeout_seconds
        self._client = client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, path: str, payload: dict[str, Any]) -> DeliveryResult:
        url = f"{self.base_url}/{path}"
        try:
            if self._client is not None:
                response = await self._client.post(
                    url, json=payload, headers=self._headers(), timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload, headers=self._headers())
        except httpx.TimeoutException as e:
            raise DeliveryError("Delivery service timed out") from e
        except httpx.HTTPError as e:
            raise DeliveryError(f"Delivery service unreachable: {e.__class__.__name__}") from e

        if response.status_code >= 400:
            raise DeliveryError(self._error_reason(response))

        body = self._json_body(response)
        message_id = body.get("id") or body.get("messageId") or f"http_{uuid4().hex[:16]}"
        return DeliveryResult(
            provider_message_id=str(message_id),
            metadata={"provider": "http", "status_code": response.status_code},
        )

    @staticmethod
    def _json_body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def _error_reason(self, response: httpx.Response) -> str:
        body = self._json_body(response)
        message = body.get("error") or body.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
        if response.status_code == 429:
            return "Delivery service is rate limiting requests"
        if response.status_code >= 500:
            return "Delivery service is unavailable"
        return f"Delivery rejected (HTTP {response.status_code})"

    async def send(self, request: SendRequest) -> DeliveryResult:
        return await self._post("send-questionnaire", request.to_payload())

    async def notify_practitioner(self, notice: PractitionerNotice) -> DeliveryResult:
        return await self._post("notify-practitioner", notice.to_payload())


def get_delivery_provider() -> DeliveryProvider:
    """Build the provider for the current configuration."""
    if settings.delivery_endpoint_url:
        return HttpDeliveryProvider(
            base_url=settings.delivery_endpoint_url,
            api_key=settings.delivery_api_key,
        )
    return LoggingDeliveryProvider()
