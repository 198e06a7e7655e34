"""
Notification Service using EmailJS

DESIGN DECISION: We send through the EmailJS REST API because:
1. The household already designs its email templates there
2. No SMTP server or mailbox credentials to manage
3. One HTTP call per recipient

This service handles:
1. Building the template parameters from a month report
2. Sending one email per recipient
3. Reporting success or failure for each recipient separately

CRITICAL: A failed delivery never raises out of send(). The closure it
reports on is already committed; the caller gets one DeliveryResult per
recipient and decides what to tell the operator.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

import requests
from pydantic import BaseModel, Field
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from coloc_ledger.config import EmailJSSettings, get_settings
from coloc_ledger.errors import ExternalServiceError
from coloc_ledger.services.export.report import MonthReport


class Recipient(BaseModel):
    """Someone the month summary is sent to."""

    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class DeliveryResult(BaseModel):
    """Outcome of sending the summary to one recipient."""

    recipient: Recipient
    success: bool
    error_message: Optional[str] = None


class NotificationSenderInterface(ABC):
    """Sends a month summary to members."""

    @abstractmethod
    def send(
        self,
        summary: MonthReport,
        recipients: Iterable[Recipient],
    ) -> list[DeliveryResult]:
        """
        Deliver the summary to every recipient.

        Returns:
            One result per recipient, in order
        """
        pass


class EmailJSNotificationService(NotificationSenderInterface):
    """
    EmailJS implementation of the notification sender.

    The EmailJS template is expected to use: to_name, to_email, subject,
    month, message.
    """

    SERVICE_NAME = "emailjs"

    def __init__(
        self,
        settings: Optional[EmailJSSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the sender.

        Args:
            settings: EmailJS credentials. If None, loaded from the environment.
            session: HTTP session (injectable for tests)
        """
        self._settings = settings or get_settings().emailjs
        self._session = session or requests.Session()

    def _payload(self, summary: MonthReport, recipient: Recipient) -> dict:
        payload = {
            "service_id": self._settings.service_id,
            "template_id": self._settings.template_id,
            "user_id": self._settings.public_key,
            "template_params": {
                "to_name": recipient.name,
                "to_email": recipient.email,
                "subject": summary.title,
                "month": summary.month_key,
                "message": summary.render_text(),
            },
        }
        if self._settings.private_key is not None:
            payload["accessToken"] = self._settings.private_key.get_secret_value()
        return payload

    @retry(
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _post(self, payload: dict) -> requests.Response:
        return self._session.post(
            self._settings.api_url,
            json=payload,
            timeout=self._settings.timeout_seconds,
        )

    def deliver(self, summary: MonthReport, recipient: Recipient) -> None:
        """
        Send to a single recipient.

        Raises:
            ExternalServiceError: If EmailJS refuses the request or is unreachable
        """
        try:
            response = self._post(self._payload(summary, recipient))
        except requests.RequestException as e:
            raise ExternalServiceError(
                self.SERVICE_NAME,
                f"Request failed: {e}",
                recipient=recipient.email,
            )

        if response.status_code != 200:
            raise ExternalServiceError(
                self.SERVICE_NAME,
                f"HTTP {response.status_code}: {response.text.strip()[:200]}",
                recipient=recipient.email,
            )

    def send(
        self,
        summary: MonthReport,
        recipients: Iterable[Recipient],
    ) -> list[DeliveryResult]:
        results = []
        for recipient in recipients:
            try:
                self.deliver(summary, recipient)
                results.append(DeliveryResult(recipient=recipient, success=True))
            except ExternalServiceError as e:
                results.append(DeliveryResult(
                    recipient=recipient,
                    success=False,
                    error_message=e.message,
                ))
        return results
