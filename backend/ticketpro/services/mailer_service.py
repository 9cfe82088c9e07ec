"""
Resend-backed mailer.
Implements the Mailer interface over the Resend HTTP API using httpx.

Failure handling:
  Any non-2xx answer or transport error becomes MailerError. The caller
  (side_effects.dispatch_pending_emails) records the failure on the outbox
  row and the periodic job retries it; nothing here retries on its own.
"""

from typing import Any, Mapping, Optional

import httpx

from ticketpro.core.config import get_settings
from ticketpro.core.errors import MailerError
from ticketpro.core.logging import get_logger
from ticketpro.services.email_templates import render
from ticketpro.services.interfaces.mailer import Mailer

logger = get_logger(__name__)
settings = get_settings()


class ResendMailer(Mailer):
    """
    Delivers email through Resend.

    Use when:
    - RESEND_API_KEY is configured
    - Customers should actually receive invoices
    """

    def __init__(self, api_key: str, sender: str, client: Optional[httpx.AsyncClient] = None):
        if not api_key:
            raise ValueError("Resend API key not configured")
        self.sender = sender
        self.client = client or httpx.AsyncClient(
            timeout=settings.MAIL_TIMEOUT_SECONDS,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    async def send(self, template: str, recipient: str, data: Mapping[str, Any]) -> Optional[str]:
        subject, html = render(template, data)
        try:
            response = await self.client.post(
                settings.RESEND_API_URL,
                json={"from": self.sender, "to": [recipient], "subject": subject, "html": html},
            )
        except httpx.HTTPError as e:
            raise MailerError(f"Email provider unreachable: {e}") from e

        if response.status_code >= 300:
            raise MailerError(f"Failed to send email ({response.status_code}): {response.text[:300]}")

        message_id = response.json().get("id")
        logger.info("email_sent", template=template, recipient=recipient, message_id=message_id)
        return message_id

    async def close(self) -> None:
        await self.client.aclose()
