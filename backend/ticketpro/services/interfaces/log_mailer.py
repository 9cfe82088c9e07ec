"""
Log-only mailer - no provider.
"""

from typing import Any, Mapping, Optional

from ticketpro.core.logging import get_logger
from ticketpro.services.email_templates import render
from ticketpro.services.interfaces.mailer import Mailer

logger = get_logger(__name__)


class LogMailer(Mailer):
    """
    Renders the message and logs it instead of sending.

    Use when:
    - Running locally without provider credentials
    - Staging environments that must never email customers
    """

    async def send(self, template: str, recipient: str, data: Mapping[str, Any]) -> Optional[str]:
        subject, _ = render(template, data)
        logger.info("email_logged", template=template, recipient=recipient, subject=subject)
        return None
