"""
Email dispatch capability interface.
Lets the lifecycle code send invoices and warnings without knowing the provider.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional


class Mailer(ABC):
    """
    Interface for outbound email.

    Implementations:
    - LogMailer: Writes the message to the log (development, tests)
    - ResendMailer: Delivers through the Resend HTTP API
    """

    @abstractmethod
    async def send(self, template: str, recipient: str, data: Mapping[str, Any]) -> Optional[str]:
        """
        Render and send one templated message.

        Args:
            template: Template name, e.g. "booking_invoice"
            recipient: Destination address
            data: Template variables

        Returns:
            Provider message id, if the provider returns one

        Raises:
            MailerError: The message was not accepted by the provider
        """
        pass

    async def close(self) -> None:
        """Release provider connections."""
        pass
