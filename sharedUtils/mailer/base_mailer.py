"""
Mailer Interface

Abstract base class for email providers, so the API can swap Resend for
another provider (or a test double) without changing the contact route.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Union

from pydantic import BaseModel, Field


class EmailSendError(Exception):
    """The provider rejected the message or could not be reached."""


class EmailMessage(BaseModel):
    """One outbound email."""
    from_: str = Field(serialization_alias="from")
    to: Union[str, List[str]]
    subject: str
    html: str
    reply_to: Optional[str] = None

    @property
    def recipients(self) -> List[str]:
        return [self.to] if isinstance(self.to, str) else list(self.to)


class Mailer(ABC):
    """Abstract base class for email providers."""

    @abstractmethod
    def send(self, message: EmailMessage) -> Optional[str]:
        """
        Send one message.

        Returns:
            Provider message id, if the provider returns one

        Raises:
            EmailSendError: If the message could not be sent
        """
        pass

    def close(self) -> None:
        """Release provider resources (optional)."""
        pass
