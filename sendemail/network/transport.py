"""
Mail transport interface.

The engine hands fully resolved messages to a MailTransport and only reads
back a delivery identifier, so tests and alternative backends can plug in
without knowing about SMTP.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from sendemail.models import EmailMessage


@dataclass(slots=True)
class DeliveryInfo:
    """What the transport reports back after a successful send."""
    message_id: str
    accepted: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)


class MailTransport(ABC):
    """Interface for delivering email messages."""

    @property
    def sender_address(self) -> Optional[str]:
        """Address of the authenticated user, used as the default From."""
        return None

    @abstractmethod
    def send(self, message: EmailMessage) -> DeliveryInfo:
        """
        Deliver one message.

        Args:
            message: The fully resolved message.

        Returns:
            Delivery information including the message id.

        Raises:
            Exception: Any transport-level failure.
        """
        pass

    def verify(self) -> bool:
        """Check that the transport can reach its server."""
        return True

    def close(self) -> None:
        """Release any held connection."""
        pass
