"""Abstract base class for channel adapters."""

from abc import ABC, abstractmethod
from typing import Any

from zapdesk.models import InboundEvent


class ChannelAdapter(ABC):
    """Abstract base class for messaging gateway adapters.

    The pipeline only needs three things from a gateway: turning its webhook
    into an InboundEvent, sending text, and downloading media.
    """

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Get the channel name identifier."""
        ...

    @abstractmethod
    def parse_webhook(self, payload: dict[str, Any]) -> InboundEvent | None:
        """Parse incoming webhook payload into a normalized event.

        Args:
            payload: Raw webhook payload from the gateway

        Returns:
            InboundEvent, or None if the event is not a direct new message

        Raises:
            InvalidWebhookPayload: If a message event is malformed
        """
        ...

    @abstractmethod
    async def send_text(
        self,
        instance_name: str,
        token: str,
        recipient: str,
        text: str,
    ) -> dict[str, Any]:
        """Send a text message through a gateway instance.

        Args:
            instance_name: Gateway instance (channel) name
            token: Instance API key
            recipient: Recipient phone number
            text: Message text

        Returns:
            Response dict; ``message_id`` holds the gateway id when known

        Raises:
            DispatchError: If the gateway did not accept the message
        """
        ...

    @abstractmethod
    async def fetch_media(self, instance_name: str, message_id: str) -> bytes:
        """Download the raw media attached to an inbound message.

        Raises:
            MediaFetchError: If the media could not be retrieved
        """
        ...
