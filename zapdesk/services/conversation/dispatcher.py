"""Outbound dispatcher - delivers replies and records them."""

from uuid import uuid4

import structlog

from zapdesk.models import Channel, Message, MessageSender
from zapdesk.services.channels.base import ChannelAdapter
from zapdesk.storage.base import StorageBackend

logger = structlog.get_logger()


class OutboundDispatcher:
    """Sends text through the gateway, then appends the message row.

    The row is written only after the gateway accepted the message, and it
    carries the gateway's message id so the echo webhook for it can be
    recognized. While the send is in flight the text is listed as pending on
    the conversation, which covers an echo that beats the row. A failed send
    raises DispatchError and writes no message.
    """

    def __init__(self, storage: StorageBackend, gateway: ChannelAdapter) -> None:
        self.storage = storage
        self.gateway = gateway

    async def dispatch(
        self,
        channel: Channel,
        phone: str,
        conversation_id: str,
        text: str,
        sender: MessageSender = MessageSender.AI,
    ) -> Message | None:
        if not text or not text.strip():
            logger.debug("Skipping empty outbound message", conversation_id=conversation_id)
            return None

        # The gateway may echo the send back before the row below exists
        await self.storage.add_pending_outbound(conversation_id, text)
        try:
            result = await self.gateway.send_text(channel.name, channel.token, phone, text)

            message = Message(
                id=str(uuid4()),
                conversation_id=conversation_id,
                sender=sender,
                content=text,
                external_id=result.get("message_id"),
            )
            await self.storage.append_message(message)
        finally:
            await self.storage.remove_pending_outbound(conversation_id, text)

        logger.info(
            "Reply dispatched",
            conversation_id=conversation_id,
            sender=sender.value,
            length=len(text),
        )
        return message
