"""Human/AI ownership of a conversation."""

from uuid import uuid4

import structlog

from zapdesk.core.exceptions import ConversationNotFound
from zapdesk.models import Conversation, Message, MessageSender, OwnershipState
from zapdesk.services.conversation.dispatcher import OutboundDispatcher
from zapdesk.storage.base import StorageBackend

logger = structlog.get_logger()


class HandoffService:
    """State machine over ``Conversation.human_active``.

    AI_ACTIVE -> HUMAN_ACTIVE on any operator message (sent from the dashboard
    or typed on the business phone) or an explicit assume. HUMAN_ACTIVE ->
    AI_ACTIVE only on an explicit release; there is no timeout.
    """

    def __init__(self, storage: StorageBackend, dispatcher: OutboundDispatcher) -> None:
        self.storage = storage
        self.dispatcher = dispatcher

    async def _get(self, conversation_id: str) -> Conversation:
        conversation = await self.storage.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFound(conversation_id)
        return conversation

    async def assume(self, conversation_id: str) -> Conversation:
        """Hand the conversation to a human operator."""
        await self._get(conversation_id)
        conversation = await self.storage.set_human_active(conversation_id, True)
        logger.info("Operator assumed conversation", conversation_id=conversation_id)
        return conversation

    async def release(self, conversation_id: str) -> Conversation:
        """Give the conversation back to the AI."""
        await self._get(conversation_id)
        conversation = await self.storage.set_human_active(conversation_id, False)
        logger.info("Conversation released to AI", conversation_id=conversation_id)
        return conversation

    async def record_operator_echo(
        self,
        conversation: Conversation,
        content: str,
        external_id: str,
    ) -> OwnershipState:
        """Record a message the operator typed on the phone and pause the AI."""
        await self.storage.append_message(
            Message(
                id=str(uuid4()),
                conversation_id=conversation.id,
                sender=MessageSender.OPERATOR,
                content=content,
                external_id=external_id,
            )
        )
        if not conversation.human_active:
            await self.storage.set_human_active(conversation.id, True)
            logger.info("Operator replied from the phone, AI paused", conversation_id=conversation.id)
        return OwnershipState.HUMAN_ACTIVE

    async def send_operator_message(self, conversation_id: str, text: str) -> Message | None:
        """Send a dashboard-typed message to the contact and pause the AI."""
        conversation = await self._get(conversation_id)

        channel = await self.storage.get_channel(conversation.channel_id)
        contact = await self.storage.get_contact(conversation.contact_id)
        if channel is None or contact is None:
            raise ConversationNotFound(conversation_id)

        # Take ownership first so an in-flight debounce cannot reply over the operator
        if not conversation.human_active:
            await self.storage.set_human_active(conversation_id, True)

        return await self.dispatcher.dispatch(
            channel=channel,
            phone=contact.phone,
            conversation_id=conversation_id,
            text=text,
            sender=MessageSender.OPERATOR,
        )
