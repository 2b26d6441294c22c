"""Inbound pipeline - wires normalization, gating, debounce and reply together."""

from dataclasses import dataclass
from enum import Enum
from uuid import uuid4

import structlog

from zapdesk.core.config import settings
from zapdesk.core.exceptions import AppException, ChannelNotFound
from zapdesk.models import (
    Agent,
    BusinessProfile,
    Channel,
    Conversation,
    InboundEvent,
    Message,
    MessageSender,
)
from zapdesk.services.conversation.debounce import DebounceCoordinator
from zapdesk.services.conversation.dispatcher import OutboundDispatcher
from zapdesk.services.conversation.handoff import HandoffService
from zapdesk.services.conversation.responder import ResponseGenerator
from zapdesk.services.media.extractor import ContentExtractor
from zapdesk.services.schedule.business_hours import BusinessHoursGate
from zapdesk.storage.base import StorageBackend

logger = structlog.get_logger()


class PipelineOutcome(str, Enum):
    """How an inbound event was handled."""

    DUPLICATE = "duplicate"  # Redelivery of a message id we already stored
    OWN_ECHO = "own_echo"  # Gateway echo of a message we sent
    OPERATOR_ECHO = "operator_echo"  # Operator typed on the business phone
    HUMAN_ACTIVE = "human_active"
    OFFLINE = "offline"
    FALLBACK = "fallback"
    BUFFERED = "buffered"  # Waiting for the debounce window
    SUPERSEDED = "superseded"  # A later fragment owns the reply
    UNANSWERED = "unanswered"  # Generation produced nothing
    REPLIED = "replied"


@dataclass
class PendingFlush:
    """Everything the delayed half of the pipeline needs after the quiet window."""

    conversation_id: str
    token: int
    channel: Channel
    phone: str
    agent: Agent | None
    profile: BusinessProfile


@dataclass
class ReceiveResult:
    outcome: PipelineOutcome
    conversation_id: str
    pending: PendingFlush | None = None


class InboundPipeline:
    """Turns inbound gateway events into at most one reply per burst.

    ``receive`` runs while the webhook request is open: it persists the
    fragment and writes the debounce buffer. ``complete`` is the delayed
    continuation that waits out the window and replies if it owns the flush.
    """

    def __init__(
        self,
        storage: StorageBackend,
        extractor: ContentExtractor,
        debounce: DebounceCoordinator,
        responder: ResponseGenerator,
        dispatcher: OutboundDispatcher,
        handoff: HandoffService,
        hours_gate: BusinessHoursGate | None = None,
    ) -> None:
        self.storage = storage
        self.extractor = extractor
        self.debounce = debounce
        self.responder = responder
        self.dispatcher = dispatcher
        self.handoff = handoff
        self.hours_gate = hours_gate or BusinessHoursGate()

    async def _append(
        self,
        conversation: Conversation,
        sender: MessageSender,
        content: str,
        external_id: str | None = None,
    ) -> Message:
        return await self.storage.append_message(
            Message(
                id=str(uuid4()),
                conversation_id=conversation.id,
                sender=sender,
                content=content,
                external_id=external_id,
            )
        )

    async def receive(self, event: InboundEvent) -> ReceiveResult:
        """Persist an inbound event and decide whether it enters the debounce.

        Raises:
            ChannelNotFound: If the event's gateway instance is unknown
            DispatchError: If an offline/fallback reply could not be sent
        """
        log = logger.bind(instance=event.channel_name, message_id=event.message_id)

        channel = await self.storage.get_channel_by_name(event.channel_name)
        if channel is None:
            raise ChannelNotFound(event.channel_name)

        tenant = await self.storage.get_tenant(channel.tenant_id)
        profile = tenant.profile if tenant else BusinessProfile()
        agent = await self.storage.get_agent(channel.agent_id) if channel.agent_id else None

        # The push name on our own messages is the business, not the contact
        contact = await self.storage.upsert_contact(
            tenant_id=channel.tenant_id,
            phone=event.phone,
            name="" if event.from_me else event.display_name,
        )
        conversation = await self.storage.upsert_conversation(
            tenant_id=channel.tenant_id,
            contact_id=contact.id,
            channel_id=channel.id,
        )
        log = log.bind(conversation_id=conversation.id)

        known = await self.storage.find_message_by_external_id(conversation.id, event.message_id)
        if known is not None:
            outcome = PipelineOutcome.OWN_ECHO if event.from_me else PipelineOutcome.DUPLICATE
            log.info("Ignoring already recorded message", outcome=outcome.value)
            return ReceiveResult(outcome, conversation.id)

        if event.from_me and event.text is not None and event.text in conversation.pending_outbound:
            log.info("Ignoring echo of an in-flight send", outcome=PipelineOutcome.OWN_ECHO.value)
            return ReceiveResult(PipelineOutcome.OWN_ECHO, conversation.id)

        if event.from_me:
            await self.handoff.record_operator_echo(conversation, event.placeholder(), event.message_id)
            return ReceiveResult(PipelineOutcome.OPERATOR_ECHO, conversation.id)

        if conversation.human_active:
            await self._append(conversation, MessageSender.USER, event.placeholder(), event.message_id)
            log.info("Human attendance active, skipping AI")
            return ReceiveResult(PipelineOutcome.HUMAN_ACTIVE, conversation.id)

        if not self.hours_gate.is_open_for(profile):
            await self._append(conversation, MessageSender.USER, event.placeholder(), event.message_id)
            log.info("Outside business hours, sending offline message")
            await self.dispatcher.dispatch(channel, contact.phone, conversation.id, profile.offline_message)
            return ReceiveResult(PipelineOutcome.OFFLINE, conversation.id)

        extracted = await self.extractor.extract(event, agent)
        if extracted.is_fallback:
            await self._append(
                conversation,
                MessageSender.SYSTEM,
                f"Could not read {event.message_type.value} message ({extracted.fallback_reason})",
                event.message_id,
            )
            fallback_message = profile.fallback_message or settings.fallback_message
            await self.dispatcher.dispatch(channel, contact.phone, conversation.id, fallback_message)
            return ReceiveResult(PipelineOutcome.FALLBACK, conversation.id)

        # Timeline first: the dashboard shows the fragment whatever the debounce decides
        await self._append(conversation, MessageSender.USER, extracted.text, event.message_id)

        token = await self.debounce.submit(conversation.id, extracted.text)
        pending = PendingFlush(
            conversation_id=conversation.id,
            token=token,
            channel=channel,
            phone=contact.phone,
            agent=agent,
            profile=profile,
        )
        return ReceiveResult(PipelineOutcome.BUFFERED, conversation.id, pending)

    async def complete(self, pending: PendingFlush) -> PipelineOutcome:
        """Wait out the debounce window and reply if this invocation owns the flush.

        Raises:
            DispatchError: If the generated reply could not be sent
        """
        text = await self.debounce.wait_and_flush(pending.conversation_id, pending.token)
        if text is None:
            return PipelineOutcome.SUPERSEDED

        reply = await self.responder.generate(
            pending.conversation_id,
            text,
            agent=pending.agent,
            profile=pending.profile,
        )
        if reply is None:
            return PipelineOutcome.UNANSWERED

        await self.dispatcher.dispatch(pending.channel, pending.phone, pending.conversation_id, reply)
        return PipelineOutcome.REPLIED

    async def run_in_background(self, pending: PendingFlush) -> None:
        """Continuation scheduled after the webhook response."""
        try:
            outcome = await self.complete(pending)
        except AppException as e:
            logger.error(
                "Debounced reply failed",
                conversation_id=pending.conversation_id,
                code=e.code,
                error=e.message,
                details=e.details,
            )
            return
        logger.info("Debounced reply finished", conversation_id=pending.conversation_id, outcome=outcome.value)

    async def process(self, event: InboundEvent) -> PipelineOutcome:
        """Run both halves inline."""
        result = await self.receive(event)
        if result.pending is None:
            return result.outcome
        return await self.complete(result.pending)
