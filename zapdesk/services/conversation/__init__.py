"""Conversation service - debounce, ownership, generation and dispatch."""

from zapdesk.services.conversation.debounce import DebounceCoordinator
from zapdesk.services.conversation.dispatcher import OutboundDispatcher
from zapdesk.services.conversation.handoff import HandoffService
from zapdesk.services.conversation.pipeline import (
    InboundPipeline,
    PendingFlush,
    PipelineOutcome,
    ReceiveResult,
)
from zapdesk.services.conversation.responder import ResponseGenerator

__all__ = [
    "DebounceCoordinator",
    "HandoffService",
    "InboundPipeline",
    "OutboundDispatcher",
    "PendingFlush",
    "PipelineOutcome",
    "ReceiveResult",
    "ResponseGenerator",
]
