"""Data models for the application."""

from zapdesk.models.conversation import Contact, Conversation, OwnershipState
from zapdesk.models.message import (
    AUDIO_TAG,
    IMAGE_TAG,
    ExtractedContent,
    InboundEvent,
    Message,
    MessageSender,
    MessageType,
)
from zapdesk.models.tenant import Agent, AgentPrompt, BusinessProfile, Channel, Tenant

__all__ = [
    # Tenant
    "Tenant",
    "BusinessProfile",
    "Channel",
    "Agent",
    "AgentPrompt",
    # Conversation
    "Contact",
    "Conversation",
    "OwnershipState",
    # Message
    "Message",
    "MessageSender",
    "MessageType",
    "InboundEvent",
    "ExtractedContent",
    "AUDIO_TAG",
    "IMAGE_TAG",
]
