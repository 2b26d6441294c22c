"""Message models and the normalized inbound event."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

AUDIO_TAG = "[Audio]"
IMAGE_TAG = "[Image]"
UNSUPPORTED_TAG = "[Unsupported]"


class MessageSender(str, Enum):
    """Who authored a persisted message."""

    USER = "USER"  # The contact
    AI = "AI"  # Generated or canned reply sent by us
    OPERATOR = "OPERATOR"  # Human agent, via dashboard or the phone itself
    SYSTEM = "SYSTEM"  # Pipeline notes, never shown to the LLM


class MessageType(str, Enum):
    """Type of inbound message content."""

    TEXT = "text"
    AUDIO = "audio"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


class Message(BaseModel):
    """A persisted message. Append-only except for the read flag."""

    id: str = Field(..., description="Unique message identifier")
    conversation_id: str = Field(..., description="Parent conversation ID")
    sender: MessageSender
    content: str

    created_at: datetime = Field(default_factory=datetime.utcnow)
    is_read: bool = False

    # Gateway message id, used to recognize redeliveries and our own echoes
    external_id: str | None = None

    def to_llm_message(self) -> dict[str, str]:
        """Convert to LLM message format for context."""
        if self.sender == MessageSender.USER:
            return {"role": "user", "content": self.content}
        return {"role": "assistant", "content": self.content}


class InboundEvent(BaseModel):
    """Normalized new-message event from the gateway."""

    channel_name: str
    message_id: str
    phone: str
    display_name: str
    from_me: bool = False
    message_type: MessageType = MessageType.TEXT
    text: str | None = None

    raw_payload: dict[str, Any] = Field(default_factory=dict)

    def placeholder(self) -> str:
        """Text stored when the content is not extracted (e.g. human-active)."""
        if self.message_type == MessageType.TEXT:
            return self.text or ""
        if self.message_type == MessageType.AUDIO:
            return AUDIO_TAG
        if self.message_type == MessageType.IMAGE:
            return IMAGE_TAG
        return UNSUPPORTED_TAG


@dataclass
class ExtractedContent:
    """Result of content extraction: text, or a fallback with its reason."""

    text: str | None = None
    fallback_reason: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.text is None

    @classmethod
    def fallback(cls, reason: str) -> "ExtractedContent":
        return cls(text=None, fallback_reason=reason)
