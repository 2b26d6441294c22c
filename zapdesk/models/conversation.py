"""Contact and conversation models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class OwnershipState(str, Enum):
    """Who is expected to answer the contact."""

    AI_ACTIVE = "ai_active"
    HUMAN_ACTIVE = "human_active"


class Contact(BaseModel):
    """A WhatsApp contact, unique by phone within a tenant."""

    id: str
    tenant_id: str
    phone: str
    name: str = ""

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Conversation(BaseModel):
    """The thread between one contact and one channel.

    The row doubles as the debounce coordination record: ``temp_buffer`` holds
    text not yet answered and ``buffer_token`` is bumped by every buffer write,
    so an invocation can tell whether a newer fragment arrived while it waited.
    """

    id: str = Field(..., description="Unique conversation identifier")
    tenant_id: str
    contact_id: str
    channel_id: str

    # Ownership
    human_active: bool = False

    # Debounce state
    temp_buffer: str = ""
    buffer_token: int = 0
    last_message_at: datetime | None = None

    # Outbound texts handed to the gateway whose row is not written yet
    pending_outbound: list[str] = Field(default_factory=list)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def ownership(self) -> OwnershipState:
        if self.human_active:
            return OwnershipState.HUMAN_ACTIVE
        return OwnershipState.AI_ACTIVE
