"""Abstract base class for storage backends."""

from abc import ABC, abstractmethod
from datetime import datetime

from zapdesk.models import Agent, Channel, Contact, Conversation, Message, Tenant


class StorageBackend(ABC):
    """Abstract storage backend interface.

    Every operation touches a single row and is atomic with respect to it.
    The two buffer operations are conditional on the conversation's
    ``buffer_token`` and are what the debounce coordinator synchronizes on.
    """

    # ==================== Tenant Operations ====================

    @abstractmethod
    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        """Get a tenant by ID."""
        ...

    @abstractmethod
    async def save_tenant(self, tenant: Tenant) -> Tenant:
        """Save or update a tenant."""
        ...

    # ==================== Channel / Agent Operations ====================

    @abstractmethod
    async def get_channel_by_name(self, name: str) -> Channel | None:
        """Get a gateway channel by its instance name."""
        ...

    @abstractmethod
    async def get_channel(self, channel_id: str) -> Channel | None:
        """Get a gateway channel by ID."""
        ...

    @abstractmethod
    async def save_channel(self, channel: Channel) -> Channel:
        """Save or update a channel."""
        ...

    @abstractmethod
    async def get_agent(self, agent_id: str) -> Agent | None:
        """Get an agent by ID."""
        ...

    @abstractmethod
    async def save_agent(self, agent: Agent) -> Agent:
        """Save or update an agent."""
        ...

    # ==================== Contact Operations ====================

    @abstractmethod
    async def upsert_contact(self, tenant_id: str, phone: str, name: str) -> Contact:
        """Create the contact for (tenant, phone) or refresh its name."""
        ...

    @abstractmethod
    async def get_contact(self, contact_id: str) -> Contact | None:
        """Get a contact by ID."""
        ...

    # ==================== Conversation Operations ====================

    @abstractmethod
    async def upsert_conversation(
        self,
        tenant_id: str,
        contact_id: str,
        channel_id: str,
    ) -> Conversation:
        """Get the conversation for (contact, channel), creating it if needed."""
        ...

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by ID."""
        ...

    @abstractmethod
    async def list_conversations(self, tenant_id: str, limit: int = 50) -> list[Conversation]:
        """List conversations for a tenant, most recently updated first."""
        ...

    @abstractmethod
    async def compare_and_set_buffer(
        self,
        conversation_id: str,
        expected_token: int,
        new_buffer: str,
        at: datetime,
    ) -> int | None:
        """Write the debounce buffer if the token is still ``expected_token``.

        On success the token becomes ``expected_token + 1``, ``last_message_at``
        becomes ``at`` and the new token is returned. Returns None when another
        writer got there first.
        """
        ...

    @abstractmethod
    async def clear_buffer_if_token_matches(
        self,
        conversation_id: str,
        expected_token: int,
    ) -> str | None:
        """Atomically take and empty the buffer if the token still matches.

        The clear also advances the token, so a buffer write that read the row
        before the flush fails its compare-and-set and re-reads the empty buffer.
        Returns the buffer content that was cleared, or None if the token moved.
        """
        ...

    @abstractmethod
    async def set_human_active(self, conversation_id: str, active: bool) -> Conversation:
        """Set the human-takeover flag."""
        ...

    @abstractmethod
    async def add_pending_outbound(self, conversation_id: str, text: str) -> None:
        """Remember a text that is being sent, until its message row exists."""
        ...

    @abstractmethod
    async def remove_pending_outbound(self, conversation_id: str, text: str) -> None:
        """Forget a pending outbound text once it was recorded or failed."""
        ...

    # ==================== Message Operations ====================

    @abstractmethod
    async def append_message(self, message: Message) -> Message:
        """Append a message to its conversation."""
        ...

    @abstractmethod
    async def get_messages(self, conversation_id: str, limit: int = 50) -> list[Message]:
        """Get the first ``limit`` messages of a conversation, oldest first."""
        ...

    @abstractmethod
    async def get_recent_messages(self, conversation_id: str, limit: int = 8) -> list[Message]:
        """Get the last ``limit`` messages of a conversation, oldest first."""
        ...

    @abstractmethod
    async def find_message_by_external_id(
        self,
        conversation_id: str,
        external_id: str,
    ) -> Message | None:
        """Find a message by its gateway message id."""
        ...

    @abstractmethod
    async def mark_messages_read(self, conversation_id: str) -> int:
        """Flag all unread USER messages as read. Returns how many changed."""
        ...

    # ==================== Health Check ====================

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if storage is healthy."""
        ...
