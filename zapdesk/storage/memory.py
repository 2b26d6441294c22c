"""In-memory storage backend for development and testing."""

import asyncio
from datetime import datetime
from uuid import uuid4

from zapdesk.core.exceptions import ConversationNotFound
from zapdesk.models import (
    Agent,
    AgentPrompt,
    BusinessProfile,
    Channel,
    Contact,
    Conversation,
    Message,
    MessageSender,
    Tenant,
)
from zapdesk.storage.base import StorageBackend


class InMemoryStorage(StorageBackend):
    """In-memory storage implementation for development.

    A single lock serializes read-modify-write operations, standing in for the
    row-level atomicity a real database gives.
    """

    def __init__(self) -> None:
        self._tenants: dict[str, Tenant] = {}
        self._channels: dict[str, Channel] = {}
        self._agents: dict[str, Agent] = {}
        self._contacts: dict[str, Contact] = {}
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, Message] = {}
        self._lock = asyncio.Lock()

    # ==================== Tenant Operations ====================

    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        return self._tenants.get(tenant_id)

    async def save_tenant(self, tenant: Tenant) -> Tenant:
        tenant.updated_at = datetime.utcnow()
        self._tenants[tenant.id] = tenant
        return tenant

    # ==================== Channel / Agent Operations ====================

    async def get_channel_by_name(self, name: str) -> Channel | None:
        for channel in self._channels.values():
            if channel.name == name:
                return channel
        return None

    async def get_channel(self, channel_id: str) -> Channel | None:
        return self._channels.get(channel_id)

    async def save_channel(self, channel: Channel) -> Channel:
        self._channels[channel.id] = channel
        return channel

    async def get_agent(self, agent_id: str) -> Agent | None:
        return self._agents.get(agent_id)

    async def save_agent(self, agent: Agent) -> Agent:
        self._agents[agent.id] = agent
        return agent

    # ==================== Contact Operations ====================

    async def upsert_contact(self, tenant_id: str, phone: str, name: str) -> Contact:
        async with self._lock:
            for contact in self._contacts.values():
                if contact.tenant_id == tenant_id and contact.phone == phone:
                    if name and contact.name != name:
                        contact.name = name
                        contact.updated_at = datetime.utcnow()
                    return contact.model_copy()

            contact = Contact(id=str(uuid4()), tenant_id=tenant_id, phone=phone, name=name or phone)
            self._contacts[contact.id] = contact
            return contact.model_copy()

    async def get_contact(self, contact_id: str) -> Contact | None:
        contact = self._contacts.get(contact_id)
        return contact.model_copy() if contact else None

    # ==================== Conversation Operations ====================

    async def upsert_conversation(
        self,
        tenant_id: str,
        contact_id: str,
        channel_id: str,
    ) -> Conversation:
        async with self._lock:
            for conv in self._conversations.values():
                if conv.contact_id == contact_id and conv.channel_id == channel_id:
                    return conv.model_copy()

            conv = Conversation(
                id=str(uuid4()),
                tenant_id=tenant_id,
                contact_id=contact_id,
                channel_id=channel_id,
            )
            self._conversations[conv.id] = conv
            return conv.model_copy()

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        conv = self._conversations.get(conversation_id)
        # Callers get a snapshot, never the live row
        return conv.model_copy() if conv else None

    async def list_conversations(self, tenant_id: str, limit: int = 50) -> list[Conversation]:
        convs = [c for c in self._conversations.values() if c.tenant_id == tenant_id]
        convs.sort(key=lambda x: x.updated_at, reverse=True)
        return [c.model_copy() for c in convs[:limit]]

    def _require_conversation(self, conversation_id: str) -> Conversation:
        conv = self._conversations.get(conversation_id)
        if conv is None:
            raise ConversationNotFound(conversation_id)
        return conv

    async def compare_and_set_buffer(
        self,
        conversation_id: str,
        expected_token: int,
        new_buffer: str,
        at: datetime,
    ) -> int | None:
        async with self._lock:
            conv = self._require_conversation(conversation_id)
            if conv.buffer_token != expected_token:
                return None
            conv.temp_buffer = new_buffer
            conv.buffer_token = expected_token + 1
            conv.last_message_at = at
            conv.updated_at = datetime.utcnow()
            return conv.buffer_token

    async def clear_buffer_if_token_matches(
        self,
        conversation_id: str,
        expected_token: int,
    ) -> str | None:
        async with self._lock:
            conv = self._require_conversation(conversation_id)
            if conv.buffer_token != expected_token:
                return None
            flushed = conv.temp_buffer
            conv.temp_buffer = ""
            conv.buffer_token = expected_token + 1
            conv.updated_at = datetime.utcnow()
            return flushed

    async def set_human_active(self, conversation_id: str, active: bool) -> Conversation:
        async with self._lock:
            conv = self._require_conversation(conversation_id)
            conv.human_active = active
            conv.updated_at = datetime.utcnow()
            return conv.model_copy()

    async def add_pending_outbound(self, conversation_id: str, text: str) -> None:
        async with self._lock:
            conv = self._require_conversation(conversation_id)
            conv.pending_outbound = [*conv.pending_outbound, text]

    async def remove_pending_outbound(self, conversation_id: str, text: str) -> None:
        async with self._lock:
            conv = self._require_conversation(conversation_id)
            if text in conv.pending_outbound:
                pending = list(conv.pending_outbound)
                pending.remove(text)
                conv.pending_outbound = pending

    # ==================== Message Operations ====================

    async def append_message(self, message: Message) -> Message:
        self._messages[message.id] = message
        return message

    def _conversation_messages(self, conversation_id: str) -> list[Message]:
        # dict preserves insertion order, which breaks created_at ties
        messages = [m for m in self._messages.values() if m.conversation_id == conversation_id]
        messages.sort(key=lambda x: x.created_at)
        return messages

    async def get_messages(self, conversation_id: str, limit: int = 50) -> list[Message]:
        return self._conversation_messages(conversation_id)[:limit]

    async def get_recent_messages(self, conversation_id: str, limit: int = 8) -> list[Message]:
        if limit <= 0:
            return []
        return self._conversation_messages(conversation_id)[-limit:]

    async def find_message_by_external_id(
        self,
        conversation_id: str,
        external_id: str,
    ) -> Message | None:
        for message in self._messages.values():
            if message.conversation_id == conversation_id and message.external_id == external_id:
                return message
        return None

    async def mark_messages_read(self, conversation_id: str) -> int:
        changed = 0
        for message in self._conversation_messages(conversation_id):
            if message.sender == MessageSender.USER and not message.is_read:
                message.is_read = True
                changed += 1
        return changed

    # ==================== Health Check ====================

    async def health_check(self) -> bool:
        return True

    # ==================== Development Helpers ====================

    async def clear_all(self) -> None:
        """Clear all data (for testing)."""
        self._tenants.clear()
        self._channels.clear()
        self._agents.clear()
        self._contacts.clear()
        self._conversations.clear()
        self._messages.clear()

    async def seed_demo_tenant(self) -> Channel:
        """Create a demo tenant with one agent and one channel."""
        tenant = Tenant(
            id="demo",
            name="Demo Company",
            profile=BusinessProfile(
                working_days={0, 1, 2, 3, 4, 5, 6},
                offline_message="We are closed right now. We'll answer as soon as we open!",
                address="Main Street 100",
            ),
        )
        await self.save_tenant(tenant)

        agent = Agent(
            id="demo-agent",
            tenant_id=tenant.id,
            name="Demo Assistant",
            prompt=AgentPrompt(
                role="You are a friendly customer support assistant for Demo Company.",
                format="Keep answers short and suited to WhatsApp.",
            ),
            enable_audio=True,
            enable_image=True,
        )
        await self.save_agent(agent)

        channel = Channel(
            id="demo-channel",
            name="demo",
            token="demo-token",
            tenant_id=tenant.id,
            agent_id=agent.id,
        )
        return await self.save_channel(channel)
