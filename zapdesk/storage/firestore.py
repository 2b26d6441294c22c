"""Firestore storage backend for production."""

import os
from datetime import datetime
from uuid import NAMESPACE_URL, uuid5

import structlog

from zapdesk.core.exceptions import ConversationNotFound
from zapdesk.models import Agent, Channel, Contact, Conversation, Message, MessageSender, Tenant
from zapdesk.storage.base import StorageBackend

logger = structlog.get_logger()


class FirestoreStorage(StorageBackend):
    """Firestore storage implementation for production.

    Collection structure (flat, one document per row):
    - tenants/{tenant_id}
    - channels/{channel_id}
    - agents/{agent_id}
    - contacts/{tenant_id}:{phone}
    - conversations/{uuid5(contact_id/channel_id)}
    - messages/{message_id}

    Contact and conversation ids are derived from their natural keys, so the
    upserts cannot create duplicates. Buffer operations run inside
    transactions; Firestore retries a transaction whose read set changed,
    which gives the single-row compare-and-set the debounce relies on.
    """

    def __init__(self, project_id: str | None = None) -> None:
        self._project_id = project_id
        self._db = None
        self._initialized = False

    async def _ensure_initialized(self) -> None:
        """Lazy initialization of Firestore client."""
        if self._initialized:
            return

        try:
            from google.cloud import firestore

            # Check if using emulator
            if os.environ.get("FIRESTORE_EMULATOR_HOST"):
                logger.info("Using Firestore emulator")

            self._db = firestore.AsyncClient(project=self._project_id)
            self._initialized = True
            logger.info("Firestore client initialized", project=self._project_id)
        except Exception as e:
            logger.error("Failed to initialize Firestore", error=str(e))
            raise

    # ==================== Tenant Operations ====================

    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        await self._ensure_initialized()
        doc = await self._db.collection("tenants").document(tenant_id).get()
        if not doc.exists:
            return None
        return Tenant(**doc.to_dict())

    async def save_tenant(self, tenant: Tenant) -> Tenant:
        await self._ensure_initialized()
        tenant.updated_at = datetime.utcnow()
        await self._db.collection("tenants").document(tenant.id).set(
            tenant.model_dump(mode="json")
        )
        return tenant

    # ==================== Channel / Agent Operations ====================

    async def get_channel_by_name(self, name: str) -> Channel | None:
        await self._ensure_initialized()
        query = self._db.collection("channels").where("name", "==", name).limit(1)
        docs = await query.get()
        for doc in docs:
            return Channel(**doc.to_dict())
        return None

    async def get_channel(self, channel_id: str) -> Channel | None:
        await self._ensure_initialized()
        doc = await self._db.collection("channels").document(channel_id).get()
        if not doc.exists:
            return None
        return Channel(**doc.to_dict())

    async def save_channel(self, channel: Channel) -> Channel:
        await self._ensure_initialized()
        await self._db.collection("channels").document(channel.id).set(
            channel.model_dump(mode="json")
        )
        return channel

    async def get_agent(self, agent_id: str) -> Agent | None:
        await self._ensure_initialized()
        doc = await self._db.collection("agents").document(agent_id).get()
        if not doc.exists:
            return None
        return Agent(**doc.to_dict())

    async def save_agent(self, agent: Agent) -> Agent:
        await self._ensure_initialized()
        await self._db.collection("agents").document(agent.id).set(
            agent.model_dump(mode="json")
        )
        return agent

    # ==================== Contact Operations ====================

    async def upsert_contact(self, tenant_id: str, phone: str, name: str) -> Contact:
        await self._ensure_initialized()
        from google.cloud import firestore

        ref = self._db.collection("contacts").document(f"{tenant_id}:{phone}")

        @firestore.async_transactional
        async def upsert(transaction) -> Contact:
            snapshot = await ref.get(transaction=transaction)
            if not snapshot.exists:
                contact = Contact(id=ref.id, tenant_id=tenant_id, phone=phone, name=name or phone)
                transaction.set(ref, contact.model_dump(mode="json"))
                return contact

            contact = Contact(**snapshot.to_dict())
            if name and contact.name != name:
                contact.name = name
                contact.updated_at = datetime.utcnow()
                transaction.update(ref, {"name": name, "updated_at": contact.updated_at.isoformat()})
            return contact

        return await upsert(self._db.transaction())

    async def get_contact(self, contact_id: str) -> Contact | None:
        await self._ensure_initialized()
        doc = await self._db.collection("contacts").document(contact_id).get()
        if not doc.exists:
            return None
        return Contact(**doc.to_dict())

    # ==================== Conversation Operations ====================

    def _conversation_ref(self, conversation_id: str):
        """Get reference to a conversation document."""
        return self._db.collection("conversations").document(conversation_id)

    async def upsert_conversation(
        self,
        tenant_id: str,
        contact_id: str,
        channel_id: str,
    ) -> Conversation:
        await self._ensure_initialized()
        from google.cloud import firestore

        conversation_id = str(uuid5(NAMESPACE_URL, f"{contact_id}/{channel_id}"))
        ref = self._conversation_ref(conversation_id)

        @firestore.async_transactional
        async def upsert(transaction) -> Conversation:
            snapshot = await ref.get(transaction=transaction)
            if snapshot.exists:
                return Conversation(**snapshot.to_dict())
            conv = Conversation(
                id=conversation_id,
                tenant_id=tenant_id,
                contact_id=contact_id,
                channel_id=channel_id,
            )
            transaction.set(ref, conv.model_dump(mode="json"))
            return conv

        return await upsert(self._db.transaction())

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        await self._ensure_initialized()
        doc = await self._conversation_ref(conversation_id).get()
        if not doc.exists:
            return None
        return Conversation(**doc.to_dict())

    async def list_conversations(self, tenant_id: str, limit: int = 50) -> list[Conversation]:
        await self._ensure_initialized()
        query = (
            self._db.collection("conversations")
            .where("tenant_id", "==", tenant_id)
            .order_by("updated_at", direction="DESCENDING")
            .limit(limit)
        )
        docs = await query.get()
        return [Conversation(**doc.to_dict()) for doc in docs]

    async def compare_and_set_buffer(
        self,
        conversation_id: str,
        expected_token: int,
        new_buffer: str,
        at: datetime,
    ) -> int | None:
        await self._ensure_initialized()
        from google.cloud import firestore

        ref = self._conversation_ref(conversation_id)

        @firestore.async_transactional
        async def compare_and_set(transaction) -> int | None:
            snapshot = await ref.get(transaction=transaction)
            if not snapshot.exists:
                raise ConversationNotFound(conversation_id)
            if snapshot.get("buffer_token") != expected_token:
                return None
            transaction.update(ref, {
                "temp_buffer": new_buffer,
                "buffer_token": expected_token + 1,
                "last_message_at": at.isoformat(),
                "updated_at": datetime.utcnow().isoformat(),
            })
            return expected_token + 1

        return await compare_and_set(self._db.transaction())

    async def clear_buffer_if_token_matches(
        self,
        conversation_id: str,
        expected_token: int,
    ) -> str | None:
        await self._ensure_initialized()
        from google.cloud import firestore

        ref = self._conversation_ref(conversation_id)

        @firestore.async_transactional
        async def take_buffer(transaction) -> str | None:
            snapshot = await ref.get(transaction=transaction)
            if not snapshot.exists:
                raise ConversationNotFound(conversation_id)
            if snapshot.get("buffer_token") != expected_token:
                return None
            transaction.update(ref, {
                "temp_buffer": "",
                "buffer_token": expected_token + 1,
                "updated_at": datetime.utcnow().isoformat(),
            })
            return snapshot.get("temp_buffer") or ""

        return await take_buffer(self._db.transaction())

    async def set_human_active(self, conversation_id: str, active: bool) -> Conversation:
        await self._ensure_initialized()
        ref = self._conversation_ref(conversation_id)
        doc = await ref.get()
        if not doc.exists:
            raise ConversationNotFound(conversation_id)
        await ref.update({
            "human_active": active,
            "updated_at": datetime.utcnow().isoformat(),
        })
        conv = Conversation(**doc.to_dict())
        conv.human_active = active
        return conv

    async def add_pending_outbound(self, conversation_id: str, text: str) -> None:
        await self._ensure_initialized()
        from google.cloud import firestore

        await self._conversation_ref(conversation_id).update({
            "pending_outbound": firestore.ArrayUnion([text]),
        })

    async def remove_pending_outbound(self, conversation_id: str, text: str) -> None:
        await self._ensure_initialized()
        from google.cloud import firestore

        await self._conversation_ref(conversation_id).update({
            "pending_outbound": firestore.ArrayRemove([text]),
        })

    # ==================== Message Operations ====================

    async def append_message(self, message: Message) -> Message:
        await self._ensure_initialized()
        await self._db.collection("messages").document(message.id).set(
            message.model_dump(mode="json")
        )
        return message

    async def get_messages(self, conversation_id: str, limit: int = 50) -> list[Message]:
        await self._ensure_initialized()
        query = (
            self._db.collection("messages")
            .where("conversation_id", "==", conversation_id)
            .order_by("created_at")
            .limit(limit)
        )
        docs = await query.get()
        return [Message(**doc.to_dict()) for doc in docs]

    async def get_recent_messages(self, conversation_id: str, limit: int = 8) -> list[Message]:
        await self._ensure_initialized()
        query = (
            self._db.collection("messages")
            .where("conversation_id", "==", conversation_id)
            .order_by("created_at", direction="DESCENDING")
            .limit(limit)
        )
        docs = await query.get()
        messages = [Message(**doc.to_dict()) for doc in docs]
        # Reverse to get chronological order
        return list(reversed(messages))

    async def find_message_by_external_id(
        self,
        conversation_id: str,
        external_id: str,
    ) -> Message | None:
        await self._ensure_initialized()
        query = (
            self._db.collection("messages")
            .where("conversation_id", "==", conversation_id)
            .where("external_id", "==", external_id)
            .limit(1)
        )
        docs = await query.get()
        for doc in docs:
            return Message(**doc.to_dict())
        return None

    async def mark_messages_read(self, conversation_id: str) -> int:
        await self._ensure_initialized()
        query = (
            self._db.collection("messages")
            .where("conversation_id", "==", conversation_id)
            .where("sender", "==", MessageSender.USER.value)
            .where("is_read", "==", False)
        )
        docs = await query.get()
        if not docs:
            return 0

        batch = self._db.batch()
        for doc in docs:
            batch.update(doc.reference, {"is_read": True})
        await batch.commit()
        return len(docs)

    # ==================== Health Check ====================

    async def health_check(self) -> bool:
        try:
            await self._ensure_initialized()
            # Simple health check - try to access a collection
            await self._db.collection("_health").document("check").get()
            return True
        except Exception as e:
            logger.error("Firestore health check failed", error=str(e))
            return False
