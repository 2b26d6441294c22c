"""Admin endpoints for the dashboard: conversation control and tenant settings."""

from datetime import datetime, time
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from zapdesk.api.dependencies import HandoffDep, StorageDep
from zapdesk.core.exceptions import ConversationNotFound, TenantNotFound
from zapdesk.models import BusinessProfile, Conversation, Message, Tenant

logger = structlog.get_logger()

router = APIRouter(prefix="/admin", tags=["Admin"])


# ==================== Pydantic Schemas ====================


class OperatorMessage(BaseModel):
    """Schema for a message typed by an operator in the dashboard."""

    text: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    """Schema for updating a tenant's business profile. Unset fields are kept."""

    name: str | None = None
    business_hours_start: time | None = None
    business_hours_end: time | None = None
    working_days: set[int] | None = None
    timezone: str | None = None
    offline_message: str | None = None
    fallback_message: str | None = None
    address: str | None = None
    website: str | None = None
    instagram: str | None = None


class ConversationResponse(BaseModel):
    """Response schema for conversation state."""

    id: str
    tenant_id: str
    contact_id: str
    channel_id: str
    human_active: bool
    ownership: str
    last_message_at: datetime | None
    updated_at: datetime


def _conversation_response(conversation: Conversation) -> ConversationResponse:
    return ConversationResponse(
        id=conversation.id,
        tenant_id=conversation.tenant_id,
        contact_id=conversation.contact_id,
        channel_id=conversation.channel_id,
        human_active=conversation.human_active,
        ownership=conversation.ownership.value,
        last_message_at=conversation.last_message_at,
        updated_at=conversation.updated_at,
    )


def _message_payload(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "sender": message.sender.value,
        "content": message.content,
        "is_read": message.is_read,
        "created_at": message.created_at.isoformat(),
    }


# ==================== Conversation Endpoints ====================


@router.post("/conversations/{conversation_id}/assume", response_model=ConversationResponse)
async def assume_conversation(
    conversation_id: str,
    handoff: HandoffDep,
) -> ConversationResponse:
    """Operator takes over; the AI stops answering."""
    conversation = await handoff.assume(conversation_id)
    return _conversation_response(conversation)


@router.post("/conversations/{conversation_id}/release", response_model=ConversationResponse)
async def release_conversation(
    conversation_id: str,
    handoff: HandoffDep,
) -> ConversationResponse:
    """Hand the conversation back to the AI."""
    conversation = await handoff.release(conversation_id)
    return _conversation_response(conversation)


@router.post("/conversations/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_operator_message(
    conversation_id: str,
    data: OperatorMessage,
    handoff: HandoffDep,
) -> dict[str, Any]:
    """Send a message as the operator. Pauses the AI for this conversation."""
    message = await handoff.send_operator_message(conversation_id, data.text)
    if message is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Message text is empty",
        )
    return _message_payload(message)


@router.get("/conversations/{conversation_id}/messages")
async def get_conversation_messages(
    conversation_id: str,
    storage: StorageDep,
    limit: int = 50,
) -> dict[str, Any]:
    """Get the latest ``limit`` messages of the timeline, oldest first."""
    conversation = await storage.get_conversation(conversation_id)
    if conversation is None:
        raise ConversationNotFound(conversation_id)

    messages = await storage.get_recent_messages(conversation_id, limit=limit)

    return {
        "conversation_id": conversation_id,
        "ownership": conversation.ownership.value,
        "count": len(messages),
        "messages": [_message_payload(m) for m in messages],
    }


@router.post("/conversations/{conversation_id}/read")
async def mark_conversation_read(
    conversation_id: str,
    storage: StorageDep,
) -> dict[str, Any]:
    """Mark the contact's messages as read."""
    conversation = await storage.get_conversation(conversation_id)
    if conversation is None:
        raise ConversationNotFound(conversation_id)

    updated = await storage.mark_messages_read(conversation_id)
    return {"conversation_id": conversation_id, "marked_read": updated}


@router.get("/tenants/{tenant_id}/conversations")
async def list_conversations(
    tenant_id: str,
    storage: StorageDep,
    limit: int = 50,
) -> dict[str, Any]:
    """List a tenant's conversations, most recently active first."""
    conversations = await storage.list_conversations(tenant_id=tenant_id, limit=limit)

    return {
        "tenant_id": tenant_id,
        "count": len(conversations),
        "conversations": [_conversation_response(c).model_dump(mode="json") for c in conversations],
    }


# ==================== Tenant Endpoints ====================


@router.get("/tenants/{tenant_id}", response_model=Tenant)
async def get_tenant(
    tenant_id: str,
    storage: StorageDep,
) -> Tenant:
    """Get a tenant and its business profile."""
    tenant = await storage.get_tenant(tenant_id)
    if tenant is None:
        raise TenantNotFound(tenant_id)
    return tenant


@router.put("/tenants/{tenant_id}", response_model=Tenant)
async def update_tenant(
    tenant_id: str,
    data: ProfileUpdate,
    storage: StorageDep,
) -> Tenant:
    """Update a tenant's name and business profile."""
    tenant = await storage.get_tenant(tenant_id)
    if tenant is None:
        raise TenantNotFound(tenant_id)

    changes = data.model_dump(exclude_unset=True)
    name = changes.pop("name", None)
    if name is not None:
        tenant.name = name

    # Re-validate the merged profile so bad weekdays are rejected
    merged = {**tenant.profile.model_dump(), **changes}
    try:
        tenant.profile = BusinessProfile.model_validate(merged)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    await storage.save_tenant(tenant)

    logger.info("Updated tenant profile", tenant_id=tenant_id, fields=sorted(changes))

    return tenant
