"""Tests for storage backends."""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from zapdesk.core.exceptions import ConversationNotFound
from zapdesk.models import Message, MessageSender, Tenant


async def _conversation(storage, phone="5511999990000"):
    contact = await storage.upsert_contact("demo", phone, "Ana")
    return await storage.upsert_conversation("demo", contact.id, "demo-channel")


def _message(conversation_id, sender, content, created_at=None, external_id=None):
    return Message(
        id=str(uuid4()),
        conversation_id=conversation_id,
        sender=sender,
        content=content,
        created_at=created_at or datetime.utcnow(),
        external_id=external_id,
    )


@pytest.mark.asyncio
async def test_tenant_crud(storage):
    """Test tenant save and read."""
    tenant = Tenant(id="test-1", name="Test Tenant")
    saved = await storage.save_tenant(tenant)
    assert saved.id == "test-1"

    retrieved = await storage.get_tenant("test-1")
    assert retrieved is not None
    assert retrieved.name == "Test Tenant"

    assert await storage.get_tenant("missing") is None


@pytest.mark.asyncio
async def test_channel_lookup_by_name(storage, channel):
    """Channels are found by their gateway instance name."""
    found = await storage.get_channel_by_name("demo")
    assert found is not None
    assert found.id == channel.id
    assert found.token == "demo-token"

    assert await storage.get_channel_by_name("unknown") is None


@pytest.mark.asyncio
async def test_upsert_contact_is_idempotent(storage):
    """Same tenant and phone always resolve to one contact."""
    first = await storage.upsert_contact("demo", "5511999990000", "Ana")
    second = await storage.upsert_contact("demo", "5511999990000", "Ana")
    assert first.id == second.id

    other_tenant = await storage.upsert_contact("other", "5511999990000", "Ana")
    assert other_tenant.id != first.id


@pytest.mark.asyncio
async def test_upsert_contact_refreshes_name(storage):
    """A new display name replaces the stored one; an empty one does not."""
    contact = await storage.upsert_contact("demo", "5511999990000", "Ana")

    renamed = await storage.upsert_contact("demo", "5511999990000", "Ana Souza")
    assert renamed.id == contact.id
    assert renamed.name == "Ana Souza"

    unchanged = await storage.upsert_contact("demo", "5511999990000", "")
    assert unchanged.name == "Ana Souza"


@pytest.mark.asyncio
async def test_upsert_contact_without_name_uses_phone(storage):
    contact = await storage.upsert_contact("demo", "5511888880000", "")
    assert contact.name == "5511888880000"


@pytest.mark.asyncio
async def test_upsert_conversation_is_idempotent(storage):
    """One conversation per contact and channel."""
    contact = await storage.upsert_contact("demo", "5511999990000", "Ana")

    first = await storage.upsert_conversation("demo", contact.id, "demo-channel")
    second = await storage.upsert_conversation("demo", contact.id, "demo-channel")
    assert first.id == second.id
    assert first.human_active is False
    assert first.buffer_token == 0

    other_channel = await storage.upsert_conversation("demo", contact.id, "second-channel")
    assert other_channel.id != first.id


@pytest.mark.asyncio
async def test_compare_and_set_buffer(storage):
    """The buffer write only succeeds against the current token."""
    conv = await _conversation(storage)
    now = datetime.utcnow()

    token = await storage.compare_and_set_buffer(conv.id, 0, "hello", now)
    assert token == 1

    # Stale token loses
    assert await storage.compare_and_set_buffer(conv.id, 0, "lost", now) is None

    updated = await storage.get_conversation(conv.id)
    assert updated.temp_buffer == "hello"
    assert updated.buffer_token == 1
    assert updated.last_message_at == now


@pytest.mark.asyncio
async def test_clear_buffer_if_token_matches(storage):
    conv = await _conversation(storage)
    await storage.compare_and_set_buffer(conv.id, 0, "one", datetime.utcnow())
    await storage.compare_and_set_buffer(conv.id, 1, "one two", datetime.utcnow())

    assert await storage.clear_buffer_if_token_matches(conv.id, 1) is None
    assert await storage.clear_buffer_if_token_matches(conv.id, 2) == "one two"

    cleared = await storage.get_conversation(conv.id)
    assert cleared.temp_buffer == ""
    # Clearing advances the token so writes based on the old row lose
    assert cleared.buffer_token == 3
    assert await storage.compare_and_set_buffer(conv.id, 2, "one two three", datetime.utcnow()) is None


@pytest.mark.asyncio
async def test_snapshots_are_not_live(storage):
    """Mutating a returned conversation does not touch the stored row."""
    conv = await _conversation(storage)
    conv.temp_buffer = "local edit"

    stored = await storage.get_conversation(conv.id)
    assert stored.temp_buffer == ""


@pytest.mark.asyncio
async def test_set_human_active(storage):
    conv = await _conversation(storage)

    updated = await storage.set_human_active(conv.id, True)
    assert updated.human_active is True
    assert (await storage.get_conversation(conv.id)).human_active is True

    with pytest.raises(ConversationNotFound):
        await storage.set_human_active("missing", True)


@pytest.mark.asyncio
async def test_recent_messages_are_last_n_oldest_first(storage):
    conv = await _conversation(storage)
    base = datetime.utcnow()
    for i in range(10):
        await storage.append_message(
            _message(conv.id, MessageSender.USER, f"m{i}", created_at=base + timedelta(seconds=i))
        )

    recent = await storage.get_recent_messages(conv.id, limit=3)
    assert [m.content for m in recent] == ["m7", "m8", "m9"]

    everything = await storage.get_messages(conv.id)
    assert [m.content for m in everything][:2] == ["m0", "m1"]


@pytest.mark.asyncio
async def test_find_message_by_external_id(storage):
    conv = await _conversation(storage)
    await storage.append_message(_message(conv.id, MessageSender.AI, "reply", external_id="wa-1"))

    found = await storage.find_message_by_external_id(conv.id, "wa-1")
    assert found is not None
    assert found.content == "reply"

    assert await storage.find_message_by_external_id(conv.id, "wa-2") is None


@pytest.mark.asyncio
async def test_mark_messages_read_only_touches_user_messages(storage):
    conv = await _conversation(storage)
    await storage.append_message(_message(conv.id, MessageSender.USER, "hi"))
    await storage.append_message(_message(conv.id, MessageSender.AI, "hello"))
    await storage.append_message(_message(conv.id, MessageSender.USER, "there?"))

    assert await storage.mark_messages_read(conv.id) == 2
    assert await storage.mark_messages_read(conv.id) == 0

    messages = await storage.get_messages(conv.id)
    assert [m.is_read for m in messages] == [True, False, True]


@pytest.mark.asyncio
async def test_list_conversations(storage):
    await _conversation(storage, phone="1")
    await _conversation(storage, phone="2")

    conversations = await storage.list_conversations("demo")
    assert len(conversations) == 2
    assert await storage.list_conversations("other") == []


@pytest.mark.asyncio
async def test_health_check(storage):
    assert await storage.health_check() is True
