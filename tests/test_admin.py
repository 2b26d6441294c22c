"""Tests for the dashboard admin endpoints."""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
import pytest_asyncio

from zapdesk.models import Message, MessageSender


@pytest_asyncio.fixture
async def conversation(pipeline, channel, storage, make_event):
    """A conversation with one answered contact message."""
    await pipeline.process(make_event(text="hello"))
    return (await storage.list_conversations("demo"))[0]


@pytest.mark.asyncio
async def test_assume_and_release(client, storage, conversation):
    response = await client.post(f"/admin/conversations/{conversation.id}/assume")
    assert response.status_code == 200
    data = response.json()
    assert data["human_active"] is True
    assert data["ownership"] == "human_active"
    assert (await storage.get_conversation(conversation.id)).human_active is True

    response = await client.post(f"/admin/conversations/{conversation.id}/release")
    assert response.status_code == 200
    assert response.json()["ownership"] == "ai_active"
    assert (await storage.get_conversation(conversation.id)).human_active is False


@pytest.mark.asyncio
async def test_assume_unknown_conversation(client, channel):
    response = await client.post("/admin/conversations/missing/assume")
    assert response.status_code == 404
    assert response.json()["error"] == "CONVERSATION_NOT_FOUND"


@pytest.mark.asyncio
async def test_operator_message_is_sent_and_pauses_ai(client, storage, gateway, conversation):
    response = await client.post(
        f"/admin/conversations/{conversation.id}/messages",
        json={"text": "Hi, this is Joao from the shop"},
    )

    assert response.status_code == 201
    assert response.json()["sender"] == "OPERATOR"
    assert gateway.texts[-1] == "Hi, this is Joao from the shop"
    assert gateway.sent[-1]["to"] == "5511999990000"
    assert (await storage.get_conversation(conversation.id)).human_active is True

    messages = await storage.get_messages(conversation.id)
    assert messages[-1].sender == MessageSender.OPERATOR


@pytest.mark.asyncio
async def test_operator_message_dispatch_failure(client, gateway, conversation):
    gateway.fail_sends = True

    response = await client.post(
        f"/admin/conversations/{conversation.id}/messages",
        json={"text": "Hi"},
    )

    assert response.status_code == 502
    assert response.json()["error"] == "DISPATCH_ERROR"


@pytest.mark.asyncio
async def test_operator_message_requires_text(client, conversation):
    response = await client.post(f"/admin/conversations/{conversation.id}/messages", json={"text": ""})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_messages(client, conversation):
    response = await client.get(f"/admin/conversations/{conversation.id}/messages")

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert [m["sender"] for m in data["messages"]] == ["USER", "AI"]
    assert data["ownership"] == "ai_active"


@pytest.mark.asyncio
async def test_mark_read(client, storage, conversation):
    response = await client.post(f"/admin/conversations/{conversation.id}/read")

    assert response.status_code == 200
    assert response.json()["marked_read"] == 1

    messages = await storage.get_messages(conversation.id)
    assert [m.is_read for m in messages] == [True, False]


@pytest.mark.asyncio
async def test_list_conversations(client, conversation):
    response = await client.get("/admin/tenants/demo/conversations")

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["conversations"][0]["id"] == conversation.id


@pytest.mark.asyncio
async def test_get_tenant(client, channel):
    response = await client.get("/admin/tenants/demo")

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Demo Company"
    assert data["profile"]["address"] == "Main Street 100"


@pytest.mark.asyncio
async def test_get_unknown_tenant(client, channel):
    response = await client.get("/admin/tenants/nobody")
    assert response.status_code == 404
    assert response.json()["error"] == "TENANT_NOT_FOUND"


@pytest.mark.asyncio
async def test_update_business_profile(client, storage, channel):
    response = await client.put(
        "/admin/tenants/demo",
        json={
            "business_hours_start": "08:00",
            "business_hours_end": "18:00",
            "working_days": [0, 1, 2, 3, 4, 5],
            "instagram": "@demo",
        },
    )

    assert response.status_code == 200
    profile = (await storage.get_tenant("demo")).profile
    assert profile.business_hours_start.hour == 8
    assert profile.working_days == {0, 1, 2, 3, 4, 5}
    assert profile.instagram == "@demo"
    # Untouched fields are kept
    assert profile.address == "Main Street 100"


@pytest.mark.asyncio
async def test_update_profile_rejects_invalid_weekday(client, storage, channel):
    response = await client.put("/admin/tenants/demo", json={"working_days": [9]})

    assert response.status_code == 422
    assert (await storage.get_tenant("demo")).profile.working_days == {0, 1, 2, 3, 4, 5, 6}


@pytest.mark.asyncio
async def test_get_messages_returns_latest_page(client, storage, conversation):
    """Long conversations show their newest messages, in order."""
    base = datetime.utcnow() + timedelta(minutes=1)
    for i in range(60):
        await storage.append_message(
            Message(
                id=str(uuid4()),
                conversation_id=conversation.id,
                sender=MessageSender.USER,
                content=f"fragment {i}",
                created_at=base + timedelta(seconds=i),
            )
        )

    response = await client.get(f"/admin/conversations/{conversation.id}/messages", params={"limit": 50})

    assert response.status_code == 200
    contents = [m["content"] for m in response.json()["messages"]]
    assert len(contents) == 50
    assert contents[0] == "fragment 10"
    assert contents[-1] == "fragment 59"
