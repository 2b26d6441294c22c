"""Tests for the AI response generator."""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
import pytest_asyncio

from zapdesk.models import Agent, AgentPrompt, BusinessProfile, Message, MessageSender
from zapdesk.services.conversation.responder import ResponseGenerator, build_history, build_system_prompt


def _message(sender, content, offset=0):
    return Message(
        id=str(uuid4()),
        conversation_id="conv-1",
        sender=sender,
        content=content,
        created_at=datetime(2024, 6, 3, 12, 0) + timedelta(seconds=offset),
    )


@pytest.fixture
def agent():
    return Agent(
        id="agent-1",
        tenant_id="demo",
        name="Ana",
        prompt=AgentPrompt(role="You are Ana, the bakery assistant.", format="Short answers."),
    )


@pytest.fixture
def profile():
    return BusinessProfile(address="Main Street 100", website="https://bakery.example")


def test_system_prompt_combines_agent_and_business_facts(agent, profile):
    prompt = build_system_prompt(agent, profile)

    assert prompt.startswith("# ROLE\nYou are Ana, the bakery assistant.")
    assert "# FORMAT\nShort answers." in prompt
    assert "# CONTEXT" not in prompt
    assert "## Business Information:" in prompt
    assert "Address: Main Street 100" in prompt
    assert prompt.index("# ROLE") < prompt.index("## Business Information:")


def test_system_prompt_without_agent(profile):
    prompt = build_system_prompt(None, profile)
    assert prompt.startswith("## Business Information:")


def test_history_maps_roles_and_skips_system_notes():
    messages = [
        _message(MessageSender.USER, "hi", 0),
        _message(MessageSender.AI, "hello!", 1),
        _message(MessageSender.SYSTEM, "Could not read audio message", 2),
        _message(MessageSender.OPERATOR, "this is Joao from the shop", 3),
    ]

    assert build_history(messages) == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello!"},
        {"role": "assistant", "content": "this is Joao from the shop"},
    ]


def test_history_drops_trailing_user_fragments():
    """Fragments being answered arrive as the final user turn instead."""
    messages = [
        _message(MessageSender.USER, "hi", 0),
        _message(MessageSender.AI, "hello!", 1),
        _message(MessageSender.USER, "I need", 2),
        _message(MessageSender.USER, "a cake", 3),
    ]

    assert build_history(messages) == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello!"},
    ]


@pytest_asyncio.fixture
async def conversation(storage):
    contact = await storage.upsert_contact("demo", "5511999990000", "Ana")
    conv = await storage.upsert_conversation("demo", contact.id, "demo-channel")
    base = datetime.utcnow()
    for i, (sender, content) in enumerate(
        [
            (MessageSender.USER, "do you open sunday?"),
            (MessageSender.AI, "Yes, from 8 to 12."),
            (MessageSender.USER, "great"),
            (MessageSender.USER, "and saturday?"),
        ]
    ):
        await storage.append_message(
            Message(
                id=str(uuid4()),
                conversation_id=conv.id,
                sender=sender,
                content=content,
                created_at=base + timedelta(seconds=i),
            )
        )
    return conv


@pytest.mark.asyncio
async def test_generate_sends_history_and_flushed_text(storage, llm, agent, profile, conversation):
    responder = ResponseGenerator(storage, llm, history_limit=8)

    reply = await responder.generate(conversation.id, "great and saturday?", agent, profile)

    assert reply == "Hello! How can I help?"
    assert len(llm.completions) == 1
    call = llm.completions[0]
    assert call["messages"] == [
        {"role": "user", "content": "do you open sunday?"},
        {"role": "assistant", "content": "Yes, from 8 to 12."},
        {"role": "user", "content": "great and saturday?"},
    ]
    assert "# ROLE" in call["system_prompt"]


@pytest.mark.asyncio
async def test_generate_respects_history_limit(storage, llm, agent, profile, conversation):
    responder = ResponseGenerator(storage, llm, history_limit=3)

    await responder.generate(conversation.id, "great and saturday?", agent, profile)

    # Last three rows are AI + two trailing USER fragments; only the AI turn remains
    assert llm.completions[0]["messages"] == [
        {"role": "assistant", "content": "Yes, from 8 to 12."},
        {"role": "user", "content": "great and saturday?"},
    ]


@pytest.mark.asyncio
async def test_llm_failure_means_no_reply(storage, llm, agent, profile, conversation):
    llm.fail_completion = True
    responder = ResponseGenerator(storage, llm)

    assert await responder.generate(conversation.id, "hello", agent, profile) is None
    assert len(llm.completions) == 1


@pytest.mark.asyncio
async def test_blank_reply_means_no_reply(storage, llm, agent, profile, conversation):
    llm.reply = "   "
    responder = ResponseGenerator(storage, llm)

    assert await responder.generate(conversation.id, "hello", agent, profile) is None
