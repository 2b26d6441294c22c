"""Pytest configuration and fixtures."""

from typing import Any

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from zapdesk.api.dependencies import get_gateway, get_handoff, get_pipeline, get_storage
from zapdesk.api.main import create_app
from zapdesk.core.exceptions import DescriptionError, DispatchError, LLMError, MediaFetchError, TranscriptionError
from zapdesk.models import InboundEvent, MessageType
from zapdesk.services.channels.evolution import EvolutionAPIAdapter
from zapdesk.services.conversation import (
    DebounceCoordinator,
    HandoffService,
    InboundPipeline,
    OutboundDispatcher,
    ResponseGenerator,
)
from zapdesk.services.llm.provider import LLMResponse
from zapdesk.services.media.extractor import ContentExtractor
from zapdesk.services.schedule.business_hours import BusinessHoursGate
from zapdesk.storage.memory import InMemoryStorage

# Short enough to keep tests fast, long enough for concurrent fragments to land
TEST_WINDOW_SECONDS = 0.05


class FakeGateway(EvolutionAPIAdapter):
    """Evolution adapter with real webhook parsing and recorded sends."""

    def __init__(self) -> None:
        super().__init__(base_url="http://evolution.test", api_key="global-key")
        self.sent: list[dict[str, str]] = []
        self.media: dict[str, bytes] = {}
        self.media_requests: list[str] = []
        self.fail_sends = False
        # Awaited inside send_text, before the dispatcher writes its row
        self.on_send = None

    async def send_text(self, instance_name: str, token: str, recipient: str, text: str) -> dict[str, Any]:
        if self.fail_sends:
            raise DispatchError(channel=instance_name, recipient=recipient, reason="HTTP 500: boom")
        self.sent.append({"instance": instance_name, "token": token, "to": recipient, "text": text})
        if self.on_send is not None:
            await self.on_send(self.sent[-1])
        return {"message_id": f"out-{len(self.sent)}", "status": "PENDING", "to": recipient}

    async def fetch_media(self, instance_name: str, message_id: str) -> bytes:
        self.media_requests.append(message_id)
        if message_id not in self.media:
            raise MediaFetchError("media", message_id)
        return self.media[message_id]

    @property
    def texts(self) -> list[str]:
        return [s["text"] for s in self.sent]


class FakeLLM:
    """Stands in for LLMProvider; records every call."""

    def __init__(self) -> None:
        self.reply = "Hello! How can I help?"
        self.transcript = "I want to book a table"
        self.description = "A photo of a receipt"
        self.fail_completion = False
        self.fail_transcription = False
        self.fail_description = False
        self.completions: list[dict[str, Any]] = []
        self.transcriptions: list[bytes] = []
        self.descriptions: list[bytes] = []

    async def complete(self, messages, system_prompt=None, **kwargs) -> LLMResponse:
        self.completions.append({"messages": messages, "system_prompt": system_prompt})
        if self.fail_completion:
            raise LLMError("All LLM providers failed: timeout", provider="fake")
        return LLMResponse(content=self.reply, model="fake")

    async def transcribe(self, audio: bytes, filename: str = "audio.ogg") -> str:
        self.transcriptions.append(audio)
        if self.fail_transcription:
            raise TranscriptionError()
        return self.transcript

    async def describe_image(self, image: bytes, mime_type: str = "image/jpeg") -> str:
        self.descriptions.append(image)
        if self.fail_description:
            raise DescriptionError()
        return self.description


@pytest.fixture
def storage():
    """Create in-memory storage for tests."""
    return InMemoryStorage()


@pytest_asyncio.fixture
async def channel(storage):
    """Demo tenant, agent and channel; open every day with no hours set."""
    return await storage.seed_demo_tenant()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def dispatcher(storage, gateway):
    return OutboundDispatcher(storage, gateway)


@pytest.fixture
def handoff(storage, dispatcher):
    return HandoffService(storage, dispatcher)


@pytest.fixture
def pipeline(storage, gateway, llm, dispatcher, handoff):
    """Pipeline over fakes with a short debounce window."""
    return InboundPipeline(
        storage=storage,
        extractor=ContentExtractor(gateway, llm),
        debounce=DebounceCoordinator(storage, window_seconds=TEST_WINDOW_SECONDS),
        responder=ResponseGenerator(storage, llm),
        dispatcher=dispatcher,
        handoff=handoff,
        hours_gate=BusinessHoursGate("UTC"),
    )


@pytest.fixture
def make_event():
    """Factory for normalized inbound events."""

    def _make(
        text: str | None = "hi",
        message_id: str = "msg-1",
        phone: str = "5511999990000",
        from_me: bool = False,
        message_type: MessageType = MessageType.TEXT,
        channel_name: str = "demo",
    ) -> InboundEvent:
        return InboundEvent(
            channel_name=channel_name,
            message_id=message_id,
            phone=phone,
            display_name="Ana",
            from_me=from_me,
            message_type=message_type,
            text=text,
        )

    return _make


@pytest.fixture
def make_payload():
    """Factory for raw Evolution API webhook payloads."""

    def _make(
        text: str | None = "hi",
        message_id: str = "msg-1",
        remote_jid: str = "5511999990000@s.whatsapp.net",
        from_me: bool = False,
        instance: str = "demo",
        event: str = "messages.upsert",
        message_type: str = "conversation",
        message: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if message is None:
            message = {"conversation": text} if text is not None else {}
        return {
            "event": event,
            "instance": instance,
            "data": {
                "key": {"id": message_id, "fromMe": from_me, "remoteJid": remote_jid},
                "pushName": "Ana",
                "messageType": message_type,
                "message": message,
            },
        }

    return _make


@pytest.fixture
def app(storage, gateway, pipeline, handoff):
    """Create test application wired to the in-memory fakes."""
    app = create_app()
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_handoff] = lambda: handoff
    return app


@pytest_asyncio.fixture
async def client(app):
    """Create test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
