"""Content extraction - turns inbound text, audio and images into plain text."""

import structlog

from zapdesk.core.exceptions import UnsupportedContent
from zapdesk.models import AUDIO_TAG, IMAGE_TAG, Agent, ExtractedContent, InboundEvent, MessageType
from zapdesk.services.channels.base import ChannelAdapter
from zapdesk.services.llm.provider import LLMProvider

logger = structlog.get_logger()


class ContentExtractor:
    """Maps an inbound event plus the agent's capability flags to text.

    Audio becomes ``"[Audio]: <transcript>"`` and images become
    ``"[Image]: <description>"``; the dashboard keys its voice/image badges
    off those tags. Every failure degrades to a fallback result instead of
    raising.
    """

    def __init__(self, gateway: ChannelAdapter, llm_provider: LLMProvider) -> None:
        self.gateway = gateway
        self.llm = llm_provider

    async def extract(self, event: InboundEvent, agent: Agent | None) -> ExtractedContent:
        try:
            if event.message_type == MessageType.TEXT:
                text = (event.text or "").strip()
                if not text:
                    raise UnsupportedContent(event.message_type.value, reason="empty_text")
                return ExtractedContent(text=event.text)

            if event.message_type == MessageType.AUDIO:
                if agent is None or not agent.enable_audio:
                    raise UnsupportedContent("audio", reason="capability_disabled")
                audio = await self.gateway.fetch_media(event.channel_name, event.message_id)
                transcript = await self.llm.transcribe(audio)
                return ExtractedContent(text=f"{AUDIO_TAG}: {transcript}")

            if event.message_type == MessageType.IMAGE:
                if agent is None or not agent.enable_image:
                    raise UnsupportedContent("image", reason="capability_disabled")
                image = await self.gateway.fetch_media(event.channel_name, event.message_id)
                description = await self.llm.describe_image(image)
                return ExtractedContent(text=f"{IMAGE_TAG}: {description}")

            raise UnsupportedContent(event.message_type.value)

        except UnsupportedContent as e:
            logger.info(
                "Content extraction fell back",
                message_id=event.message_id,
                message_type=event.message_type.value,
                reason=e.details.get("reason"),
            )
            return ExtractedContent.fallback(e.details.get("reason", "unsupported_type"))
