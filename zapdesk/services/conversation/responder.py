"""AI response generator - builds the prompt and history, then calls the LLM."""

import structlog

from zapdesk.core.config import settings
from zapdesk.core.exceptions import LLMError
from zapdesk.models import Agent, BusinessProfile, Message, MessageSender
from zapdesk.services.llm.provider import LLMProvider
from zapdesk.storage.base import StorageBackend

logger = structlog.get_logger()


def build_system_prompt(agent: Agent | None, profile: BusinessProfile | None) -> str:
    """Agent instructions followed by the business facts."""
    parts = []
    if agent is not None:
        parts.append(agent.prompt.to_prompt())
    if profile is not None:
        parts.append(profile.to_prompt_context())
    return "\n\n".join(part for part in parts if part)


def build_history(messages: list[Message]) -> list[dict[str, str]]:
    """Map stored messages to user/assistant turns, oldest first.

    SYSTEM notes never reach the model. The trailing USER messages are the
    fragments being answered right now; they arrive as the final user turn
    instead, so they are left out here.
    """
    turns = [m for m in messages if m.sender != MessageSender.SYSTEM]
    while turns and turns[-1].sender == MessageSender.USER:
        turns.pop()
    return [m.to_llm_message() for m in turns]


class ResponseGenerator:
    """Generates one reply for a flushed debounce buffer."""

    def __init__(
        self,
        storage: StorageBackend,
        llm_provider: LLMProvider,
        history_limit: int | None = None,
    ) -> None:
        self.storage = storage
        self.llm = llm_provider
        self.history_limit = history_limit or settings.history_limit

    async def generate(
        self,
        conversation_id: str,
        text: str,
        agent: Agent | None,
        profile: BusinessProfile | None,
    ) -> str | None:
        """Generate a reply to ``text``.

        Returns:
            Reply text, or None if the model failed or answered nothing
        """
        recent = await self.storage.get_recent_messages(conversation_id, limit=self.history_limit)
        messages = build_history(recent)
        messages.append({"role": "user", "content": text})

        try:
            response = await self.llm.complete(
                messages=messages,
                system_prompt=build_system_prompt(agent, profile) or None,
            )
        except LLMError as e:
            logger.warning(
                "Generation failed, leaving message unanswered",
                conversation_id=conversation_id,
                error=e.message,
            )
            return None

        reply = response.content.strip()
        if not reply:
            logger.warning("Generation returned empty reply", conversation_id=conversation_id)
            return None

        return reply
