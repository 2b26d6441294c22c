"""Debounce coordinator - coalesces bursts of fragments into one reply.

Every inbound fragment is handled by its own invocation with no shared
memory. Each invocation appends its text to the conversation's buffer and
remembers the token its write produced. It then sleeps through the quiet
window and checks the token again. Only the invocation whose token is still
current when it wakes up flushes the buffer; every earlier one sees a newer
token and returns quietly.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime

import structlog

from zapdesk.core.config import settings
from zapdesk.core.exceptions import BufferContention, ConversationNotFound
from zapdesk.storage.base import StorageBackend

logger = structlog.get_logger()


class DebounceCoordinator:
    """Decides which invocation, if any, owns the flush for a conversation."""

    def __init__(
        self,
        storage: StorageBackend,
        window_seconds: float | None = None,
        max_write_attempts: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.storage = storage
        self.window_seconds = (
            window_seconds if window_seconds is not None else settings.debounce_window_seconds
        )
        self.max_write_attempts = max_write_attempts or settings.buffer_write_attempts
        self._sleep = sleep

    async def submit(self, conversation_id: str, text: str) -> int:
        """Append ``text`` to the buffer and return this invocation's token.

        The append is a conditional write against the token just read; losing
        to a concurrent writer means re-reading and appending again.

        Raises:
            BufferContention: If every attempt lost the race
        """
        for attempt in range(1, self.max_write_attempts + 1):
            conversation = await self.storage.get_conversation(conversation_id)
            if conversation is None:
                raise ConversationNotFound(conversation_id)

            new_buffer = f"{conversation.temp_buffer} {text}".strip()
            token = await self.storage.compare_and_set_buffer(
                conversation_id,
                expected_token=conversation.buffer_token,
                new_buffer=new_buffer,
                at=datetime.utcnow(),
            )
            if token is not None:
                logger.info(
                    "Debounce window opened",
                    conversation_id=conversation_id,
                    token=token,
                    buffer_length=len(new_buffer),
                )
                return token

            logger.debug("Buffer write lost the race, retrying", conversation_id=conversation_id, attempt=attempt)

        raise BufferContention(conversation_id, self.max_write_attempts)

    async def wait_and_flush(self, conversation_id: str, token: int) -> str | None:
        """Wait out the quiet window, then flush if no newer fragment arrived.

        Returns:
            The combined buffered text if this invocation owns the flush,
            otherwise None
        """
        await self._sleep(self.window_seconds)

        conversation = await self.storage.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFound(conversation_id)

        if conversation.buffer_token > token:
            logger.info(
                "Debounce superseded by newer fragment",
                conversation_id=conversation_id,
                token=token,
                current_token=conversation.buffer_token,
            )
            return None

        flushed = await self.storage.clear_buffer_if_token_matches(conversation_id, token)
        if flushed is None:
            logger.info("Debounce superseded during flush", conversation_id=conversation_id, token=token)
            return None

        if conversation.human_active:
            logger.info(
                "Operator took over during debounce, dropping buffer",
                conversation_id=conversation_id,
            )
            return None

        if not flushed.strip():
            logger.debug("Flushed empty buffer", conversation_id=conversation_id)
            return None

        logger.info(
            "Debounce flushed",
            conversation_id=conversation_id,
            token=token,
            text_length=len(flushed),
        )
        return flushed
