"""LLM Provider using LiteLLM for text, speech-to-text and vision."""

import base64
import time
from dataclasses import dataclass, field
from typing import Any

import litellm
import structlog

from zapdesk.core.config import settings
from zapdesk.core.exceptions import DescriptionError, LLMError, TranscriptionError

logger = structlog.get_logger()

# Configure LiteLLM
litellm.set_verbose = settings.app_debug

# Set API keys from settings
if settings.openai_api_key:
    litellm.openai_key = settings.openai_api_key
if settings.anthropic_api_key:
    litellm.anthropic_key = settings.anthropic_api_key
if settings.google_api_key:
    litellm.google_key = settings.google_api_key

IMAGE_DESCRIPTION_PROMPT = (
    "Describe this image in detail so a customer support assistant "
    "can answer the customer who sent it."
)


@dataclass
class LLMResponse:
    """Response from LLM completion."""

    content: str
    model: str
    tokens_input: int = 0
    tokens_output: int = 0
    finish_reason: str = "stop"
    latency_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)


class LLMProvider:
    """LLM provider with multi-model support and fallbacks.

    Uses LiteLLM for unified API across OpenAI, Anthropic, Google, and more.
    Completion failures fall over to the configured fallback models once;
    there is no retry loop, a failed generation just means no reply.
    """

    def __init__(
        self,
        primary_model: str | None = None,
        fallback_models: list[str] | None = None,
        transcription_model: str | None = None,
        vision_model: str | None = None,
        default_temperature: float = 0.7,
        default_max_tokens: int = 500,
    ) -> None:
        self.primary_model = primary_model or settings.litellm_primary_model
        self.fallback_models = fallback_models or [settings.litellm_fallback_model]
        self.transcription_model = transcription_model or settings.transcription_model
        self.vision_model = vision_model or settings.vision_model
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

        logger.info(
            "LLM Provider initialized",
            primary=self.primary_model,
            fallbacks=self.fallback_models,
        )

    async def complete(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a completion using the LLM.

        Args:
            messages: List of message dicts with 'role' and 'content'
            system_prompt: Optional system prompt to prepend
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum tokens to generate
            model: Override model selection
            **kwargs: Additional parameters passed to LiteLLM

        Returns:
            LLMResponse with generated content and metadata

        Raises:
            LLMError: If the primary and every fallback model fail
        """
        model_to_use = model or self.primary_model
        temp = temperature if temperature is not None else self.default_temperature
        max_tok = max_tokens or self.default_max_tokens

        # Prepare messages with system prompt
        full_messages = []
        if system_prompt:
            full_messages.append({"role": "system", "content": system_prompt})
        full_messages.extend(messages)

        start_time = time.perf_counter()

        try:
            response = await litellm.acompletion(
                model=model_to_use,
                messages=full_messages,
                temperature=temp,
                max_tokens=max_tok,
                **kwargs,
            )
        except Exception as e:
            if model is not None:
                # Already running as a fallback; let the caller move on
                raise LLMError(f"LLM completion failed: {e}", provider=model_to_use) from e

            logger.warning(
                "LLM completion failed, trying fallback",
                model=model_to_use,
                error=str(e),
            )

            for fallback_model in self.fallback_models:
                if fallback_model == model_to_use:
                    continue

                try:
                    return await self.complete(
                        messages=messages,
                        system_prompt=system_prompt,
                        temperature=temperature,
                        max_tokens=max_tokens,
                        model=fallback_model,
                        **kwargs,
                    )
                except LLMError as fallback_error:
                    logger.warning(
                        "Fallback model also failed",
                        model=fallback_model,
                        error=fallback_error.message,
                    )
                    continue

            raise LLMError(f"All LLM providers failed: {e}", provider=model_to_use) from e

        latency_ms = (time.perf_counter() - start_time) * 1000

        usage = getattr(response, "usage", None)
        tokens_input = getattr(usage, "prompt_tokens", 0) or 0
        tokens_output = getattr(usage, "completion_tokens", 0) or 0

        content = response.choices[0].message.content or ""
        finish_reason = response.choices[0].finish_reason or "stop"

        logger.info(
            "LLM completion successful",
            model=model_to_use,
            tokens_in=tokens_input,
            tokens_out=tokens_output,
            latency_ms=round(latency_ms, 2),
        )

        return LLMResponse(
            content=content,
            model=model_to_use,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            finish_reason=finish_reason,
            latency_ms=latency_ms,
            metadata={"raw_response_id": getattr(response, "id", None)},
        )

    async def transcribe(self, audio: bytes, filename: str = "audio.ogg") -> str:
        """Transcribe a voice note.

        Raises:
            TranscriptionError: If the call fails or yields no speech
        """
        try:
            response = await litellm.atranscription(
                model=self.transcription_model,
                file=(filename, audio),
            )
        except Exception as e:
            logger.warning("Audio transcription failed", model=self.transcription_model, error=str(e))
            raise TranscriptionError() from e

        text = (getattr(response, "text", "") or "").strip()
        if not text:
            raise TranscriptionError()

        logger.info("Audio transcribed", model=self.transcription_model, length=len(text))
        return text

    async def describe_image(self, image: bytes, mime_type: str = "image/jpeg") -> str:
        """Describe an image with a vision-capable model.

        Raises:
            DescriptionError: If the call fails or yields no description
        """
        data_uri = f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": IMAGE_DESCRIPTION_PROMPT},
                    {"type": "image_url", "image_url": {"url": data_uri}},
                ],
            }
        ]

        try:
            response = await self.complete(messages=messages, model=self.vision_model, temperature=0.2)
        except LLMError as e:
            logger.warning("Image description failed", model=self.vision_model, error=e.message)
            raise DescriptionError() from e

        description = response.content.strip()
        if not description:
            raise DescriptionError()
        return description


# Singleton instance
_llm_provider: LLMProvider | None = None


def get_llm_provider() -> LLMProvider:
    """Get or create the LLM provider singleton."""
    global _llm_provider
    if _llm_provider is None:
        _llm_provider = LLMProvider()
    return _llm_provider
