"""Evolution API WhatsApp channel adapter."""

import base64
import binascii
from typing import Any

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from zapdesk.core.config import settings
from zapdesk.core.exceptions import DispatchError, InvalidWebhookPayload, MediaFetchError
from zapdesk.models import InboundEvent, MessageType
from zapdesk.services.channels.base import ChannelAdapter

logger = structlog.get_logger()

MESSAGE_UPSERT_EVENT = "messages.upsert"

_MESSAGE_TYPES = {
    "conversation": MessageType.TEXT,
    "extendedTextMessage": MessageType.TEXT,
    "audioMessage": MessageType.AUDIO,
    "imageMessage": MessageType.IMAGE,
}


def _normalize_event_name(event: str) -> str:
    return event.strip().lower().replace("_", ".").replace("-", ".")


class EvolutionAPIAdapter(ChannelAdapter):
    """Evolution API channel adapter.

    Handles:
    - Webhook parsing for ``messages.upsert`` events
    - Sending text via ``/message/sendText/{instance}``
    - Media download via ``/chat/getBase64FromMediaMessage/{instance}``
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.evolution_api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.evolution_api_key
        self.timeout = timeout or settings.gateway_timeout_seconds
        self._transport = transport

        if not self.api_key:
            logger.warning("Evolution API global key not configured")

    @property
    def channel_name(self) -> str:
        return "whatsapp"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    def parse_webhook(self, payload: dict[str, Any]) -> InboundEvent | None:
        """Parse an Evolution API webhook payload.

        Evolution posts JSON shaped like::

            {"event": "messages.upsert", "instance": "sales",
             "data": {"key": {"id": ..., "fromMe": false, "remoteJid": "5511...@s.whatsapp.net"},
                      "pushName": "Ana", "messageType": "conversation",
                      "message": {"conversation": "hi"}}}
        """
        event = _normalize_event_name(str(payload.get("event") or ""))
        if event != MESSAGE_UPSERT_EVENT:
            logger.debug("Webhook is not a message event", webhook_event=event)
            return None

        data = payload.get("data")
        if not isinstance(data, dict):
            raise InvalidWebhookPayload("missing data")

        instance_name = payload.get("instance")
        if not instance_name:
            raise InvalidWebhookPayload("missing instance")

        key = data.get("key")
        if not isinstance(key, dict):
            raise InvalidWebhookPayload("missing key")

        remote_jid = key.get("remoteJid") or ""
        message_id = key.get("id")
        if not remote_jid or not message_id:
            raise InvalidWebhookPayload("missing remoteJid or message id", {"instance": instance_name})

        if remote_jid.endswith("@g.us") or remote_jid.endswith("@broadcast"):
            logger.debug("Ignoring group/broadcast message", remote_jid=remote_jid)
            return None

        phone = remote_jid.split("@")[0]
        message = data.get("message") or {}
        text = message.get("conversation") or (message.get("extendedTextMessage") or {}).get("text")

        if text:
            message_type = MessageType.TEXT
        else:
            raw_type = data.get("messageType") or next(iter(message), "")
            message_type = _MESSAGE_TYPES.get(raw_type, MessageType.UNSUPPORTED)
            if message_type == MessageType.TEXT:
                # Declared as text but carried no body
                message_type = MessageType.UNSUPPORTED

        inbound = InboundEvent(
            channel_name=instance_name,
            message_id=message_id,
            phone=phone,
            display_name=data.get("pushName") or phone,
            from_me=key.get("fromMe") is True,
            message_type=message_type,
            text=text,
            raw_payload=payload,
        )

        logger.info(
            "Parsed WhatsApp message",
            instance=instance_name,
            phone=phone,
            message_type=message_type.value,
            from_me=inbound.from_me,
        )

        return inbound

    async def send_text(
        self,
        instance_name: str,
        token: str,
        recipient: str,
        text: str,
    ) -> dict[str, Any]:
        """Send a WhatsApp text message through an Evolution instance."""
        try:
            body = await self._post_send_text(instance_name, token, recipient, text)
        except httpx.HTTPStatusError as e:
            logger.error(
                "Failed to send WhatsApp message",
                instance=instance_name,
                status_code=e.response.status_code,
                to=recipient,
            )
            raise DispatchError(
                channel=instance_name,
                recipient=recipient,
                reason=f"HTTP {e.response.status_code}: {e.response.text}",
            ) from e
        except httpx.HTTPError as e:
            logger.error("Failed to reach Evolution API", instance=instance_name, error=str(e), to=recipient)
            raise DispatchError(channel=instance_name, recipient=recipient, reason=str(e)) from e

        message_id = (body.get("key") or {}).get("id")

        logger.info(
            "Sent WhatsApp message",
            instance=instance_name,
            message_id=message_id,
            to=recipient,
        )

        return {"message_id": message_id, "status": body.get("status"), "to": recipient}

    @retry(
        retry=retry_if_exception_type(httpx.ConnectError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _post_send_text(
        self,
        instance_name: str,
        token: str,
        recipient: str,
        text: str,
    ) -> dict[str, Any]:
        # Only connect errors are retried: the request never reached the gateway
        async with self._client() as client:
            response = await client.post(
                f"/message/sendText/{instance_name}",
                headers={"apikey": token},
                json={"number": recipient, "text": text},
            )
            response.raise_for_status()
            try:
                return response.json()
            except ValueError:
                return {}

    async def fetch_media(self, instance_name: str, message_id: str) -> bytes:
        """Download media as base64 and decode it."""
        try:
            async with self._client() as client:
                response = await client.post(
                    f"/chat/getBase64FromMediaMessage/{instance_name}",
                    headers={"apikey": self.api_key},
                    json={"message": {"key": {"id": message_id}}},
                )
                response.raise_for_status()
                encoded = response.json().get("base64")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Media download failed", instance=instance_name, message_id=message_id, error=str(e))
            raise MediaFetchError("media", message_id) from e

        if not encoded:
            logger.warning("Media download returned no content", instance=instance_name, message_id=message_id)
            raise MediaFetchError("media", message_id)

        try:
            return base64.b64decode(encoded)
        except (binascii.Error, ValueError) as e:
            raise MediaFetchError("media", message_id) from e


# Singleton instance
_evolution_adapter: EvolutionAPIAdapter | None = None


def get_evolution_adapter() -> EvolutionAPIAdapter:
    """Get or create the Evolution API adapter singleton."""
    global _evolution_adapter
    if _evolution_adapter is None:
        _evolution_adapter = EvolutionAPIAdapter()
    return _evolution_adapter
