"""Custom exceptions for the application."""

from typing import Any


class AppException(Exception):
    """Base exception for application errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class InvalidWebhookPayload(AppException):
    """Raised when a gateway message event cannot be normalized."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            f"Invalid webhook payload: {reason}",
            code="INVALID_WEBHOOK_PAYLOAD",
            details={"reason": reason, **(details or {})},
        )


class ChannelNotFound(AppException):
    """Raised when a webhook references an unknown gateway instance."""

    def __init__(self, channel_name: str) -> None:
        super().__init__(
            f"Channel not found: {channel_name}",
            code="CHANNEL_NOT_FOUND",
            details={"channel_name": channel_name},
        )


class TenantNotFound(AppException):
    """Raised when a tenant is not found."""

    def __init__(self, tenant_id: str) -> None:
        super().__init__(
            f"Tenant not found: {tenant_id}",
            code="TENANT_NOT_FOUND",
            details={"tenant_id": tenant_id},
        )


class ConversationNotFound(AppException):
    """Raised when a conversation is not found."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(
            f"Conversation not found: {conversation_id}",
            code="CONVERSATION_NOT_FOUND",
            details={"conversation_id": conversation_id},
        )


class BufferContention(AppException):
    """Raised when the debounce buffer write keeps losing the token race."""

    def __init__(self, conversation_id: str, attempts: int) -> None:
        super().__init__(
            f"Could not append to debounce buffer after {attempts} attempts",
            code="BUFFER_CONTENTION",
            details={"conversation_id": conversation_id, "attempts": attempts},
        )


class UnsupportedContent(AppException):
    """Raised when inbound content cannot be turned into text."""

    def __init__(self, message_type: str, reason: str = "unsupported_type") -> None:
        super().__init__(
            f"Unsupported content: {message_type} ({reason})",
            code="UNSUPPORTED_CONTENT",
            details={"message_type": message_type, "reason": reason},
        )


class MediaFetchError(UnsupportedContent):
    """Raised when the gateway cannot return the raw media for a message."""

    def __init__(self, message_type: str, message_id: str) -> None:
        super().__init__(message_type, reason="media_fetch_failed")
        self.details["message_id"] = message_id


class TranscriptionError(UnsupportedContent):
    """Raised when speech-to-text fails or returns nothing."""

    def __init__(self) -> None:
        super().__init__("audio", reason="transcription_failed")


class DescriptionError(UnsupportedContent):
    """Raised when image description fails or returns nothing."""

    def __init__(self) -> None:
        super().__init__("image", reason="description_failed")


class LLMError(AppException):
    """Raised when LLM provider fails."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(
            message,
            code="LLM_ERROR",
            details={"provider": provider} if provider else {},
        )


class ChannelError(AppException):
    """Raised when channel operations fail."""

    def __init__(self, message: str, channel: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message,
            code="CHANNEL_ERROR",
            details={"channel": channel, **(details or {})},
        )


class DispatchError(ChannelError):
    """Raised when a generated reply could not be delivered to the contact."""

    def __init__(self, channel: str, recipient: str, reason: str) -> None:
        super().__init__(
            f"Failed to dispatch reply: {reason}",
            channel=channel,
            details={"recipient": recipient, "reason": reason},
        )
        self.code = "DISPATCH_ERROR"
