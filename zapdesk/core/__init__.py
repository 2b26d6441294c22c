"""Core module - configuration and utilities."""

from zapdesk.core.config import settings
from zapdesk.core.exceptions import (
    AppException,
    BufferContention,
    ChannelError,
    ChannelNotFound,
    ConversationNotFound,
    DispatchError,
    InvalidWebhookPayload,
    LLMError,
    TenantNotFound,
    UnsupportedContent,
)

__all__ = [
    "settings",
    "AppException",
    "BufferContention",
    "ChannelError",
    "ChannelNotFound",
    "ConversationNotFound",
    "DispatchError",
    "InvalidWebhookPayload",
    "LLMError",
    "TenantNotFound",
    "UnsupportedContent",
]
