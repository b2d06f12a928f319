# Shared Infrastructure for the Mail Bridge
"""
Shared infrastructure components for the email-to-assistant bridge.

This package provides:
- Conversation state machine (ConversationState, valid transitions)
- Pydantic models for SES notifications
- S3 tool for fetching stored emails
- Assistants API client and settings
- Configuration management
- Custom exceptions
"""

from bridge.shared.state_machine import ConversationState, VALID_TRANSITIONS, validate_transition
from bridge.shared.exceptions import (
    BridgeError,
    ParseError,
    ConfigurationError,
    BlobNotFoundError,
    BlobTransportError,
    ConversationError,
    InitializationError,
    MessagePostError,
    RunStartError,
    RunFailedError,
    PollTimeoutError,
    NoReplyContentError,
    SessionStateError,
)
from bridge.shared.config import Settings, get_settings

__all__ = [
    # State machine
    "ConversationState",
    "VALID_TRANSITIONS",
    "validate_transition",
    # Exceptions
    "BridgeError",
    "ParseError",
    "ConfigurationError",
    "BlobNotFoundError",
    "BlobTransportError",
    "ConversationError",
    "InitializationError",
    "MessagePostError",
    "RunStartError",
    "RunFailedError",
    "PollTimeoutError",
    "NoReplyContentError",
    "SessionStateError",
    # Config
    "Settings",
    "get_settings",
]
