"""
Assistant Integration for the Mail Bridge

Talks to an OpenAI-style Assistants API (threads, messages, runs).

This package provides:
- AssistantClient for single-thread conversations with fixed-interval polling
- AssistantSettings for configuration management
- Pydantic schemas for API payloads and responses
"""

from bridge.shared.assistant.config import AssistantSettings, get_assistant_settings
from bridge.shared.assistant.client import AssistantClient


__all__ = [
    # Client
    "AssistantClient",
    # Settings
    "AssistantSettings",
    "get_assistant_settings",
]
