"""
Custom Exceptions for the Mail Bridge

All exceptions follow the pattern of specific, actionable errors
with context needed for debugging and logging.
"""

from dataclasses import dataclass
from typing import Any


class BridgeError(Exception):
    """Base exception for the email-to-assistant bridge."""

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class ParseError(BridgeError):
    """Raw message is not a decodable mail message."""


class ConfigurationError(BridgeError):
    """Required configuration (credential, assistant id) is missing."""

    def __init__(self, setting: str, env_var: str | None = None) -> None:
        self.setting = setting
        self.env_var = env_var
        hint = f" Set {env_var}." if env_var else ""
        super().__init__(
            f"Missing required setting '{setting}'.{hint}",
            setting=setting,
        )


@dataclass
class InvalidStateTransitionError(BridgeError):
    """Attempted invalid conversation state transition."""

    current_state: str
    new_state: str
    allowed_transitions: list[str]

    def __init__(
        self,
        current_state: str,
        new_state: str,
        allowed_transitions: list[str],
    ) -> None:
        self.current_state = current_state
        self.new_state = new_state
        self.allowed_transitions = allowed_transitions
        super().__init__(
            f"Cannot transition from '{current_state}' to '{new_state}'. "
            f"Allowed transitions: {allowed_transitions}",
            current_state=current_state,
            new_state=new_state,
            allowed_transitions=allowed_transitions,
        )


# --- Blob store ---


@dataclass
class BlobStoreError(BridgeError):
    """S3 operation on a stored email failed."""

    bucket: str
    key: str

    def __init__(
        self,
        bucket: str,
        key: str,
        error_message: str | None = None,
    ) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(
            f"Failed to fetch s3://{bucket}/{key}: {error_message or 'Unknown error'}",
            bucket=bucket,
            key=key,
        )


class BlobNotFoundError(BlobStoreError):
    """Stored email does not exist."""


class BlobTransportError(BlobStoreError):
    """S3 request failed for a reason other than a missing object."""


# --- Conversation ---


class ConversationError(BridgeError):
    """
    Base for failures of a single conversation attempt.

    `stage` names the step that failed so callers can report it.
    API failures carry the HTTP status, the decoded error descriptor
    (when the body had the expected shape) and the raw body.
    """

    stage = "conversation"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        api_error: Any | None = None,
        body: str | None = None,
        **context: Any,
    ) -> None:
        self.status_code = status_code
        self.api_error = api_error
        self.body = body
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(message, **context)


class InitializationError(ConversationError):
    """Thread could not be created."""

    stage = "initialize"


class MessagePostError(ConversationError):
    """User message could not be added to the thread."""

    stage = "post_message"


class RunStartError(ConversationError):
    """Assistant run could not be started on the thread."""

    stage = "start_run"


class RunFailedError(ConversationError):
    """Run reached the `failed` status."""

    stage = "poll_run"


class PollTimeoutError(ConversationError):
    """Run did not reach a terminal status within the poll budget."""

    stage = "poll_run"


class NoReplyContentError(ConversationError):
    """Thread has no text reply to return."""

    stage = "fetch_reply"


class SessionStateError(ConversationError):
    """Operation is not valid in the session's current state."""

    stage = "session"
