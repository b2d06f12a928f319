"""
Assistants API Schemas

Pydantic models for the request payloads and response objects of the
threads / messages / runs endpoints. Unknown fields are ignored so newer
API versions keep decoding.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class _ApiObject(BaseModel):
    model_config = ConfigDict(extra="ignore")


# --- Errors ---


class ApiErrorDetail(_ApiObject):
    """Nested error descriptor returned with non-2xx responses."""

    message: str = ""
    type: str | None = None
    param: str | None = None
    code: str | None = None


class ApiErrorResponse(_ApiObject):
    """Error envelope: {"error": {message, type, param, code}}."""

    error: ApiErrorDetail


# --- Requests ---


class AddMessagePayload(BaseModel):
    """Body of POST /threads/{thread_id}/messages."""

    role: Literal["user", "assistant"] = "user"
    content: str


class CreateRunPayload(BaseModel):
    """Body of POST /threads/{thread_id}/runs."""

    assistant_id: str


# --- Responses ---


class ThreadObject(_ApiObject):
    """Response of POST /threads."""

    id: str = Field(..., min_length=1)
    object: str = "thread"
    created_at: int | None = None
    metadata: dict[str, Any] | None = None


class RunObject(_ApiObject):
    """Response of POST /threads/{id}/runs and GET /threads/{id}/runs/{run_id}."""

    id: str = Field(..., min_length=1)
    object: str = "thread.run"
    created_at: int | None = None
    assistant_id: str | None = None
    thread_id: str | None = None
    status: str
    metadata: dict[str, Any] | None = None


class TextValue(_ApiObject):
    value: str = ""
    annotations: list[Any] = Field(default_factory=list)


class MessageContent(_ApiObject):
    """One content block of a thread message."""

    type: str
    text: TextValue | None = None


class ThreadMessage(_ApiObject):
    id: str
    object: str = "thread.message"
    created_at: int | None = None
    thread_id: str | None = None
    role: str
    content: list[MessageContent] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None

    def first_text(self) -> str | None:
        """Text of the first text-typed content block, if any."""
        for block in self.content:
            if block.type == "text" and block.text is not None:
                return block.text.value
        return None


class MessageList(_ApiObject):
    """Response of GET /threads/{id}/messages (newest first)."""

    object: str = "list"
    data: list[ThreadMessage] = Field(default_factory=list)
    first_id: str | None = None
    last_id: str | None = None
    has_more: bool = False


# Run statuses with special handling in the poll loop. Every other
# status (queued, in_progress, cancelling, ...) keeps the loop waiting.
RUN_STATUS_COMPLETED = "completed"
RUN_STATUS_FAILED = "failed"
