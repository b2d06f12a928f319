"""
Assistants API Client

Drives one conversation thread against a hosted assistant: create (or adopt)
a thread, post a user message, start a run, poll the run at a fixed interval
and fetch the newest reply.

The client never reads process configuration. Credentials and tuning are
constructor arguments; `AssistantClient.from_settings` is the bridge from
`AssistantSettings` for callers that do.
"""

import time
from typing import Any, Callable, Type, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from bridge.shared.assistant.config import (
    ASSISTANTS_BETA_HEADER,
    DEFAULT_BASE_URL,
    AssistantSettings,
)
from bridge.shared.assistant.schemas import (
    RUN_STATUS_COMPLETED,
    RUN_STATUS_FAILED,
    AddMessagePayload,
    ApiErrorResponse,
    CreateRunPayload,
    MessageList,
    RunObject,
    ThreadMessage,
    ThreadObject,
)
from bridge.shared.exceptions import (
    ConversationError,
    InitializationError,
    MessagePostError,
    NoReplyContentError,
    PollTimeoutError,
    RunFailedError,
    RunStartError,
    SessionStateError,
)
from bridge.shared.state_machine import ConversationState, validate_transition


log = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

DEFAULT_POLL_MAX_ATTEMPTS = 4
DEFAULT_POLL_INTERVAL_SECONDS = 4.0
DEFAULT_TIMEOUT_SECONDS = 30.0


class AssistantClient:
    """
    Single-thread conversation with an Assistants API assistant.

    Not safe for concurrent use; create one instance per email.

    Usage:
        with AssistantClient(api_key="sk-...", assistant_id="asst_...") as client:
            client.initialize()
            reply = client.converse("Summarise this email: ...")
    """

    def __init__(
        self,
        api_key: str,
        assistant_id: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        beta_header: str = ASSISTANTS_BETA_HEADER,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        poll_max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS,
        suppress_logging: bool = False,
        http_client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            api_key: Bearer credential for the API
            assistant_id: Assistant runs are started for
            base_url: API base URL, without trailing slash
            beta_header: Value of the OpenAI-Beta protocol header
            timeout: Per-request timeout when the client builds its own transport
            poll_interval: Default seconds between run status polls
            poll_max_attempts: Default number of run status polls
            suppress_logging: Drop error log lines; errors are still raised
            http_client: Transport to use. Not closed by this client.
            sleep: Wait function used by the poll loop
        """
        self._api_key = api_key
        self._assistant_id = assistant_id
        self._base_url = base_url.rstrip("/")
        self._beta_header = beta_header
        self._poll_interval = poll_interval
        self._poll_max_attempts = poll_max_attempts
        self._suppress_logging = suppress_logging
        self._sleep = sleep

        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

        self._thread_id = ""
        self._run_id = ""
        self._state = ConversationState.UNINITIALIZED

    @classmethod
    def from_settings(
        cls,
        settings: AssistantSettings,
        **kwargs: Any,
    ) -> "AssistantClient":
        """
        Build a client from AssistantSettings.

        Raises:
            ConfigurationError: If the credential or assistant id is missing
        """
        api_key, assistant_id = settings.require_credentials()
        kwargs.setdefault("suppress_logging", settings.suppress_logging)
        return cls(
            api_key=api_key,
            assistant_id=assistant_id,
            base_url=settings.api_base_url,
            beta_header=settings.api_beta_header,
            timeout=settings.request_timeout_seconds,
            poll_interval=settings.poll_interval_seconds,
            poll_max_attempts=settings.poll_max_attempts,
            **kwargs,
        )

    # --- Session state ---

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def thread_id(self) -> str:
        return self._thread_id

    @thread_id.setter
    def thread_id(self, thread_id: str) -> None:
        """Adopt an existing server-side thread."""
        if not thread_id:
            raise ValueError("thread_id must be a non-empty string")
        self._transition(ConversationState.THREAD_READY)
        self._thread_id = thread_id
        self._run_id = ""

    @property
    def assistant_id(self) -> str:
        return self._assistant_id

    @assistant_id.setter
    def assistant_id(self, assistant_id: str) -> None:
        self._assistant_id = assistant_id

    @property
    def suppress_logging(self) -> bool:
        return self._suppress_logging

    @property
    def run_id(self) -> str:
        """
        Identifier of the most recently started run.

        Raises:
            SessionStateError: If no run was started in this session
        """
        if not self._run_id:
            raise SessionStateError(
                "No run has been started in this session",
                state=self._state.value,
            )
        return self._run_id

    def _transition(self, new_state: ConversationState) -> None:
        validate_transition(self._state, new_state)
        self._state = new_state

    def _log_error(self, event: str, level: str = "error", **kwargs: Any) -> None:
        if self._suppress_logging:
            return
        getattr(log, level)(event, thread_id=self._thread_id or None, **kwargs)

    # --- HTTP plumbing ---

    def _headers(self, with_body: bool) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "OpenAI-Beta": self._beta_header,
        }
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _send(
        self,
        method: str,
        path: str,
        payload: BaseModel | None = None,
    ) -> httpx.Response:
        with_body = method == "POST"
        return self._http.request(
            method,
            f"{self._base_url}{path}",
            headers=self._headers(with_body),
            content=payload.model_dump_json() if payload is not None else None,
        )

    @staticmethod
    def _describe_failure(response: httpx.Response) -> tuple[str, Any]:
        """
        Extract a diagnostic from an error response.

        Returns the API's error message and descriptor when the body has the
        {"error": {...}} shape, otherwise the raw body text and None.
        """
        try:
            parsed = ApiErrorResponse.model_validate_json(response.content)
        except ValidationError:
            return response.text, None
        return parsed.error.message, parsed.error

    def _call(
        self,
        error_cls: Type[ConversationError],
        operation: str,
        method: str,
        path: str,
        response_model: Type[T],
        payload: BaseModel | None = None,
    ) -> T:
        """
        Perform one API request and decode the response.

        Raises:
            error_cls: On transport error, non-2xx status or undecodable body
        """
        try:
            response = self._send(method, path, payload)
        except httpx.HTTPError as e:
            self._log_error(f"{operation}_request_failed", error=str(e))
            raise error_cls(f"{operation} request failed: {e}") from e

        if not response.is_success:
            message, api_error = self._describe_failure(response)
            self._log_error(
                f"{operation}_rejected",
                status_code=response.status_code,
                error=message,
            )
            raise error_cls(
                f"{operation} failed with status {response.status_code}: {message}",
                status_code=response.status_code,
                api_error=api_error,
                body=response.text,
            )

        try:
            return response_model.model_validate_json(response.content)
        except ValidationError as e:
            self._log_error(
                f"{operation}_decode_failed",
                error=str(e),
                body_preview=response.text[:200],
            )
            raise error_cls(
                f"{operation} returned an unexpected body: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

    # --- Operations ---

    def initialize(
        self,
        existing_thread_id: str | None = None,
        *,
        reuse_thread: bool = False,
    ) -> str:
        """
        Make the session ready for conversation.

        Adopts `existing_thread_id` without a network call when `reuse_thread`
        is set, otherwise creates a new thread.

        Returns:
            The thread id

        Raises:
            InitializationError: If the thread cannot be created
        """
        if reuse_thread and existing_thread_id:
            self.thread_id = existing_thread_id
            log.debug("thread_adopted", thread_id=existing_thread_id)
            return self._thread_id

        return self._create_thread()

    def reset_thread(self) -> str:
        """Abandon the current thread and start a new one."""
        return self._create_thread()

    def _create_thread(self) -> str:
        thread = self._call(
            InitializationError,
            "create_thread",
            "POST",
            "/threads",
            ThreadObject,
        )
        self._transition(ConversationState.THREAD_READY)
        self._thread_id = thread.id
        self._run_id = ""
        log.info("thread_created", thread_id=thread.id)
        return thread.id

    def converse(
        self,
        prompt: str,
        *,
        poll_interval: float | None = None,
        max_attempts: int | None = None,
    ) -> str:
        """
        Post a user message, run the assistant and return its reply.

        Args:
            prompt: User message text
            poll_interval: Seconds between status polls, defaults to the client's
            max_attempts: Number of status polls, defaults to the client's

        Returns:
            Text of the assistant's reply

        Raises:
            SessionStateError: If no thread is ready
            MessagePostError: If the message cannot be added
            RunStartError: If the run cannot be started
            RunFailedError: If the run ends in the failed status
            PollTimeoutError: If the run does not finish within max_attempts polls
            NoReplyContentError: If the finished run left no text reply
        """
        if not self._thread_id or not self._state.can_start_turn:
            raise SessionStateError(
                "Thread not ready for a new message; call initialize() first",
                state=self._state.value,
            )

        self._post_message(prompt)

        self._start_run()

        interval = self._poll_interval if poll_interval is None else poll_interval
        attempts = self._poll_max_attempts if max_attempts is None else max_attempts
        return self._poll_for_reply(interval, attempts)

    def _post_message(self, prompt: str) -> None:
        self._call(
            MessagePostError,
            "post_message",
            "POST",
            f"/threads/{self._thread_id}/messages",
            ThreadMessage,
            payload=AddMessagePayload(role="user", content=prompt),
        )
        self._transition(ConversationState.MESSAGE_POSTED)
        log.debug("message_posted", thread_id=self._thread_id, length=len(prompt))

    def _start_run(self) -> None:
        """Start a run for the configured assistant."""
        run = self._call(
            RunStartError,
            "start_run",
            "POST",
            f"/threads/{self._thread_id}/runs",
            RunObject,
            payload=CreateRunPayload(assistant_id=self._assistant_id),
        )

        self._run_id = run.id
        self._transition(ConversationState.RUN_STARTED)
        log.info(
            "run_started",
            thread_id=self._thread_id,
            run_id=run.id,
            assistant_id=self._assistant_id,
        )

    def _wait(self, interval: float) -> None:
        if interval > 0:
            self._sleep(interval)

    def _poll_once(self, attempt: int) -> RunObject | None:
        """Fetch run status once; None when this poll should simply be retried."""
        path = f"/threads/{self._thread_id}/runs/{self.run_id}"
        try:
            response = self._send("GET", path)
        except httpx.HTTPError as e:
            self._log_error("poll_request_failed", level="warning", attempt=attempt, error=str(e))
            return None

        if not response.is_success:
            message, _ = self._describe_failure(response)
            self._log_error(
                "poll_rejected",
                level="warning",
                attempt=attempt,
                status_code=response.status_code,
                error=message,
            )
            return None

        try:
            return RunObject.model_validate_json(response.content)
        except ValidationError as e:
            self._log_error("poll_decode_failed", level="warning", attempt=attempt, error=str(e))
            return None

    def _poll_for_reply(self, interval: float, max_attempts: int) -> str:
        """
        Poll the current run until it resolves.

        Waits `interval` after every poll that did not resolve the run,
        so exhausting the budget costs exactly `max_attempts` waits.
        """
        for attempt in range(1, max_attempts + 1):
            run = self._poll_once(attempt)

            if run is not None:
                if run.status == RUN_STATUS_COMPLETED:
                    self._transition(ConversationState.RUN_COMPLETED)
                    log.info("run_completed", thread_id=self._thread_id, run_id=run.id, attempt=attempt)
                    return self.fetch_latest_reply()

                if run.status == RUN_STATUS_FAILED:
                    self._transition(ConversationState.RUN_FAILED)
                    self._log_error("run_failed", run_id=run.id, attempt=attempt)
                    raise RunFailedError(
                        f"Run '{run.id}' failed",
                        run_id=run.id,
                    )

                log.debug("run_pending", run_id=run.id, status=run.status, attempt=attempt)

            self._wait(interval)

        self._transition(ConversationState.RUN_TIMED_OUT)
        self._log_error("poll_timed_out", run_id=self._run_id, max_attempts=max_attempts)
        raise PollTimeoutError(
            f"Run did not finish after {max_attempts} polls",
            run_id=self._run_id,
            max_attempts=max_attempts,
        )

    def fetch_latest_reply(self) -> str:
        """
        Return the text of the newest message on the thread.

        Raises:
            SessionStateError: If no thread is ready
            NoReplyContentError: If the list cannot be fetched, is empty,
                or the newest message has no text block
        """
        if not self._thread_id:
            raise SessionStateError(
                "Thread not initialized; call initialize() first",
                state=self._state.value,
            )

        messages = self._call(
            NoReplyContentError,
            "list_messages",
            "GET",
            f"/threads/{self._thread_id}/messages",
            MessageList,
        )

        if not messages.data:
            self._log_error("no_reply_content", reason="empty_message_list")
            raise NoReplyContentError("Thread has no messages")

        text = messages.data[0].first_text()
        if text is None:
            self._log_error(
                "no_reply_content",
                reason="no_text_block",
                message_id=messages.data[0].id,
            )
            raise NoReplyContentError(
                "Newest message has no text content",
                message_id=messages.data[0].id,
            )

        return text

    # --- Resource handling ---

    def close(self) -> None:
        """Close the HTTP transport if this client created it."""
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "AssistantClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
