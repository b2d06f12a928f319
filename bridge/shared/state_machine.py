"""
Conversation State Machine

Defines the states of a single assistant conversation session and the
transitions the client is allowed to make between them.
"""

from enum import Enum
from typing import Final

import structlog

from bridge.shared.exceptions import InvalidStateTransitionError

log = structlog.get_logger()


class ConversationState(str, Enum):
    """
    Conversation session state.

    A session moves forward through one request/reply turn and may
    start another turn on the same thread once the previous run resolved.
    """

    UNINITIALIZED = "UNINITIALIZED"
    """No thread allocated or adopted yet."""

    THREAD_READY = "THREAD_READY"
    """Thread id known, no message posted in the current turn."""

    MESSAGE_POSTED = "MESSAGE_POSTED"
    """User message added to the thread."""

    RUN_STARTED = "RUN_STARTED"
    """Assistant run started, polling for its outcome."""

    RUN_COMPLETED = "RUN_COMPLETED"
    """Run completed and the reply was requested."""

    RUN_FAILED = "RUN_FAILED"
    """Run reported the `failed` status."""

    RUN_TIMED_OUT = "RUN_TIMED_OUT"
    """Poll budget exhausted before the run resolved."""

    @property
    def can_start_turn(self) -> bool:
        """Check if a new message may be posted from this state."""
        return ConversationState.MESSAGE_POSTED in VALID_TRANSITIONS[self]


# Key: current state, Value: set of allowed next states
VALID_TRANSITIONS: Final[dict[ConversationState, frozenset[ConversationState]]] = {
    ConversationState.UNINITIALIZED: frozenset({
        ConversationState.THREAD_READY,
    }),
    ConversationState.THREAD_READY: frozenset({
        ConversationState.THREAD_READY,
        ConversationState.MESSAGE_POSTED,
    }),
    ConversationState.MESSAGE_POSTED: frozenset({
        ConversationState.THREAD_READY,
        ConversationState.MESSAGE_POSTED,
        ConversationState.RUN_STARTED,
    }),
    ConversationState.RUN_STARTED: frozenset({
        ConversationState.THREAD_READY,
        ConversationState.RUN_COMPLETED,
        ConversationState.RUN_FAILED,
        ConversationState.RUN_TIMED_OUT,
    }),
    ConversationState.RUN_COMPLETED: frozenset({
        ConversationState.THREAD_READY,
        ConversationState.MESSAGE_POSTED,
    }),
    ConversationState.RUN_FAILED: frozenset({
        ConversationState.THREAD_READY,
        ConversationState.MESSAGE_POSTED,
    }),
    ConversationState.RUN_TIMED_OUT: frozenset({
        ConversationState.THREAD_READY,
        ConversationState.MESSAGE_POSTED,
    }),
}


def is_valid_transition(
    current_state: ConversationState,
    new_state: ConversationState,
) -> bool:
    """Check if a state transition is valid."""
    return new_state in VALID_TRANSITIONS.get(current_state, frozenset())


def validate_transition(
    current_state: ConversationState,
    new_state: ConversationState,
) -> None:
    """
    Validate a state transition.

    Args:
        current_state: Current session state
        new_state: Requested next state

    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if not is_valid_transition(current_state, new_state):
        allowed = sorted(s.value for s in VALID_TRANSITIONS.get(current_state, frozenset()))
        log.warning(
            "invalid_state_transition",
            current_state=current_state.value,
            new_state=new_state.value,
            allowed_transitions=allowed,
        )
        raise InvalidStateTransitionError(
            current_state=current_state.value,
            new_state=new_state.value,
            allowed_transitions=allowed,
        )
