"""
Test State Machine

Unit tests for conversation state transitions and validation.
"""

import pytest

from bridge.shared.exceptions import InvalidStateTransitionError
from bridge.shared.state_machine import (
    VALID_TRANSITIONS,
    ConversationState,
    is_valid_transition,
    validate_transition,
)

RUN_OUTCOMES = (
    ConversationState.RUN_COMPLETED,
    ConversationState.RUN_FAILED,
    ConversationState.RUN_TIMED_OUT,
)


class TestConversationState:
    """Tests for ConversationState enum."""

    def test_all_states_defined(self):
        """Verify all expected states are defined."""
        expected_states = [
            "UNINITIALIZED",
            "THREAD_READY",
            "MESSAGE_POSTED",
            "RUN_STARTED",
            "RUN_COMPLETED",
            "RUN_FAILED",
            "RUN_TIMED_OUT",
        ]
        actual_states = [s.value for s in ConversationState]
        assert sorted(actual_states) == sorted(expected_states)

    def test_can_start_turn(self):
        """A message may be posted once a thread exists and no run is in flight."""
        assert ConversationState.THREAD_READY.can_start_turn is True
        assert ConversationState.RUN_COMPLETED.can_start_turn is True
        assert ConversationState.RUN_FAILED.can_start_turn is True
        assert ConversationState.RUN_TIMED_OUT.can_start_turn is True

        assert ConversationState.UNINITIALIZED.can_start_turn is False
        assert ConversationState.RUN_STARTED.can_start_turn is False


class TestTransitions:
    """Tests for the transition table."""

    def test_every_state_has_an_entry(self):
        assert set(VALID_TRANSITIONS) == set(ConversationState)

    def test_uninitialized_only_reaches_thread_ready(self):
        assert VALID_TRANSITIONS[ConversationState.UNINITIALIZED] == frozenset(
            {ConversationState.THREAD_READY}
        )

    def test_happy_path_is_valid(self):
        path = [
            ConversationState.UNINITIALIZED,
            ConversationState.THREAD_READY,
            ConversationState.MESSAGE_POSTED,
            ConversationState.RUN_STARTED,
            ConversationState.RUN_COMPLETED,
            ConversationState.MESSAGE_POSTED,
        ]
        for current, new in zip(path, path[1:]):
            assert is_valid_transition(current, new), f"{current} -> {new}"

    def test_run_started_resolves_to_any_outcome(self):
        for outcome in RUN_OUTCOMES:
            assert is_valid_transition(ConversationState.RUN_STARTED, outcome)

    def test_resolved_states_allow_new_thread(self):
        for state in RUN_OUTCOMES:
            assert is_valid_transition(state, ConversationState.THREAD_READY)

    @pytest.mark.parametrize(
        "current,new",
        [
            (ConversationState.UNINITIALIZED, ConversationState.MESSAGE_POSTED),
            (ConversationState.UNINITIALIZED, ConversationState.RUN_STARTED),
            (ConversationState.THREAD_READY, ConversationState.RUN_STARTED),
            (ConversationState.MESSAGE_POSTED, ConversationState.RUN_COMPLETED),
            (ConversationState.RUN_STARTED, ConversationState.MESSAGE_POSTED),
            (ConversationState.RUN_COMPLETED, ConversationState.RUN_STARTED),
        ],
    )
    def test_invalid_transitions(self, current, new):
        assert is_valid_transition(current, new) is False


class TestValidateTransition:
    """Tests for validate_transition."""

    def test_valid_transition_passes(self):
        validate_transition(ConversationState.UNINITIALIZED, ConversationState.THREAD_READY)

    def test_invalid_transition_raises(self):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            validate_transition(ConversationState.UNINITIALIZED, ConversationState.RUN_STARTED)

        error = exc_info.value
        assert error.current_state == "UNINITIALIZED"
        assert error.new_state == "RUN_STARTED"
        assert error.allowed_transitions == ["THREAD_READY"]
        assert "Cannot transition" in str(error)
