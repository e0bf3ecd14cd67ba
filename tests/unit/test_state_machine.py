"""Unit tests for the tree moderation lifecycle."""

import pytest

from citytrees.orchestration.state_machine import (
    INITIAL_STATUS,
    ModerationOutcome,
    TreeStatus,
    is_terminal,
    transition,
    valid_transitions,
)


class TestTransitions:

    def test_initial_status(self):
        assert INITIAL_STATUS == TreeStatus.SUBMITTED

    def test_approve_submitted(self):
        result = transition(TreeStatus.SUBMITTED, ModerationOutcome.APPROVE)
        assert result.ok
        assert result.to_state == TreeStatus.APPROVED
        assert result.error is None

    def test_reject_submitted(self):
        result = transition(TreeStatus.SUBMITTED, ModerationOutcome.REJECT)
        assert result.ok
        assert result.to_state == TreeStatus.REJECTED

    @pytest.mark.parametrize("state", [TreeStatus.APPROVED, TreeStatus.REJECTED])
    @pytest.mark.parametrize("outcome", list(ModerationOutcome))
    def test_terminal_states_reject_every_outcome(self, state, outcome):
        result = transition(state, outcome)
        assert not result.ok
        assert result.to_state is None
        assert result.error == f"Invalid transition: {state.value} --{outcome.value}-->"

    def test_transition_is_total(self):
        for state in TreeStatus:
            for outcome in ModerationOutcome:
                result = transition(state, outcome)
                assert result.from_state == state
                assert result.outcome == outcome


class TestHelpers:

    def test_valid_transitions_from_submitted(self):
        assert valid_transitions(TreeStatus.SUBMITTED) == [TreeStatus.APPROVED, TreeStatus.REJECTED]

    def test_terminal_states(self):
        assert not is_terminal(TreeStatus.SUBMITTED)
        assert is_terminal(TreeStatus.APPROVED)
        assert is_terminal(TreeStatus.REJECTED)
