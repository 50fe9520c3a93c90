"""Tests for payroll run state machine."""

from types import SimpleNamespace

import pytest

from nomina.exceptions import InvalidStateError
from nomina.services.state_machine import RunStateMachine, RunStatus


class TestRunStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        assert RunStateMachine.can_transition("calculating", "completed") is True
        assert RunStateMachine.can_transition("calculating", "error") is True

        # A sibling run was finalized
        assert RunStateMachine.can_transition("completed", "superseded") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        assert RunStateMachine.can_transition("completed", "calculating") is False
        assert RunStateMachine.can_transition("completed", "error") is False
        assert RunStateMachine.can_transition("calculating", "superseded") is False

        # Terminal states
        assert RunStateMachine.can_transition("error", "calculating") is False
        assert RunStateMachine.can_transition("error", "completed") is False
        assert RunStateMachine.can_transition("superseded", "completed") is False

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidStateError) as exc_info:
            RunStateMachine.validate_transition("error", "completed")

        assert exc_info.value.from_status == "error"
        assert exc_info.value.to_status == "completed"
        assert exc_info.value.status_code == 409

    def test_transition_sets_status(self):
        run = SimpleNamespace(status="calculating", is_final=False)

        RunStateMachine.transition(run, RunStatus.COMPLETED)

        assert run.status == "completed"

    def test_final_run_never_transitions(self):
        """A final run is frozen even for otherwise valid transitions."""
        run = SimpleNamespace(status="completed", is_final=True)

        with pytest.raises(InvalidStateError):
            RunStateMachine.transition(run, RunStatus.SUPERSEDED)
        assert run.status == "completed"

    def test_can_finalize(self):
        """Only completed runs may be finalized."""
        assert RunStateMachine.can_finalize("completed") is True
        assert RunStateMachine.can_finalize("calculating") is False
        assert RunStateMachine.can_finalize("error") is False
        assert RunStateMachine.can_finalize("superseded") is False
