"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from nomina.exceptions import InvalidStateError

if TYPE_CHECKING:
    from nomina.models import PayrollRun


class RunStatus(str, Enum):
    """Payroll run status values."""

    CALCULATING = "calculating"
    COMPLETED = "completed"
    ERROR = "error"
    SUPERSEDED = "superseded"


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    OPEN = "open"
    CLOSED = "closed"


class RunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - calculating → completed
    - calculating → error
    - completed → superseded (a sibling run was finalized)

    A final run is always completed and never transitions again.
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        RunStatus.CALCULATING: [RunStatus.COMPLETED, RunStatus.ERROR],
        RunStatus.COMPLETED: [RunStatus.SUPERSEDED],
        RunStatus.ERROR: [],  # Terminal state
        RunStatus.SUPERSEDED: [],  # Terminal state
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidStateError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateError(from_status, to_status)

    @classmethod
    def transition(cls, run: PayrollRun, to_status: str) -> None:
        """Move a run to a new status after validating the transition."""
        if run.is_final:
            raise InvalidStateError(run.status, to_status, "run is final")
        cls.validate_transition(run.status, to_status)
        run.status = RunStatus(to_status).value

    @classmethod
    def can_finalize(cls, status: str) -> bool:
        """Only completed runs may be marked final."""
        return status == RunStatus.COMPLETED
