"""Domain errors for payroll calculation and run lifecycle.

Every error carries a stable ``code`` and the HTTP ``status_code`` the API
maps it to, so callers can tell whether to retry (concurrency), fix data
(configuration/validation) or change operation (state).
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID


class PayrollError(Exception):
    """Base class for payroll engine errors."""

    code = "PAYROLL_ERROR"
    status_code = 400

    def to_detail(self) -> dict[str, str]:
        return {"detail": str(self), "code": self.code}


# ===== Lookup =====


class NotFoundError(PayrollError):
    """Raised when a requested payroll entity does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: UUID):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class PeriodNotFoundError(NotFoundError):
    """Raised when a payroll period does not exist for the organization."""

    code = "PERIOD_NOT_FOUND"

    def __init__(self, period_id: UUID, organization_id: UUID | None = None):
        self.organization_id = organization_id
        super().__init__("Payroll period", period_id)


class RunNotFoundError(NotFoundError):
    """Raised when a payroll run does not exist."""

    code = "RUN_NOT_FOUND"

    def __init__(self, run_id: UUID):
        super().__init__("Payroll run", run_id)


# ===== Configuration =====


class RulesNotFoundError(PayrollError):
    """Raised when no active statutory rule set exists for a country/year."""

    code = "RULES_NOT_FOUND"
    status_code = 422

    def __init__(self, country_code: str, year: int):
        self.country_code = country_code
        self.year = year
        super().__init__(
            f"No active payroll rules for country '{country_code}' in {year}"
        )


# ===== Validation =====


class InvalidCompensationError(PayrollError):
    """Raised when an employment's compensation data cannot be calculated."""

    code = "INVALID_COMPENSATION"
    status_code = 422

    def __init__(self, employment_id: UUID | None, base_salary: Decimal | None):
        self.employment_id = employment_id
        self.base_salary = base_salary
        if base_salary is None:
            reason = "base salary is missing"
        else:
            reason = f"base salary must be positive, got {base_salary}"
        super().__init__(f"Invalid compensation for employment {employment_id}: {reason}")


# ===== Concurrency =====


class RunInProgressError(PayrollError):
    """Raised when another operation holds the lock for a period."""

    code = "RUN_IN_PROGRESS"
    status_code = 409

    def __init__(self, period_id: UUID):
        self.period_id = period_id
        super().__init__(
            f"Another payroll operation is in progress for period {period_id}"
        )


# ===== State =====


class InvalidStateError(PayrollError):
    """Raised when a run lifecycle transition is not allowed."""

    code = "INVALID_STATE"
    status_code = 409

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class AlreadyFinalizedError(PayrollError):
    """Raised when a period already has a final run."""

    code = "ALREADY_FINALIZED"
    status_code = 409

    def __init__(self, period_id: UUID, final_run_id: UUID):
        self.period_id = period_id
        self.final_run_id = final_run_id
        super().__init__(
            f"Period {period_id} is already finalized by run {final_run_id}"
        )


class ImmutableRecordError(PayrollError):
    """Raised when a write targets a record that may no longer change."""

    code = "IMMUTABLE_RECORD"
    status_code = 409

    def __init__(self, entity: str, entity_id: object, reason: str):
        self.entity = entity
        self.entity_id = entity_id
        label = entity if entity_id is None else f"{entity} {entity_id}"
        super().__init__(f"{label} is immutable: {reason}")
