"""Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


# ============================================================================
# Run schemas
# ============================================================================


class RunCreate(BaseModel):
    """Schema for calculating a period into a new run."""

    organization_id: UUID
    period_id: UUID
    executed_by: str | None = None


class FinalizeRequest(BaseModel):
    """Schema for marking a run final."""

    actor: str | None = None


class RunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    run_id: UUID
    period_id: UUID
    run_number: int
    status: str
    is_final: bool
    executed_by: str | None = None
    executed_at: datetime
    completed_at: datetime | None = None
    finalized_at: datetime | None = None
    rules_snapshot_ref: list[str]
    rules_fingerprint: str | None = None
    summary: dict[str, Any]
    error_log: str | None = None
    superseded_by_run_id: UUID | None = None


class PeriodRunsResponse(BaseModel):
    """Schema for listing a period's runs."""

    period_id: UUID
    period_status: str
    final_run_id: UUID | None = None
    items: list[RunResponse]


class CurrentRunResponse(BaseModel):
    """The run currently representing a period, if any."""

    period_id: UUID
    run: RunResponse | None = None


# ============================================================================
# Payslip schemas
# ============================================================================


class ItemResponse(BaseModel):
    """Schema for a payslip item."""

    model_config = ConfigDict(from_attributes=True)

    position: int
    item_type: str
    code: str
    name: str
    amount: Decimal
    base_amount: Decimal | None = None
    percentage: Decimal | None = None


class PayslipResponse(BaseModel):
    """Schema for one employment's payslip within a run."""

    model_config = ConfigDict(from_attributes=True)

    line_id: UUID
    run_id: UUID
    employment_id: UUID
    rules_id: UUID
    country_code: str
    currency_code: str
    base_salary: Decimal
    transport_allowance_applied: Decimal
    health_employee_deduction: Decimal
    pension_employee_deduction: Decimal
    health_employer_contribution: Decimal
    pension_employer_contribution: Decimal
    gross_pay: Decimal
    total_employee_deductions: Decimal
    net_pay: Decimal
    total_employer_cost: Decimal
    calculation_id: UUID
    items: list[ItemResponse]


class PayslipListResponse(BaseModel):
    """Schema for listing a run's payslips."""

    run_id: UUID
    items: list[PayslipResponse]
    total: int


# ============================================================================
# Audit schemas
# ============================================================================


class AuditEventResponse(BaseModel):
    """Schema for an audit event."""

    model_config = ConfigDict(from_attributes=True)

    event_id: int
    run_id: UUID
    period_id: UUID
    event_type: str
    occurred_at: datetime
    actor: str | None = None
    detail: dict[str, Any]


# ============================================================================
# Preview schemas
# ============================================================================


class PreviewRequest(BaseModel):
    """Schema for a dry-run calculation."""

    organization_id: UUID


class PreviewPayslip(BaseModel):
    """A calculated, unsaved payslip."""

    model_config = ConfigDict(from_attributes=True)

    employment_id: UUID
    rules_id: UUID
    country_code: str
    currency_code: str
    calculation_id: UUID
    base_salary: Decimal
    transport_allowance_applied: Decimal
    health_employee_deduction: Decimal
    pension_employee_deduction: Decimal
    health_employer_contribution: Decimal
    pension_employer_contribution: Decimal
    gross_pay: Decimal
    total_employee_deductions: Decimal
    net_pay: Decimal
    total_employer_cost: Decimal


class PreviewResponse(BaseModel):
    """Schema for preview response."""

    period_id: UUID
    payslips: list[PreviewPayslip]
    errors: dict[str, str]
    total_employees: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    total_employer_cost: Decimal
    computed_at: datetime


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
