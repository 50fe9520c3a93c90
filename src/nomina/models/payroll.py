"""Payroll rules, period, run, payslip and audit models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from nomina.models.base import Base, JSONType, TimestampMixin

if TYPE_CHECKING:
    from nomina.models.employee import Employment


# ===== Statutory rules =====


class CountryPayrollRules(Base, TimestampMixin):
    """Statutory payroll parameters for one country and fiscal year.

    Percentages are stored as fractions (0.04 = 4%). Rows are never edited
    once a completed run has used them; a change is a new row.
    """

    __tablename__ = "country_payroll_rules"

    rules_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False, default="COP")
    minimum_wage: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    health_employee_pct: Mapped[Decimal] = mapped_column(Numeric(7, 6), nullable=False)
    pension_employee_pct: Mapped[Decimal] = mapped_column(Numeric(7, 6), nullable=False)
    health_employer_pct: Mapped[Decimal] = mapped_column(Numeric(7, 6), nullable=False)
    pension_employer_pct: Mapped[Decimal] = mapped_column(Numeric(7, 6), nullable=False)
    transport_allowance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    transport_allowance_salary_cap: Mapped[Decimal | None] = mapped_column(
        Numeric(14, 2), nullable=True
    )

    # Employer-side charges; informational, they never reduce net pay.
    # ARL rates are keyed by occupational risk level ("1" to "5").
    arl_pct_by_risk_level: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    parafiscales_pct: Mapped[Decimal | None] = mapped_column(Numeric(7, 6), nullable=True)
    severance_pct: Mapped[Decimal | None] = mapped_column(Numeric(7, 6), nullable=True)
    severance_interest_pct: Mapped[Decimal | None] = mapped_column(Numeric(7, 6), nullable=True)
    vacation_pct: Mapped[Decimal | None] = mapped_column(Numeric(7, 6), nullable=True)
    bonus_pct: Mapped[Decimal | None] = mapped_column(Numeric(7, 6), nullable=True)

    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "health_employee_pct >= 0 AND health_employee_pct <= 1 "
            "AND pension_employee_pct >= 0 AND pension_employee_pct <= 1 "
            "AND health_employer_pct >= 0 AND health_employer_pct <= 1 "
            "AND pension_employer_pct >= 0 AND pension_employer_pct <= 1",
            name="country_payroll_rules_pct_range",
        ),
        CheckConstraint(
            "(parafiscales_pct IS NULL OR parafiscales_pct BETWEEN 0 AND 1) "
            "AND (severance_pct IS NULL OR severance_pct BETWEEN 0 AND 1) "
            "AND (severance_interest_pct IS NULL OR severance_interest_pct BETWEEN 0 AND 1) "
            "AND (vacation_pct IS NULL OR vacation_pct BETWEEN 0 AND 1) "
            "AND (bonus_pct IS NULL OR bonus_pct BETWEEN 0 AND 1)",
            name="country_payroll_rules_employer_pct_range",
        ),
        CheckConstraint("minimum_wage >= 0", name="country_payroll_rules_min_wage_check"),
        CheckConstraint(
            "transport_allowance >= 0", name="country_payroll_rules_allowance_check"
        ),
        # At most one active rule set per country and year
        Index(
            "country_payroll_rules_active_unique",
            "country_code",
            "year",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )


# ===== Periods =====


class PayrollPeriod(Base, TimestampMixin):
    """One payable cycle of an organization."""

    __tablename__ = "payroll_periods"

    period_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    organization_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="open")
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    final_run_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)

    # Totals of the final run, copied on finalization
    total_employees: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_gross: Mapped[Decimal | None] = mapped_column(Numeric(16, 2), nullable=True)
    total_deductions: Mapped[Decimal | None] = mapped_column(Numeric(16, 2), nullable=True)
    total_net: Mapped[Decimal | None] = mapped_column(Numeric(16, 2), nullable=True)
    total_employer_cost: Mapped[Decimal | None] = mapped_column(Numeric(16, 2), nullable=True)

    __table_args__ = (
        CheckConstraint("status IN ('open', 'closed')", name="payroll_period_status_check"),
        CheckConstraint("end_date >= start_date", name="payroll_period_dates_check"),
        UniqueConstraint(
            "organization_id",
            "start_date",
            "end_date",
            name="payroll_period_org_dates_unique",
        ),
    )

    # Relationships
    runs: Mapped[list[PayrollRun]] = relationship(
        back_populates="period", order_by="PayrollRun.run_number"
    )

    @property
    def rules_year(self) -> int:
        """Fiscal year whose statutory rules govern this period."""
        return self.end_date.year


# ===== Runs =====


class PayrollRun(Base, TimestampMixin):
    """One versioned calculation attempt for a period."""

    __tablename__ = "payroll_runs"

    run_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    period_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("payroll_periods.period_id", ondelete="CASCADE"),
        nullable=False,
    )
    run_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="calculating")
    is_final: Mapped[bool] = mapped_column(default=False, nullable=False)
    executed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    executed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rules_snapshot_ref: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    rules_fingerprint: Mapped[str | None] = mapped_column(String(32), nullable=True)
    summary: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    error_log: Mapped[str | None] = mapped_column(Text, nullable=True)
    superseded_by_run_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("payroll_runs.run_id"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("period_id", "run_number", name="payroll_run_period_number_unique"),
        CheckConstraint("run_number >= 1", name="payroll_run_number_check"),
        CheckConstraint(
            "status IN ('calculating', 'completed', 'error', 'superseded')",
            name="payroll_run_status_check",
        ),
        CheckConstraint(
            "NOT is_final OR status = 'completed'",
            name="payroll_run_final_completed_check",
        ),
        # Exactly one final run per period
        Index(
            "payroll_runs_one_final_per_period",
            "period_id",
            unique=True,
            postgresql_where=text("is_final"),
            sqlite_where=text("is_final = 1"),
        ),
    )

    # Relationships
    period: Mapped[PayrollPeriod] = relationship(back_populates="runs")
    lines: Mapped[list[PayrollLine]] = relationship(
        back_populates="run", order_by="PayrollLine.employment_id"
    )


# ===== Payslips =====


class PayrollLine(Base, TimestampMixin):
    """One employment's payslip within a run."""

    __tablename__ = "payroll_lines"

    line_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    run_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("payroll_runs.run_id", ondelete="CASCADE"),
        nullable=False,
    )
    employment_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("employments.employment_id"),
        nullable=False,
    )
    rules_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("country_payroll_rules.rules_id"),
        nullable=False,
    )
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)

    base_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    transport_allowance_applied: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    health_employee_deduction: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    pension_employee_deduction: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    health_employer_contribution: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    pension_employer_contribution: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False
    )
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_employee_deductions: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_employer_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    calculation_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("run_id", "employment_id", name="payroll_line_run_employment_unique"),
    )

    # Relationships
    run: Mapped[PayrollRun] = relationship(back_populates="lines")
    employment: Mapped[Employment] = relationship()
    rules: Mapped[CountryPayrollRules] = relationship()
    items: Mapped[list[PayrollItem]] = relationship(
        back_populates="line", order_by="PayrollItem.position"
    )


class PayrollItem(Base, TimestampMixin):
    """Itemized earning, deduction or employer contribution of a payslip.

    Sign conventions: earnings and employer contributions positive,
    employee deductions negative.
    """

    __tablename__ = "payroll_items"

    item_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    line_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("payroll_lines.line_id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    item_type: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    base_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    percentage: Mapped[Decimal | None] = mapped_column(Numeric(7, 6), nullable=True)
    line_hash: Mapped[str] = mapped_column(String(32), nullable=False)

    __table_args__ = (
        UniqueConstraint("line_id", "line_hash", name="payroll_item_line_hash_unique"),
        CheckConstraint(
            "item_type IN ('earning', 'deduction', 'employer_contribution')",
            name="payroll_item_type_check",
        ),
    )

    # Relationships
    line: Mapped[PayrollLine] = relationship(back_populates="items")


# ===== Audit =====


class PayrollAuditEvent(Base):
    """Append-only lifecycle event of a payroll run."""

    __tablename__ = "payroll_audit_events"

    # Integer sequence gives a stable tie-break for equal timestamps
    event_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("payroll_runs.run_id"),
        nullable=False,
    )
    period_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("payroll_periods.period_id"),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actor: Mapped[str | None] = mapped_column(String, nullable=True)
    detail: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    __table_args__ = (
        CheckConstraint(
            "event_type IN ('run_started', 'run_completed', 'run_error', "
            "'run_finalized', 'run_superseded')",
            name="payroll_audit_event_type_check",
        ),
        Index("payroll_audit_events_run_idx", "run_id", "occurred_at"),
    )
