"""Employment model (owned by the HR module, read-only to payroll)."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from nomina.models.base import Base, TimestampMixin


class Employment(Base, TimestampMixin):
    """Employment of an organization member with its compensation data."""

    __tablename__ = "employments"

    employment_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    organization_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False)
    employee_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    employee_code: Mapped[str | None] = mapped_column(String, nullable=True)
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    base_salary: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    salary_period: Mapped[str] = mapped_column(String, nullable=False, default="monthly")
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False, default="COP")
    # Occupational risk class for the ARL contribution (1 lowest, 5 highest)
    arl_risk_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    hire_date: Mapped[date] = mapped_column(Date, nullable=False)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "salary_period IN ('hourly', 'daily', 'weekly', 'biweekly', 'monthly')",
            name="employment_salary_period_check",
        ),
        CheckConstraint(
            "termination_date IS NULL OR termination_date >= hire_date",
            name="employment_dates_check",
        ),
        CheckConstraint(
            "arl_risk_level IS NULL OR arl_risk_level BETWEEN 1 AND 5",
            name="employment_arl_risk_level_check",
        ),
        Index("employments_organization_idx", "organization_id"),
    )
