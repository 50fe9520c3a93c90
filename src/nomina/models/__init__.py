"""ORM models for payroll rules, periods, runs and payslips."""

from nomina.models.base import Base, TimestampMixin
from nomina.models.employee import Employment
from nomina.models.payroll import (
    CountryPayrollRules,
    PayrollAuditEvent,
    PayrollItem,
    PayrollLine,
    PayrollPeriod,
    PayrollRun,
)

# Registers the immutability listeners on every Session
from nomina.models import guards  # noqa: F401,E402

__all__ = [
    "Base",
    "TimestampMixin",
    "Employment",
    "CountryPayrollRules",
    "PayrollAuditEvent",
    "PayrollItem",
    "PayrollLine",
    "PayrollPeriod",
    "PayrollRun",
]
