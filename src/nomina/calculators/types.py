"""Type definitions for the calculation pipeline."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol
from uuid import UUID


class ItemType(str, Enum):
    """Payslip item types."""

    EARNING = "earning"
    DEDUCTION = "deduction"
    EMPLOYER_CONTRIBUTION = "employer_contribution"


class ItemCode(str, Enum):
    """Codes for the statutory items the calculator produces."""

    BASE_SALARY = "BASE_SALARY"
    TRANSPORT_ALLOWANCE = "TRANSPORT_ALLOWANCE"
    HEALTH_EMPLOYEE = "HEALTH_EMPLOYEE"
    PENSION_EMPLOYEE = "PENSION_EMPLOYEE"
    HEALTH_EMPLOYER = "HEALTH_EMPLOYER"
    PENSION_EMPLOYER = "PENSION_EMPLOYER"
    ARL_EMPLOYER = "ARL_EMPLOYER"
    PARAFISCALES_EMPLOYER = "PARAFISCALES_EMPLOYER"
    SEVERANCE_PROVISION = "SEVERANCE_PROVISION"
    SEVERANCE_INTEREST_PROVISION = "SEVERANCE_INTEREST_PROVISION"
    VACATION_PROVISION = "VACATION_PROVISION"
    BONUS_PROVISION = "BONUS_PROVISION"


@dataclass
class ItemCandidate:
    """A payslip item before persistence."""

    item_type: ItemType
    code: str
    name: str
    amount: Decimal  # Final amount (signed per conventions)

    # Traceability for percentage-based items
    base_amount: Decimal | None = None
    percentage: Decimal | None = None

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "item_type": self.item_type.value,
            "code": self.code,
            "amount": str(self.amount),
            "base_amount": str(self.base_amount) if self.base_amount is not None else None,
            "percentage": str(self.percentage) if self.percentage is not None else None,
        }


def _optional_decimal(value: Any) -> Decimal | None:
    return Decimal(value) if value is not None else None


class CompensationSource(Protocol):
    """What the calculator reads from an employment."""

    employment_id: UUID
    base_salary: Decimal | None
    currency_code: str
    arl_risk_level: int | None


@dataclass(frozen=True)
class RuleSet:
    """Resolved statutory parameters for one country and year.

    A plain value: the calculator never branches on country, only on these
    numbers.
    """

    rules_id: UUID
    country_code: str
    year: int
    currency_code: str
    minimum_wage: Decimal
    health_employee_pct: Decimal
    pension_employee_pct: Decimal
    health_employer_pct: Decimal
    pension_employer_pct: Decimal
    transport_allowance: Decimal
    transport_allowance_salary_cap: Decimal | None = None

    # Employer charges; None (or no ARL table) means the charge isn't applied
    arl_pct_by_risk_level: tuple[tuple[int, Decimal], ...] = ()
    parafiscales_pct: Decimal | None = None
    severance_pct: Decimal | None = None
    severance_interest_pct: Decimal | None = None
    vacation_pct: Decimal | None = None
    bonus_pct: Decimal | None = None

    @property
    def effective_transport_cap(self) -> Decimal:
        """Salary cap for the transport allowance (two minimum wages if unset)."""
        if self.transport_allowance_salary_cap is not None:
            return self.transport_allowance_salary_cap
        return self.minimum_wage * 2

    def arl_pct(self, risk_level: int | None) -> Decimal | None:
        """ARL rate for a risk level; an unset or unknown level uses level 1."""
        rates = dict(self.arl_pct_by_risk_level)
        if not rates:
            return None
        return rates.get(risk_level or 1, rates.get(1))

    @classmethod
    def from_model(cls, row: Any) -> RuleSet:
        """Build from a CountryPayrollRules row."""
        return cls(
            rules_id=row.rules_id,
            country_code=row.country_code,
            year=row.year,
            currency_code=row.currency_code,
            minimum_wage=Decimal(row.minimum_wage),
            health_employee_pct=Decimal(row.health_employee_pct),
            pension_employee_pct=Decimal(row.pension_employee_pct),
            health_employer_pct=Decimal(row.health_employer_pct),
            pension_employer_pct=Decimal(row.pension_employer_pct),
            transport_allowance=Decimal(row.transport_allowance),
            transport_allowance_salary_cap=_optional_decimal(row.transport_allowance_salary_cap),
            arl_pct_by_risk_level=tuple(
                sorted(
                    (int(level), Decimal(str(pct)))
                    for level, pct in (row.arl_pct_by_risk_level or {}).items()
                )
            ),
            parafiscales_pct=_optional_decimal(row.parafiscales_pct),
            severance_pct=_optional_decimal(row.severance_pct),
            severance_interest_pct=_optional_decimal(row.severance_interest_pct),
            vacation_pct=_optional_decimal(row.vacation_pct),
            bonus_pct=_optional_decimal(row.bonus_pct),
        )

    def fingerprint(self) -> str:
        """Deterministic hash of the rule values."""
        data = {k: str(v) for k, v in asdict(self).items()}
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]


@dataclass
class PayslipResult:
    """Result of calculating one employment's payslip."""

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

    items: list[ItemCandidate] = field(default_factory=list)


@dataclass
class RunTotals:
    """Aggregated totals across a run's payslips."""

    employees: int = 0
    gross_pay: Decimal = Decimal("0")
    total_deductions: Decimal = Decimal("0")
    net_pay: Decimal = Decimal("0")
    employer_cost: Decimal = Decimal("0")

    def add(self, result: PayslipResult) -> None:
        self.employees += 1
        self.gross_pay += result.gross_pay
        self.total_deductions += result.total_employee_deductions
        self.net_pay += result.net_pay
        self.employer_cost += result.total_employer_cost

    def to_summary(self) -> dict[str, Any]:
        """JSON-safe summary stored on the run."""
        return {
            "employees": self.employees,
            "totals": {
                "gross_pay": str(self.gross_pay),
                "total_deductions": str(self.total_deductions),
                "net_pay": str(self.net_pay),
                "employer_cost": str(self.employer_cost),
            },
        }
