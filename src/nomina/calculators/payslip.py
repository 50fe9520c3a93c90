"""Single-payslip statutory calculation."""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from uuid import UUID

from nomina import __version__
from nomina.calculators.line_builder import LineItemBuilder
from nomina.calculators.types import (
    CompensationSource,
    ItemCandidate,
    ItemCode,
    PayslipResult,
    RuleSet,
)
from nomina.exceptions import InvalidCompensationError


class PayslipCalculator:
    """Computes one employment's payslip from a resolved rule set.

    Calculation order (stable):
    1) Base salary earning
    2) Transport allowance earning if base_salary <= cap (inclusive)
    3) Employee health and pension deductions on base_salary only
    4) Employer health and pension contributions on base_salary only
    5) Employer charges the rule set defines: ARL (by the employment's risk
       level) and parafiscales on base_salary; severance on base_salary plus
       the allowance, severance interest on severance; vacation and bonus
       provisions on base_salary
    6) Totals from the rounded items: gross, deductions, net, employer cost

    Employer items never reduce net pay; they only add to employer cost.

    Pure: no I/O, same (employment, rules) always gives the same result.
    """

    def __init__(self, engine_version: str = __version__):
        self.engine_version = engine_version

    def calculate(self, employment: CompensationSource, rules: RuleSet) -> PayslipResult:
        """Calculate the payslip for one employment.

        Raises:
            InvalidCompensationError: If base_salary is missing or not positive
        """
        base_salary = self._validated_salary(employment)
        arl_risk_level = getattr(employment, "arl_risk_level", None)
        items = self.build_items(base_salary, rules, arl_risk_level)

        errors = LineItemBuilder.validate_signs(items)
        if errors:
            raise ValueError("; ".join(errors))

        gross = LineItemBuilder.calculate_gross(items)
        deductions = LineItemBuilder.calculate_deductions(items)
        net = LineItemBuilder.calculate_net(items)
        employer = LineItemBuilder.calculate_employer_contributions(items)

        amount = LineItemBuilder.amount_for
        return PayslipResult(
            employment_id=employment.employment_id,
            rules_id=rules.rules_id,
            country_code=rules.country_code,
            currency_code=getattr(employment, "currency_code", None) or rules.currency_code,
            calculation_id=self._generate_calculation_id(
                employment.employment_id, base_salary, arl_risk_level, rules
            ),
            base_salary=base_salary,
            transport_allowance_applied=amount(items, ItemCode.TRANSPORT_ALLOWANCE.value),
            health_employee_deduction=amount(items, ItemCode.HEALTH_EMPLOYEE.value),
            pension_employee_deduction=amount(items, ItemCode.PENSION_EMPLOYEE.value),
            health_employer_contribution=amount(items, ItemCode.HEALTH_EMPLOYER.value),
            pension_employer_contribution=amount(items, ItemCode.PENSION_EMPLOYER.value),
            gross_pay=gross,
            total_employee_deductions=deductions,
            net_pay=net,
            total_employer_cost=gross + employer,
            items=items,
        )

    def build_items(
        self, base_salary: Decimal, rules: RuleSet, arl_risk_level: int | None = None
    ) -> list[ItemCandidate]:
        """Build the statutory items for a validated base salary."""
        items: list[ItemCandidate] = [
            LineItemBuilder.create_earning(
                ItemCode.BASE_SALARY.value, "Base salary", base_salary
            ),
        ]

        if self.transport_allowance_applies(base_salary, rules):
            items.append(
                LineItemBuilder.create_earning(
                    ItemCode.TRANSPORT_ALLOWANCE.value,
                    "Transport allowance",
                    rules.transport_allowance,
                )
            )

        # Contribution base is base_salary; the allowance never contributes
        items.extend(
            [
                LineItemBuilder.create_deduction(
                    ItemCode.HEALTH_EMPLOYEE.value,
                    "Health (employee)",
                    base_salary,
                    rules.health_employee_pct,
                ),
                LineItemBuilder.create_deduction(
                    ItemCode.PENSION_EMPLOYEE.value,
                    "Pension (employee)",
                    base_salary,
                    rules.pension_employee_pct,
                ),
                LineItemBuilder.create_employer_contribution(
                    ItemCode.HEALTH_EMPLOYER.value,
                    "Health (employer)",
                    base_salary,
                    rules.health_employer_pct,
                ),
                LineItemBuilder.create_employer_contribution(
                    ItemCode.PENSION_EMPLOYER.value,
                    "Pension (employer)",
                    base_salary,
                    rules.pension_employer_pct,
                ),
            ]
        )
        items.extend(self._employer_charges(base_salary, items, rules, arl_risk_level))
        return items

    @staticmethod
    def _employer_charges(
        base_salary: Decimal,
        items: list[ItemCandidate],
        rules: RuleSet,
        arl_risk_level: int | None,
    ) -> list[ItemCandidate]:
        charges: list[ItemCandidate] = []

        def charge(code: ItemCode, name: str, base: Decimal, pct: Decimal | None) -> None:
            if pct is not None:
                charges.append(
                    LineItemBuilder.create_employer_contribution(code.value, name, base, pct)
                )

        charge(ItemCode.ARL_EMPLOYER, "ARL (employer)", base_salary, rules.arl_pct(arl_risk_level))
        charge(
            ItemCode.PARAFISCALES_EMPLOYER,
            "Parafiscales (employer)",
            base_salary,
            rules.parafiscales_pct,
        )

        # Severance accrues on salary plus the transport allowance
        allowance = LineItemBuilder.amount_for(items, ItemCode.TRANSPORT_ALLOWANCE.value)
        charge(
            ItemCode.SEVERANCE_PROVISION,
            "Severance provision",
            base_salary + allowance,
            rules.severance_pct,
        )
        if rules.severance_pct is not None:
            severance = LineItemBuilder.amount_for(charges, ItemCode.SEVERANCE_PROVISION.value)
            charge(
                ItemCode.SEVERANCE_INTEREST_PROVISION,
                "Severance interest provision",
                severance,
                rules.severance_interest_pct,
            )

        charge(ItemCode.VACATION_PROVISION, "Vacation provision", base_salary, rules.vacation_pct)
        charge(ItemCode.BONUS_PROVISION, "Bonus provision", base_salary, rules.bonus_pct)
        return charges

    @staticmethod
    def transport_allowance_applies(base_salary: Decimal, rules: RuleSet) -> bool:
        """Allowance is paid when the salary is at or below the cap."""
        return base_salary <= rules.effective_transport_cap

    @staticmethod
    def _validated_salary(employment: CompensationSource) -> Decimal:
        raw = employment.base_salary
        if raw is None:
            raise InvalidCompensationError(employment.employment_id, None)
        try:
            salary = raw if isinstance(raw, Decimal) else Decimal(str(raw))
        except InvalidOperation:
            raise InvalidCompensationError(employment.employment_id, None) from None
        if not salary.is_finite() or salary <= 0:
            raise InvalidCompensationError(employment.employment_id, salary)
        return LineItemBuilder.round_to_cents(salary)

    def _generate_calculation_id(
        self,
        employment_id: UUID,
        base_salary: Decimal,
        arl_risk_level: int | None,
        rules: RuleSet,
    ) -> UUID:
        """Generate deterministic calculation ID."""
        data = {
            "employment_id": str(employment_id),
            "base_salary": str(base_salary),
            "arl_risk_level": arl_risk_level,
            "rules_fingerprint": rules.fingerprint(),
            "engine_version": self.engine_version,
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])
