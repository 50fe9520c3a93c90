"""Tests for the single-payslip calculator."""

from dataclasses import dataclass, replace
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from nomina.calculators.payslip import PayslipCalculator
from nomina.calculators.types import ItemCode, ItemType, RuleSet
from nomina.exceptions import InvalidCompensationError


@dataclass
class FakeEmployment:
    employment_id: UUID
    base_salary: Decimal | None
    currency_code: str = "COP"
    arl_risk_level: int | None = None


@pytest.fixture
def rules() -> RuleSet:
    return RuleSet(
        rules_id=uuid4(),
        country_code="CO",
        year=2024,
        currency_code="COP",
        minimum_wage=Decimal("1300000.00"),
        health_employee_pct=Decimal("0.04"),
        pension_employee_pct=Decimal("0.04"),
        health_employer_pct=Decimal("0.085"),
        pension_employer_pct=Decimal("0.12"),
        transport_allowance=Decimal("140000.00"),
        transport_allowance_salary_cap=Decimal("2600000.00"),
    )


@pytest.fixture
def calculator() -> PayslipCalculator:
    return PayslipCalculator(engine_version="test")


class TestPayslipCalculation:
    """Statutory amounts for a single employment."""

    def test_salary_below_cap_gets_allowance(self, calculator, rules):
        """Scenario A, employee below the cap."""
        result = calculator.calculate(FakeEmployment(uuid4(), Decimal("1300000")), rules)

        assert result.base_salary == Decimal("1300000.00")
        assert result.transport_allowance_applied == Decimal("140000.00")
        assert result.health_employee_deduction == Decimal("52000.00")
        assert result.pension_employee_deduction == Decimal("52000.00")
        assert result.gross_pay == Decimal("1440000.00")
        assert result.total_employee_deductions == Decimal("104000.00")
        assert result.net_pay == Decimal("1336000.00")

    def test_salary_above_cap_has_no_allowance(self, calculator, rules):
        """Scenario A, employee above the cap."""
        result = calculator.calculate(FakeEmployment(uuid4(), Decimal("3000000")), rules)

        assert result.transport_allowance_applied == Decimal("0.00")
        assert result.gross_pay == Decimal("3000000.00")
        assert result.total_employee_deductions == Decimal("240000.00")
        assert result.net_pay == Decimal("2760000.00")
        assert ItemCode.TRANSPORT_ALLOWANCE.value not in [i.code for i in result.items]

    def test_salary_equal_to_cap_gets_allowance(self, calculator, rules):
        """The cap is inclusive."""
        result = calculator.calculate(FakeEmployment(uuid4(), Decimal("2600000")), rules)

        assert result.transport_allowance_applied == Decimal("140000.00")

    def test_allowance_is_not_a_contribution_base(self, calculator, rules):
        """Deductions and contributions apply to base salary only."""
        result = calculator.calculate(FakeEmployment(uuid4(), Decimal("1300000")), rules)

        for item in result.items:
            if item.base_amount is not None:
                assert item.base_amount == Decimal("1300000.00")

    def test_employer_contributions(self, calculator, rules):
        result = calculator.calculate(FakeEmployment(uuid4(), Decimal("1300000")), rules)

        assert result.health_employer_contribution == Decimal("110500.00")
        assert result.pension_employer_contribution == Decimal("156000.00")
        assert result.total_employer_cost == Decimal("1706500.00")

    def test_net_identity(self, calculator, rules):
        """net = base + allowance - health - pension, to the cent."""
        result = calculator.calculate(FakeEmployment(uuid4(), Decimal("1234567.89")), rules)

        assert result.net_pay == (
            result.base_salary
            + result.transport_allowance_applied
            - result.health_employee_deduction
            - result.pension_employee_deduction
        )
        assert result.net_pay == result.gross_pay - result.total_employee_deductions

    def test_rounding_half_up_per_item(self, calculator, rules):
        """Each item is rounded to cents before totals."""
        # 1000000.13 * 0.04 = 40000.0052 -> 40000.01
        result = calculator.calculate(FakeEmployment(uuid4(), Decimal("1000000.13")), rules)

        assert result.health_employee_deduction == Decimal("40000.01")
        assert result.total_employee_deductions == Decimal("80000.02")

    def test_zero_allowance_rules(self, calculator, rules):
        """A country without transport allowance."""
        no_allowance = replace(rules, transport_allowance=Decimal("0"))
        result = calculator.calculate(FakeEmployment(uuid4(), Decimal("1300000")), no_allowance)

        assert result.transport_allowance_applied == Decimal("0.00")
        assert result.gross_pay == Decimal("1300000.00")

    def test_default_cap_is_two_minimum_wages(self, calculator, rules):
        uncapped = replace(rules, transport_allowance_salary_cap=None)

        assert uncapped.effective_transport_cap == Decimal("2600000.00")
        assert PayslipCalculator.transport_allowance_applies(Decimal("2600000.00"), uncapped)
        assert not PayslipCalculator.transport_allowance_applies(Decimal("2600000.01"), uncapped)

    def test_item_order_and_signs(self, calculator, rules):
        result = calculator.calculate(FakeEmployment(uuid4(), Decimal("1300000")), rules)

        assert [i.code for i in result.items] == [
            "BASE_SALARY",
            "TRANSPORT_ALLOWANCE",
            "HEALTH_EMPLOYEE",
            "PENSION_EMPLOYEE",
            "HEALTH_EMPLOYER",
            "PENSION_EMPLOYER",
        ]
        for item in result.items:
            if item.item_type == ItemType.DEDUCTION:
                assert item.amount < 0
            else:
                assert item.amount > 0

    def test_currency_falls_back_to_rules(self, calculator, rules):
        employment = FakeEmployment(uuid4(), Decimal("1300000"), currency_code="")
        result = calculator.calculate(employment, rules)

        assert result.currency_code == "COP"
        assert result.country_code == "CO"
        assert result.rules_id == rules.rules_id


@pytest.fixture
def charged_rules(rules) -> RuleSet:
    """Rules with the Colombian employer charges and provisions."""
    return replace(
        rules,
        arl_pct_by_risk_level=(
            (1, Decimal("0.00522")),
            (2, Decimal("0.01044")),
            (3, Decimal("0.02436")),
            (4, Decimal("0.04350")),
            (5, Decimal("0.06960")),
        ),
        parafiscales_pct=Decimal("0.09"),
        severance_pct=Decimal("0.0833"),
        severance_interest_pct=Decimal("0.12"),
        vacation_pct=Decimal("0.0417"),
        bonus_pct=Decimal("0.0833"),
    )


class TestEmployerCharges:
    """ARL, parafiscales and provisions add to employer cost only."""

    def _amounts(self, result) -> dict[str, Decimal]:
        return {i.code: i.amount for i in result.items}

    def test_all_charges(self, calculator, charged_rules):
        employment = FakeEmployment(uuid4(), Decimal("1300000"), arl_risk_level=3)
        result = calculator.calculate(employment, charged_rules)

        amounts = self._amounts(result)
        assert amounts["ARL_EMPLOYER"] == Decimal("31668.00")
        assert amounts["PARAFISCALES_EMPLOYER"] == Decimal("117000.00")
        # (1300000 + 140000) * 0.0833
        assert amounts["SEVERANCE_PROVISION"] == Decimal("119952.00")
        # 119952 * 0.12
        assert amounts["SEVERANCE_INTEREST_PROVISION"] == Decimal("14394.24")
        assert amounts["VACATION_PROVISION"] == Decimal("54210.00")
        assert amounts["BONUS_PROVISION"] == Decimal("108290.00")

        assert result.gross_pay == Decimal("1440000.00")
        assert result.total_employer_cost == Decimal("2152014.24")

    def test_charges_do_not_touch_net_pay(self, calculator, rules, charged_rules):
        employment = FakeEmployment(uuid4(), Decimal("1300000"), arl_risk_level=5)

        plain = calculator.calculate(employment, rules)
        charged = calculator.calculate(employment, charged_rules)

        assert charged.net_pay == plain.net_pay == Decimal("1336000.00")
        assert charged.total_employee_deductions == plain.total_employee_deductions
        assert charged.total_employer_cost > plain.total_employer_cost

    def test_unset_risk_level_uses_level_one(self, calculator, charged_rules):
        result = calculator.calculate(FakeEmployment(uuid4(), Decimal("1300000")), charged_rules)

        assert self._amounts(result)["ARL_EMPLOYER"] == Decimal("6786.00")

    def test_severance_base_without_allowance(self, calculator, charged_rules):
        """Above the cap there is no allowance in the severance base."""
        result = calculator.calculate(FakeEmployment(uuid4(), Decimal("3000000")), charged_rules)

        amounts = self._amounts(result)
        assert amounts["SEVERANCE_PROVISION"] == Decimal("249900.00")
        assert amounts["SEVERANCE_INTEREST_PROVISION"] == Decimal("29988.00")

    def test_charge_order_and_signs(self, calculator, charged_rules):
        employment = FakeEmployment(uuid4(), Decimal("1300000"), arl_risk_level=1)
        result = calculator.calculate(employment, charged_rules)

        assert [i.code for i in result.items][6:] == [
            "ARL_EMPLOYER",
            "PARAFISCALES_EMPLOYER",
            "SEVERANCE_PROVISION",
            "SEVERANCE_INTEREST_PROVISION",
            "VACATION_PROVISION",
            "BONUS_PROVISION",
        ]
        for item in result.items[6:]:
            assert item.item_type == ItemType.EMPLOYER_CONTRIBUTION
            assert item.amount > 0

    def test_only_configured_charges_apply(self, calculator, rules):
        partial = replace(rules, vacation_pct=Decimal("0.0417"))
        result = calculator.calculate(FakeEmployment(uuid4(), Decimal("1300000")), partial)

        employer_codes = [
            i.code for i in result.items if i.item_type == ItemType.EMPLOYER_CONTRIBUTION
        ]
        assert employer_codes == ["HEALTH_EMPLOYER", "PENSION_EMPLOYER", "VACATION_PROVISION"]

    def test_calculation_id_changes_with_risk_level(self, calculator, charged_rules):
        employment_id = uuid4()
        low = FakeEmployment(employment_id, Decimal("1300000"), arl_risk_level=1)
        high = FakeEmployment(employment_id, Decimal("1300000"), arl_risk_level=4)

        assert (
            calculator.calculate(low, charged_rules).calculation_id
            != calculator.calculate(high, charged_rules).calculation_id
        )


class TestInvalidCompensation:
    """Employments that can't be calculated."""

    @pytest.mark.parametrize(
        "salary",
        [None, Decimal("0"), Decimal("-1"), Decimal("NaN"), Decimal("Infinity")],
    )
    def test_invalid_salary_raises(self, calculator, rules, salary):
        employment_id = uuid4()
        with pytest.raises(InvalidCompensationError) as exc_info:
            calculator.calculate(FakeEmployment(employment_id, salary), rules)

        assert exc_info.value.employment_id == employment_id
        assert exc_info.value.code == "INVALID_COMPENSATION"


class TestDeterminism:
    """Same inputs, same outputs."""

    def test_calculation_id_is_deterministic(self, calculator, rules):
        employment = FakeEmployment(uuid4(), Decimal("1300000"))

        first = calculator.calculate(employment, rules)
        second = calculator.calculate(employment, rules)

        assert first.calculation_id == second.calculation_id
        assert first == second

    def test_calculation_id_changes_with_rules(self, calculator, rules):
        employment = FakeEmployment(uuid4(), Decimal("1300000"))
        changed = replace(rules, health_employee_pct=Decimal("0.05"))

        assert (
            calculator.calculate(employment, rules).calculation_id
            != calculator.calculate(employment, changed).calculation_id
        )

    def test_calculation_id_changes_with_engine_version(self, rules):
        employment = FakeEmployment(uuid4(), Decimal("1300000"))

        a = PayslipCalculator(engine_version="1.0.0").calculate(employment, rules)
        b = PayslipCalculator(engine_version="1.0.1").calculate(employment, rules)

        assert a.calculation_id != b.calculation_id
        assert a.net_pay == b.net_pay
