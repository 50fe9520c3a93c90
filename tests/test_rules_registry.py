"""Tests for country rule set resolution."""

from decimal import Decimal

import pytest

from nomina.calculators.rules_registry import CountryRulesRegistry
from nomina.calculators.types import RuleSet
from nomina.exceptions import RulesNotFoundError
from nomina.models import CountryPayrollRules


class TestResolve:
    """Rule set lookup by (country, year)."""

    async def test_resolve_returns_values(self, session, co_rules_2024):
        registry = CountryRulesRegistry(session)

        rules = await registry.resolve("CO", 2024)

        assert isinstance(rules, RuleSet)
        assert rules.rules_id == co_rules_2024.rules_id
        assert rules.country_code == "CO"
        assert rules.year == 2024
        assert rules.health_employee_pct == Decimal("0.04")
        assert rules.transport_allowance == Decimal("140000.00")
        assert rules.transport_allowance_salary_cap == Decimal("2600000.00")

    async def test_employer_charges_resolved(self, session, co_rules_2024):
        co_rules_2024.arl_pct_by_risk_level = {"3": "0.02436", "1": "0.00522"}
        co_rules_2024.severance_pct = Decimal("0.0833")
        await session.commit()

        rules = await CountryRulesRegistry(session).resolve("CO", 2024)

        assert rules.arl_pct_by_risk_level == ((1, Decimal("0.00522")), (3, Decimal("0.02436")))
        assert rules.arl_pct(3) == Decimal("0.02436")
        assert rules.arl_pct(None) == Decimal("0.00522")
        assert rules.severance_pct == Decimal("0.0833")
        assert rules.parafiscales_pct is None

    async def test_no_employer_charges_by_default(self, session, co_rules_2024):
        rules = await CountryRulesRegistry(session).resolve("CO", 2024)

        assert rules.arl_pct_by_risk_level == ()
        assert rules.arl_pct(1) is None

    async def test_country_code_is_case_insensitive(self, session, co_rules_2024):
        registry = CountryRulesRegistry(session)

        rules = await registry.resolve("co", 2024)

        assert rules.rules_id == co_rules_2024.rules_id

    async def test_missing_year_raises(self, session, co_rules_2024):
        """Scenario B: no rules for 1999."""
        registry = CountryRulesRegistry(session)

        with pytest.raises(RulesNotFoundError) as exc_info:
            await registry.resolve("CO", 1999)

        assert exc_info.value.country_code == "CO"
        assert exc_info.value.year == 1999
        assert exc_info.value.status_code == 422

    async def test_no_extrapolation_from_other_years(self, session, co_rules_2024):
        """Neither a later nor an earlier year's rules are used."""
        registry = CountryRulesRegistry(session)

        with pytest.raises(RulesNotFoundError):
            await registry.resolve("CO", 2025)
        with pytest.raises(RulesNotFoundError):
            await registry.resolve("CO", 2023)

    async def test_unknown_country_raises(self, session, co_rules_2024):
        with pytest.raises(RulesNotFoundError):
            await CountryRulesRegistry(session).resolve("MX", 2024)

    async def test_inactive_rules_ignored(self, session, co_rules_2024):
        co_rules_2024.is_active = False
        await session.commit()

        with pytest.raises(RulesNotFoundError):
            await CountryRulesRegistry(session).resolve("CO", 2024)

    async def test_resolve_is_idempotent(self, session, co_rules_2024):
        registry = CountryRulesRegistry(session)

        first = await registry.resolve("CO", 2024)
        second = await registry.resolve("CO", 2024)

        assert first == second
        assert first.fingerprint() == second.fingerprint()


class TestResolveMany:
    """Resolving every key a run needs."""

    async def test_resolves_unique_keys(self, session, co_rules_2024):
        session.add(
            CountryPayrollRules(
                country_code="MX",
                year=2024,
                currency_code="MXN",
                minimum_wage=Decimal("7468.00"),
                health_employee_pct=Decimal("0.025"),
                pension_employee_pct=Decimal("0.01125"),
                health_employer_pct=Decimal("0.0204"),
                pension_employer_pct=Decimal("0.0315"),
            )
        )
        await session.commit()

        resolved = await CountryRulesRegistry(session).resolve_many(
            [("CO", 2024), ("co", 2024), ("MX", 2024)]
        )

        assert set(resolved) == {("CO", 2024), ("MX", 2024)}
        assert resolved[("MX", 2024)].transport_allowance == Decimal("0.00")

    async def test_fails_on_first_missing(self, session, co_rules_2024):
        with pytest.raises(RulesNotFoundError):
            await CountryRulesRegistry(session).resolve_many([("CO", 2024), ("PE", 2024)])

    async def test_empty_keys(self, session):
        assert await CountryRulesRegistry(session).resolve_many([]) == {}


class TestFingerprint:
    """Rule set fingerprints."""

    async def test_fingerprint_order_independent(self, session, co_rules_2024):
        rules = await CountryRulesRegistry(session).resolve("CO", 2024)
        other = RuleSet(**{**rules.__dict__, "country_code": "PE"})

        a = CountryRulesRegistry.compute_rules_fingerprint([rules, other])
        b = CountryRulesRegistry.compute_rules_fingerprint([other, rules])

        assert a == b
        assert len(a) == 32

    async def test_fingerprint_changes_with_values(self, session, co_rules_2024):
        rules = await CountryRulesRegistry(session).resolve("CO", 2024)
        changed = RuleSet(**{**rules.__dict__, "transport_allowance": Decimal("150000.00")})

        assert rules.fingerprint() != changed.fingerprint()
