"""Statutory rule set resolution by country and fiscal year."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nomina.calculators.types import RuleSet
from nomina.exceptions import RulesNotFoundError
from nomina.models import CountryPayrollRules


class CountryRulesRegistry:
    """Resolves the active statutory rule set for a country and year.

    Rule selection:
    1. country_code matches (case-insensitive, stored upper-case)
    2. year matches exactly; a later or earlier year is never used
    3. is_active is true (at most one such row per country/year)

    Read-only; no locking needed.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve(self, country_code: str, year: int) -> RuleSet:
        """Resolve the rule set for a country and year.

        Raises:
            RulesNotFoundError: If no active rule set exists for that year
        """
        country = country_code.upper()
        result = await self.session.execute(
            select(CountryPayrollRules).where(
                CountryPayrollRules.country_code == country,
                CountryPayrollRules.year == year,
                CountryPayrollRules.is_active.is_(True),
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise RulesNotFoundError(country, year)
        return RuleSet.from_model(row)

    async def resolve_many(
        self, keys: Iterable[tuple[str, int]]
    ) -> dict[tuple[str, int], RuleSet]:
        """Resolve several (country_code, year) keys, failing on the first missing."""
        resolved: dict[tuple[str, int], RuleSet] = {}
        for country_code, year in sorted(set((c.upper(), y) for c, y in keys)):
            resolved[(country_code, year)] = await self.resolve(country_code, year)
        return resolved

    @staticmethod
    def compute_rules_fingerprint(rule_sets: Iterable[RuleSet]) -> str:
        """Compute fingerprint of all rule sets used in a run."""
        fingerprints = sorted(rs.fingerprint() for rs in rule_sets)
        json_str = json.dumps(fingerprints)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]
