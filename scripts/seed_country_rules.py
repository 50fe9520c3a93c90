"""Seed script for statutory country payroll rules.

Run with:
    python scripts/seed_country_rules.py

This creates the Colombian rule sets for 2024 and 2025. Existing active rule
sets for the same country and year are left untouched.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nomina.database import get_session, init_db
from nomina.models import Base, CountryPayrollRules

# Employer charges that don't change year to year: ARL by risk class
# (Decreto 1772 de 1994), parafiscales (SENA, ICBF, caja de compensación)
# and the cesantías, intereses, vacaciones and prima provisions
COLOMBIA_EMPLOYER_CHARGES = {
    "arl_pct_by_risk_level": {
        "1": "0.00522",
        "2": "0.01044",
        "3": "0.02436",
        "4": "0.04350",
        "5": "0.06960",
    },
    "parafiscales_pct": Decimal("0.09"),
    "severance_pct": Decimal("0.0833"),
    "severance_interest_pct": Decimal("0.12"),
    "vacation_pct": Decimal("0.0417"),
    "bonus_pct": Decimal("0.0833"),
}

# Colombian statutory values: SMMLV, auxilio de transporte and the
# health/pension contribution rates (Ley 100 de 1993)
COLOMBIA_RULES = [
    {
        "country_code": "CO",
        "name": "Colombia 2024",
        "year": 2024,
        "currency_code": "COP",
        "minimum_wage": Decimal("1300000.00"),
        "health_employee_pct": Decimal("0.04"),
        "pension_employee_pct": Decimal("0.04"),
        "health_employer_pct": Decimal("0.085"),
        "pension_employer_pct": Decimal("0.12"),
        "transport_allowance": Decimal("162000.00"),
        "transport_allowance_salary_cap": Decimal("2600000.00"),
        **COLOMBIA_EMPLOYER_CHARGES,
    },
    {
        "country_code": "CO",
        "name": "Colombia 2025",
        "year": 2025,
        "currency_code": "COP",
        "minimum_wage": Decimal("1423500.00"),
        "health_employee_pct": Decimal("0.04"),
        "pension_employee_pct": Decimal("0.04"),
        "health_employer_pct": Decimal("0.085"),
        "pension_employer_pct": Decimal("0.12"),
        "transport_allowance": Decimal("200000.00"),
        "transport_allowance_salary_cap": Decimal("2847000.00"),
        **COLOMBIA_EMPLOYER_CHARGES,
    },
]


async def seed_rules(session: AsyncSession, rules: list[dict]) -> int:
    """Insert missing rule sets, returning how many were created."""
    created = 0
    for values in rules:
        result = await session.execute(
            select(CountryPayrollRules).where(
                CountryPayrollRules.country_code == values["country_code"],
                CountryPayrollRules.year == values["year"],
                CountryPayrollRules.is_active.is_(True),
            )
        )
        if result.scalar_one_or_none():
            print(f"{values['name']} already exists, skipping...")
            continue

        session.add(CountryPayrollRules(**values))
        created += 1
        print(f"Created {values['name']} rules")

    await session.flush()
    return created


async def create_tables() -> None:
    engine, _ = init_db()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def main():
    """Run seed script."""
    print("Seeding country payroll rules...")

    await create_tables()
    async with get_session() as session:
        created = await seed_rules(session, COLOMBIA_RULES)

    print(f"\nDone! {created} rule set(s) seeded.")


if __name__ == "__main__":
    asyncio.run(main())
