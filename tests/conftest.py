"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from nomina.database import make_session_factory
from nomina.models import Base, CountryPayrollRules, Employment, PayrollPeriod
from nomina.services.audit_log import AuditEventLog, AuditEventType

# One in-memory SQLite database per test, shared by every connection via
# StaticPool. Services commit, so each test needs its own database.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def organization_id() -> UUID:
    return uuid4()


@pytest_asyncio.fixture
async def co_rules_2024(session: AsyncSession) -> CountryPayrollRules:
    """Colombian 2024 rule set with the reference allowance and cap."""
    rules = CountryPayrollRules(
        country_code="CO",
        name="Colombia 2024",
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
    session.add(rules)
    await session.commit()
    return rules


@pytest_asyncio.fixture
async def period(session: AsyncSession, organization_id: UUID) -> PayrollPeriod:
    """January 2024 payroll period."""
    period = PayrollPeriod(
        organization_id=organization_id,
        name="2024-01",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 31),
    )
    session.add(period)
    await session.commit()
    return period


EmploymentFactory = Callable[..., Awaitable[Employment]]


@pytest.fixture
def make_employment(session: AsyncSession, organization_id: UUID) -> EmploymentFactory:
    """Factory for committed employments of the test organization."""

    async def _make(
        base_salary: Decimal | None = Decimal("1300000.00"),
        country_code: str = "CO",
        **overrides,
    ) -> Employment:
        values = {
            "organization_id": organization_id,
            "employee_name": "Test Employee",
            "country_code": country_code,
            "base_salary": base_salary,
            "salary_period": "monthly",
            "currency_code": "COP",
            "hire_date": date(2023, 1, 1),
        }
        values.update(overrides)
        employment = Employment(**values)
        session.add(employment)
        await session.commit()
        return employment

    return _make


@pytest_asyncio.fixture
async def two_employments(make_employment: EmploymentFactory) -> list[Employment]:
    """One salary below the transport cap and one above it."""
    below = await make_employment(Decimal("1300000.00"), employee_name="Ana")
    above = await make_employment(Decimal("3000000.00"), employee_name="Bruno")
    return [below, above]


@pytest.fixture
def fail_audit(monkeypatch):
    """Make an audit log's inserts fail for the given event types."""

    def _fail(audit_log: AuditEventLog, *event_types: AuditEventType) -> None:
        original = audit_log.append

        async def append(run_id, period_id, event_type, detail=None, actor=None):
            if AuditEventType(event_type) in event_types:
                raise OperationalError(
                    "INSERT INTO payroll_audit_events", None, Exception("audit store unavailable")
                )
            return await original(run_id, period_id, event_type, detail, actor=actor)

        monkeypatch.setattr(audit_log, "append", append)

    return _fail
