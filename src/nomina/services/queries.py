"""Read-side queries over runs and payslips."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from nomina.exceptions import PeriodNotFoundError, RunNotFoundError
from nomina.models import PayrollLine, PayrollPeriod, PayrollRun
from nomina.services.state_machine import RunStatus


class PayrollQueries:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_run(self, run_id: UUID) -> PayrollRun:
        run = await self.session.get(PayrollRun, run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    async def get_period(self, period_id: UUID) -> PayrollPeriod:
        period = await self.session.get(PayrollPeriod, period_id)
        if period is None:
            raise PeriodNotFoundError(period_id)
        return period

    async def list_runs(self, period_id: UUID) -> list[PayrollRun]:
        """All runs of a period, oldest first."""
        await self.get_period(period_id)
        result = await self.session.execute(
            select(PayrollRun)
            .where(PayrollRun.period_id == period_id)
            .order_by(PayrollRun.run_number)
        )
        return list(result.scalars().all())

    async def list_payslips(self, run_id: UUID) -> list[PayrollLine]:
        """A run's payslip lines with their items."""
        await self.get_run(run_id)
        result = await self.session.execute(
            select(PayrollLine)
            .where(PayrollLine.run_id == run_id)
            .options(selectinload(PayrollLine.items))
            .order_by(PayrollLine.employment_id)
        )
        return list(result.scalars().all())

    async def current_run(self, period_id: UUID) -> PayrollRun | None:
        """The period's final run, else its latest completed run."""
        await self.get_period(period_id)
        result = await self.session.execute(
            select(PayrollRun)
            .where(PayrollRun.period_id == period_id, PayrollRun.is_final.is_(True))
        )
        final = result.scalar_one_or_none()
        if final is not None:
            return final

        result = await self.session.execute(
            select(PayrollRun)
            .where(
                PayrollRun.period_id == period_id,
                PayrollRun.status == RunStatus.COMPLETED.value,
            )
            .order_by(PayrollRun.run_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
