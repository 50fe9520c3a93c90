"""Marks one completed run as the final payroll of its period."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nomina.exceptions import AlreadyFinalizedError, InvalidStateError, RunNotFoundError
from nomina.models import PayrollPeriod, PayrollRun
from nomina.services.audit_log import AuditEventLog, AuditEventType
from nomina.services.locking_service import LockingService
from nomina.services.state_machine import PeriodStatus, RunStateMachine, RunStatus

logger = logging.getLogger(__name__)


class RunFinalizer:
    """Finalizes a run and closes its period.

    In one transaction, under the period lock:
    - the run becomes final (it stays completed)
    - every other completed run of the period becomes superseded
    - the period is closed with the final run's totals

    Runs in status error are left as they are.
    """

    def __init__(self, session: AsyncSession, locking_service: LockingService | None = None):
        self.session = session
        self.audit_log = AuditEventLog(session)
        self.locking_service = locking_service or LockingService(session)

    async def mark_final(self, run_id: UUID, actor: str | None = None) -> PayrollRun:
        """Mark a completed run as final.

        Raises:
            RunNotFoundError: If the run doesn't exist
            RunInProgressError: If the period lock is held
            InvalidStateError: If the run isn't completed
            AlreadyFinalizedError: If the period already has a final run
        """
        run = await self.session.get(PayrollRun, run_id)
        if run is None:
            raise RunNotFoundError(run_id)

        async with self.locking_service.hold_period(run.period_id):
            # Re-read under the lock; another operation may have changed it
            await self.session.refresh(run)
            period = await self.session.get(PayrollPeriod, run.period_id, populate_existing=True)

            existing_final = await self._get_final_run(run.period_id)
            if existing_final is not None:
                raise AlreadyFinalizedError(run.period_id, existing_final.run_id)
            if not RunStateMachine.can_finalize(run.status):
                raise InvalidStateError(
                    run.status, "final", "only completed runs can be finalized"
                )

            now = datetime.now(timezone.utc)
            try:
                superseded = await self._supersede_siblings(run, actor)

                run.is_final = True
                run.finalized_at = now
                self._close_period(period, run, now)

                await self.session.flush()
                await self.audit_log.append(
                    run.run_id,
                    run.period_id,
                    AuditEventType.RUN_FINALIZED,
                    {
                        "run_number": run.run_number,
                        "superseded_runs": [str(r) for r in superseded],
                    },
                    actor=actor,
                )
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        logger.info(
            "Finalized run %s #%d for period %s (%d superseded)",
            run.run_id,
            run.run_number,
            run.period_id,
            len(superseded),
        )
        return run

    async def _supersede_siblings(self, run: PayrollRun, actor: str | None) -> list[UUID]:
        result = await self.session.execute(
            select(PayrollRun)
            .where(
                PayrollRun.period_id == run.period_id,
                PayrollRun.run_id != run.run_id,
                PayrollRun.status == RunStatus.COMPLETED.value,
            )
            .order_by(PayrollRun.run_number)
        )
        superseded: list[UUID] = []
        for sibling in result.scalars().all():
            RunStateMachine.transition(sibling, RunStatus.SUPERSEDED)
            sibling.superseded_by_run_id = run.run_id
            await self.audit_log.append(
                sibling.run_id,
                sibling.period_id,
                AuditEventType.RUN_SUPERSEDED,
                {"superseded_by": str(run.run_id), "run_number": sibling.run_number},
                actor=actor,
            )
            superseded.append(sibling.run_id)
        return superseded

    @staticmethod
    def _close_period(period: PayrollPeriod, run: PayrollRun, now: datetime) -> None:
        totals = (run.summary or {}).get("totals", {})
        period.status = PeriodStatus.CLOSED.value
        period.closed_at = now
        period.final_run_id = run.run_id
        period.total_employees = (run.summary or {}).get("employees", 0)
        period.total_gross = Decimal(totals.get("gross_pay", "0"))
        period.total_deductions = Decimal(totals.get("total_deductions", "0"))
        period.total_net = Decimal(totals.get("net_pay", "0"))
        period.total_employer_cost = Decimal(totals.get("employer_cost", "0"))

    async def _get_final_run(self, period_id: UUID) -> PayrollRun | None:
        result = await self.session.execute(
            select(PayrollRun).where(
                PayrollRun.period_id == period_id,
                PayrollRun.is_final.is_(True),
            )
        )
        return result.scalar_one_or_none()
