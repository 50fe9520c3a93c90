"""Payroll run engine - orchestrates a period's calculation into a versioned run."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from nomina.calculators.line_builder import LineItemBuilder
from nomina.calculators.payslip import PayslipCalculator
from nomina.calculators.rules_registry import CountryRulesRegistry
from nomina.calculators.types import PayslipResult, RuleSet, RunTotals
from nomina.config import get_settings
from nomina.exceptions import PayrollError, PeriodNotFoundError
from nomina.models import Employment, PayrollItem, PayrollLine, PayrollPeriod, PayrollRun
from nomina.services.audit_log import AuditEventLog, AuditEventType
from nomina.services.locking_service import LockingService
from nomina.services.state_machine import RunStateMachine, RunStatus

logger = logging.getLogger(__name__)


@dataclass
class RunPreview:
    """Dry-run calculation of a period (nothing persisted)."""

    period_id: UUID
    results: list[PayslipResult]
    errors: dict[UUID, str] = field(default_factory=dict)  # employment_id -> message
    totals: RunTotals = field(default_factory=RunTotals)


class PayrollRunEngine:
    """Calculates every eligible employment of a period into a new run.

    execute() pipeline, all under the period lock:
    1) Load the period and its eligible employments
    2) Resolve one rule set per (country, year); a missing one stops here,
       before any run row exists
    3) Create the run (status calculating, next run_number) and audit it
    4) Calculate every payslip; any failure marks the run error, no lines kept
    5) Persist lines, items and status completed in one transaction

    Every call creates a new run; earlier runs are never touched.
    """

    def __init__(
        self,
        session: AsyncSession,
        locking_service: LockingService | None = None,
        calculator: PayslipCalculator | None = None,
    ):
        self.session = session
        self.registry = CountryRulesRegistry(session)
        self.audit_log = AuditEventLog(session)
        self.locking_service = locking_service or LockingService(session)
        self.calculator = calculator or PayslipCalculator(get_settings().engine_version)

    async def execute(
        self,
        organization_id: UUID,
        period_id: UUID,
        executed_by: str | None = None,
    ) -> PayrollRun:
        """Calculate a period into a new run.

        Raises:
            RunInProgressError: If the period lock is held
            PeriodNotFoundError: If the period doesn't belong to the organization
            RulesNotFoundError: If an employment's country/year has no rules
            InvalidCompensationError: If an employment can't be calculated
                (the run is left in status error)
        """
        async with self.locking_service.hold_period(period_id):
            period = await self._load_period(organization_id, period_id)
            employments = await self._get_eligible_employments(organization_id, period)
            rule_sets = await self.registry.resolve_many(
                (e.country_code, period.rules_year) for e in employments
            )

            run = await self._start_run(period, rule_sets, executed_by)
            try:
                results = self._calculate_all(employments, rule_sets, period.rules_year)
                await self._complete_run(run, results)
            except Exception as exc:
                await self.session.rollback()
                await self._fail_run(run, exc)
                raise

            logger.info(
                "Run %s #%d for period %s completed with %d payslips",
                run.run_id,
                run.run_number,
                period_id,
                len(results),
            )
            return run

    async def preview(self, organization_id: UUID, period_id: UUID) -> RunPreview:
        """Calculate a period without persisting anything.

        Per-employment failures are collected instead of raised.
        """
        period = await self._load_period(organization_id, period_id)
        employments = await self._get_eligible_employments(organization_id, period)
        rule_sets = await self.registry.resolve_many(
            (e.country_code, period.rules_year) for e in employments
        )

        preview = RunPreview(period_id=period_id, results=[])
        for employment in employments:
            rules = rule_sets[(employment.country_code.upper(), period.rules_year)]
            try:
                result = self.calculator.calculate(employment, rules)
            except PayrollError as e:
                preview.errors[employment.employment_id] = str(e)
                continue
            preview.results.append(result)
            preview.totals.add(result)
        return preview

    def _calculate_all(
        self,
        employments: list[Employment],
        rule_sets: dict[tuple[str, int], RuleSet],
        year: int,
    ) -> list[PayslipResult]:
        """Calculate every employment; the first failure aborts all."""
        return [
            self.calculator.calculate(e, rule_sets[(e.country_code.upper(), year)])
            for e in employments
        ]

    async def _start_run(
        self,
        period: PayrollPeriod,
        rule_sets: dict[tuple[str, int], RuleSet],
        executed_by: str | None,
    ) -> PayrollRun:
        """Create the run header in its own transaction."""
        run = PayrollRun(
            period_id=period.period_id,
            run_number=await self._next_run_number(period.period_id),
            status=RunStatus.CALCULATING.value,
            is_final=False,
            executed_by=executed_by,
            executed_at=datetime.now(timezone.utc),
            rules_snapshot_ref=sorted(str(rs.rules_id) for rs in rule_sets.values()),
            rules_fingerprint=CountryRulesRegistry.compute_rules_fingerprint(
                rule_sets.values()
            ),
            summary={},
        )
        self.session.add(run)
        try:
            await self.session.flush()
            await self.audit_log.append(
                run.run_id,
                period.period_id,
                AuditEventType.RUN_STARTED,
                {"run_number": run.run_number, "rules": run.rules_snapshot_ref},
                actor=executed_by,
            )
            await self.session.commit()
        except Exception:
            # No run row survives without its run_started event
            await self.session.rollback()
            raise

        logger.info(
            "Started run %s #%d for period %s", run.run_id, run.run_number, period.period_id
        )
        return run

    async def _complete_run(self, run: PayrollRun, results: list[PayslipResult]) -> None:
        """Persist all payslips and mark the run completed, atomically."""
        totals = RunTotals()
        for result in results:
            self.session.add(self._build_line(run.run_id, result))
            totals.add(result)

        RunStateMachine.transition(run, RunStatus.COMPLETED)
        run.completed_at = datetime.now(timezone.utc)
        run.summary = totals.to_summary()

        await self.session.flush()
        await self.audit_log.append(
            run.run_id,
            run.period_id,
            AuditEventType.RUN_COMPLETED,
            run.summary,
            actor=run.executed_by,
        )
        await self.session.commit()

    async def _fail_run(self, run: PayrollRun, exc: Exception) -> None:
        """Record the failure on the run in a separate, lightweight write.

        The error status is committed before the audit append, so a run never
        stays calculating even when the audit write fails too.
        """
        await self.session.refresh(run)
        RunStateMachine.transition(run, RunStatus.ERROR)
        run.error_log = str(exc)
        await self.session.commit()
        logger.warning("Run %s #%d failed: %s", run.run_id, run.run_number, exc)

        detail: dict[str, str] = {
            "error": str(exc),
            "code": getattr(exc, "code", type(exc).__name__),
        }
        employment_id = getattr(exc, "employment_id", None)
        if employment_id is not None:
            detail["employment_id"] = str(employment_id)

        try:
            await self.audit_log.append(
                run.run_id, run.period_id, AuditEventType.RUN_ERROR, detail, actor=run.executed_by
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    @staticmethod
    def _build_line(run_id: UUID, result: PayslipResult) -> PayrollLine:
        line = PayrollLine(
            run_id=run_id,
            employment_id=result.employment_id,
            rules_id=result.rules_id,
            country_code=result.country_code,
            currency_code=result.currency_code,
            base_salary=result.base_salary,
            transport_allowance_applied=result.transport_allowance_applied,
            health_employee_deduction=result.health_employee_deduction,
            pension_employee_deduction=result.pension_employee_deduction,
            health_employer_contribution=result.health_employer_contribution,
            pension_employer_contribution=result.pension_employer_contribution,
            gross_pay=result.gross_pay,
            total_employee_deductions=result.total_employee_deductions,
            net_pay=result.net_pay,
            total_employer_cost=result.total_employer_cost,
            calculation_id=result.calculation_id,
        )
        line.items = [
            PayrollItem(
                position=position,
                item_type=item.item_type.value,
                code=item.code,
                name=item.name,
                amount=item.amount,
                base_amount=item.base_amount,
                percentage=item.percentage,
                line_hash=LineItemBuilder.compute_line_hash(item),
            )
            for position, item in enumerate(result.items)
        ]
        return line

    # === Data Loading Methods ===

    async def _load_period(self, organization_id: UUID, period_id: UUID) -> PayrollPeriod:
        period = await self.session.get(PayrollPeriod, period_id)
        if period is None or period.organization_id != organization_id:
            raise PeriodNotFoundError(period_id, organization_id)
        return period

    async def _get_eligible_employments(
        self, organization_id: UUID, period: PayrollPeriod
    ) -> list[Employment]:
        """Active employments whose tenure overlaps the period."""
        result = await self.session.execute(
            select(Employment)
            .where(
                Employment.organization_id == organization_id,
                Employment.is_active.is_(True),
                Employment.hire_date <= period.end_date,
                (
                    Employment.termination_date.is_(None)
                    | (Employment.termination_date >= period.start_date)
                ),
            )
            .order_by(Employment.employment_id)
        )
        return list(result.scalars().all())

    async def _next_run_number(self, period_id: UUID) -> int:
        current = await self.session.scalar(
            select(func.max(PayrollRun.run_number)).where(PayrollRun.period_id == period_id)
        )
        return (current or 0) + 1
