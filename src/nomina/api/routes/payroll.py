"""Payroll run API endpoints."""

from datetime import datetime, timezone
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from nomina.api.dependencies import DbSession
from nomina.api.schemas import (
    AuditEventResponse,
    CurrentRunResponse,
    ErrorResponse,
    FinalizeRequest,
    PayslipListResponse,
    PayslipResponse,
    PeriodRunsResponse,
    PreviewPayslip,
    PreviewRequest,
    PreviewResponse,
    RunCreate,
    RunResponse,
)
from nomina.services.audit_log import AuditEventLog
from nomina.services.finalizer import RunFinalizer
from nomina.services.queries import PayrollQueries
from nomina.services.run_engine import PayrollRunEngine

router = APIRouter(prefix="/payroll", tags=["payroll"])


# ============================================================================
# Runs
# ============================================================================


@router.post(
    "/runs",
    response_model=RunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def execute_run(db: DbSession, payload: RunCreate) -> RunResponse:
    """Calculate a period into a new run."""
    engine = PayrollRunEngine(db)
    run = await engine.execute(
        payload.organization_id, payload.period_id, executed_by=payload.executed_by
    )
    return RunResponse.model_validate(run)


@router.post(
    "/runs/{run_id}/finalize",
    response_model=RunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def finalize_run(
    db: DbSession,
    run_id: Annotated[UUID, Path()],
    payload: FinalizeRequest | None = None,
) -> RunResponse:
    """Mark a completed run as the period's final payroll."""
    actor = payload.actor if payload else None
    run = await RunFinalizer(db).mark_final(run_id, actor=actor)
    return RunResponse.model_validate(run)


@router.get(
    "/runs/{run_id}",
    response_model=RunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_run(db: DbSession, run_id: Annotated[UUID, Path()]) -> RunResponse:
    """Get a run by ID."""
    run = await PayrollQueries(db).get_run(run_id)
    return RunResponse.model_validate(run)


@router.get(
    "/runs/{run_id}/payslips",
    response_model=PayslipListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_payslips(
    db: DbSession, run_id: Annotated[UUID, Path()]
) -> PayslipListResponse:
    """List a run's payslips with their items."""
    lines = await PayrollQueries(db).list_payslips(run_id)
    return PayslipListResponse(
        run_id=run_id,
        items=[PayslipResponse.model_validate(line) for line in lines],
        total=len(lines),
    )


@router.get(
    "/runs/{run_id}/events",
    response_model=list[AuditEventResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_events(
    db: DbSession, run_id: Annotated[UUID, Path()]
) -> list[AuditEventResponse]:
    """List a run's audit events in order."""
    await PayrollQueries(db).get_run(run_id)
    events = await AuditEventLog(db).list_for_run(run_id)
    return [AuditEventResponse.model_validate(e) for e in events]


# ============================================================================
# Periods
# ============================================================================


@router.get(
    "/periods/{period_id}/runs",
    response_model=PeriodRunsResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_period_runs(
    db: DbSession, period_id: Annotated[UUID, Path()]
) -> PeriodRunsResponse:
    """List every run of a period, oldest first."""
    queries = PayrollQueries(db)
    period = await queries.get_period(period_id)
    runs = await queries.list_runs(period_id)
    return PeriodRunsResponse(
        period_id=period_id,
        period_status=period.status,
        final_run_id=period.final_run_id,
        items=[RunResponse.model_validate(r) for r in runs],
    )


@router.get(
    "/periods/{period_id}/current-run",
    response_model=CurrentRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_current_run(
    db: DbSession, period_id: Annotated[UUID, Path()]
) -> CurrentRunResponse:
    """Get the final run of a period, or its latest completed run."""
    run = await PayrollQueries(db).current_run(period_id)
    return CurrentRunResponse(
        period_id=period_id,
        run=RunResponse.model_validate(run) if run is not None else None,
    )


@router.post(
    "/periods/{period_id}/preview",
    response_model=PreviewResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def preview_period(
    db: DbSession,
    period_id: Annotated[UUID, Path()],
    payload: PreviewRequest,
) -> PreviewResponse:
    """Calculate a period without saving a run."""
    preview = await PayrollRunEngine(db).preview(payload.organization_id, period_id)
    return PreviewResponse(
        period_id=period_id,
        payslips=[PreviewPayslip.model_validate(r) for r in preview.results],
        errors={str(k): v for k, v in preview.errors.items()},
        total_employees=preview.totals.employees,
        total_gross=preview.totals.gross_pay,
        total_deductions=preview.totals.total_deductions,
        total_net=preview.totals.net_pay,
        total_employer_cost=preview.totals.employer_cost,
        computed_at=datetime.now(timezone.utc),
    )
