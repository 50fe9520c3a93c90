"""Payroll engine services."""

from nomina.services.audit_log import AuditEventLog, AuditEventType
from nomina.services.finalizer import RunFinalizer
from nomina.services.locking_service import LockingService, PeriodLockRegistry, period_locks
from nomina.services.queries import PayrollQueries
from nomina.services.run_engine import PayrollRunEngine, RunPreview
from nomina.services.state_machine import PeriodStatus, RunStateMachine, RunStatus

__all__ = [
    "AuditEventLog",
    "AuditEventType",
    "LockingService",
    "PayrollQueries",
    "PayrollRunEngine",
    "PeriodLockRegistry",
    "PeriodStatus",
    "RunFinalizer",
    "RunPreview",
    "RunStateMachine",
    "RunStatus",
    "period_locks",
]
