"""Write guards that keep finalized payroll artifacts immutable.

Enforced in the ORM so every write path through a Session is covered:
- a final run, its payslip lines and their items can't be updated or
  deleted, and no line or item can be added to a final run
- audit events can't be updated or deleted
- a rule set used by a completed run can't be edited or deleted, only retired

Unit-of-work writes are checked in before_flush; bulk UPDATE and DELETE
statements are checked in do_orm_execute. Finality is always read from the
database, never from attribute history, so expired instances are covered.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event, exists, inspect, select
from sqlalchemy.orm import ORMExecuteState, Session, aliased

from nomina.exceptions import ImmutableRecordError
from nomina.models.payroll import (
    CountryPayrollRules,
    PayrollAuditEvent,
    PayrollItem,
    PayrollLine,
    PayrollRun,
)

# Run statuses that mean the calculation completed at some point
_COMPLETED_STATUSES = ("completed", "superseded")


def _persisted_pk(obj: object) -> Any:
    """Primary key from the identity map; no load even when expired."""
    identity = inspect(obj).identity
    return identity[0] if identity else None


def _changed_attributes(obj: object) -> set[str]:
    state = inspect(obj)
    return {attr.key for attr in state.attrs if attr.history.has_changes()}


def _run_is_final(session: Session, run_id: Any) -> bool:
    if run_id is None:
        return False
    return bool(
        session.scalar(select(PayrollRun.is_final).where(PayrollRun.run_id == run_id))
    )


def _line_run_id(line: PayrollLine) -> Any:
    """Run of a line, whether attached by key or by relationship."""
    if line.run_id is not None:
        return line.run_id
    if line.run is not None:
        return line.run.run_id
    return None


def _item_run_id(session: Session, item: PayrollItem) -> Any:
    if item.line is not None and item.line in session.new:
        return _line_run_id(item.line)
    line_id = item.line_id if item.line_id is not None else getattr(item.line, "line_id", None)
    if line_id is None:
        return None
    return session.scalar(select(PayrollLine.run_id).where(PayrollLine.line_id == line_id))


def _rules_referenced(session: Session, rules_id: Any) -> bool:
    stmt = select(
        exists()
        .where(PayrollLine.rules_id == rules_id)
        .where(PayrollLine.run_id == PayrollRun.run_id)
        .where(PayrollRun.status.in_(_COMPLETED_STATUSES))
    )
    return bool(session.scalar(stmt))


def _check_inserts(session: Session, new: list[object]) -> None:
    """New lines and items may only target runs that aren't final."""
    run_ids = set()
    for obj in new:
        if isinstance(obj, PayrollLine):
            run_ids.add(_line_run_id(obj))
        elif isinstance(obj, PayrollItem):
            run_ids.add(_item_run_id(session, obj))
    run_ids.discard(None)
    if not run_ids:
        return

    final_run_id = session.scalar(
        select(PayrollRun.run_id)
        .where(PayrollRun.run_id.in_(run_ids), PayrollRun.is_final.is_(True))
        .limit(1)
    )
    if final_run_id is not None:
        raise ImmutableRecordError(
            "Payroll run", final_run_id, "payslip lines can't be added to a final run"
        )


def _check_change(session: Session, obj: object, action: str) -> None:
    if isinstance(obj, PayrollAuditEvent):
        raise ImmutableRecordError(
            "Audit event", _persisted_pk(obj), f"audit log is append-only ({action})"
        )

    if isinstance(obj, PayrollRun):
        run_id = _persisted_pk(obj)
        if _run_is_final(session, run_id):
            raise ImmutableRecordError("Payroll run", run_id, f"run is final ({action})")
        return

    if isinstance(obj, PayrollLine):
        line_id = _persisted_pk(obj)
        run_id = session.scalar(
            select(PayrollLine.run_id).where(PayrollLine.line_id == line_id)
        )
        if _run_is_final(session, run_id):
            raise ImmutableRecordError(
                "Payroll line", line_id, f"belongs to a final run ({action})"
            )
        return

    if isinstance(obj, PayrollItem):
        item_id = _persisted_pk(obj)
        run_id = session.scalar(
            select(PayrollLine.run_id)
            .join(PayrollItem, PayrollItem.line_id == PayrollLine.line_id)
            .where(PayrollItem.item_id == item_id)
        )
        if _run_is_final(session, run_id):
            raise ImmutableRecordError(
                "Payroll item", item_id, f"belongs to a final run ({action})"
            )
        return

    if isinstance(obj, CountryPayrollRules):
        # Retiring a rule set doesn't change the values runs were calculated with
        if action == "update" and _changed_attributes(obj) <= {"is_active"}:
            return
        rules_id = _persisted_pk(obj)
        if _rules_referenced(session, rules_id):
            raise ImmutableRecordError(
                "Country payroll rules",
                rules_id,
                f"referenced by a completed run ({action}); create a new rule set instead",
            )


@event.listens_for(Session, "before_flush")
def reject_immutable_writes(session: Session, flush_context: Any, instances: Any) -> None:
    """Reject unit-of-work writes to immutable payroll records."""
    with session.no_autoflush:
        _check_inserts(session, list(session.new))
        for obj in list(session.dirty):
            if session.is_modified(obj, include_collections=False):
                _check_change(session, obj, "update")
        for obj in list(session.deleted):
            _check_change(session, obj, "delete")


def _final_rows_matched(session: Session, table_name: str, criteria: Any) -> bool:
    """Whether a bulk statement's WHERE matches anything belonging to a final run."""
    # Aliased so subqueries in the statement's WHERE don't correlate to them
    run = aliased(PayrollRun)
    line = aliased(PayrollLine)
    if table_name == PayrollRun.__tablename__:
        stmt = exists().where(PayrollRun.is_final.is_(True))
    elif table_name == PayrollLine.__tablename__:
        stmt = exists().where(PayrollLine.run_id == run.run_id).where(run.is_final.is_(True))
    elif table_name == PayrollItem.__tablename__:
        stmt = (
            exists()
            .where(PayrollItem.line_id == line.line_id)
            .where(line.run_id == run.run_id)
            .where(run.is_final.is_(True))
        )
    else:
        return False
    if criteria is not None:
        stmt = stmt.where(criteria)
    return bool(session.scalar(select(stmt)))


@event.listens_for(Session, "do_orm_execute")
def reject_immutable_bulk_writes(orm_execute_state: ORMExecuteState) -> None:
    """Reject bulk UPDATE and DELETE statements that touch immutable records."""
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return

    statement = orm_execute_state.statement
    table = getattr(statement, "table", None)
    table_name = getattr(table, "name", None)
    action = "update" if orm_execute_state.is_update else "delete"

    if table_name == PayrollAuditEvent.__tablename__:
        raise ImmutableRecordError("Audit event", None, f"audit log is append-only ({action})")

    session = orm_execute_state.session
    with session.no_autoflush:
        if _final_rows_matched(session, table_name, statement.whereclause):
            raise ImmutableRecordError(
                table_name, None, f"statement matches rows of a final run ({action})"
            )
