"""Append-only audit log of payroll run lifecycle events."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nomina.models import PayrollAuditEvent

logger = logging.getLogger(__name__)


class AuditEventType(str, Enum):
    """Lifecycle events recorded for a run."""

    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"
    RUN_ERROR = "run_error"
    RUN_FINALIZED = "run_finalized"
    RUN_SUPERSEDED = "run_superseded"


class AuditEventLog:
    """Appends and lists payroll audit events.

    append() flushes right away: if the insert fails, the error propagates
    and the caller's transaction (run creation, finalization) fails with it.
    Events are never updated or deleted.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        run_id: UUID,
        period_id: UUID,
        event_type: AuditEventType | str,
        detail: dict[str, Any] | None = None,
        actor: str | None = None,
    ) -> PayrollAuditEvent:
        """Append an event for a run."""
        event = PayrollAuditEvent(
            run_id=run_id,
            period_id=period_id,
            event_type=AuditEventType(event_type).value,
            occurred_at=datetime.now(timezone.utc),
            actor=actor,
            detail=detail or {},
        )
        self.session.add(event)
        await self.session.flush()
        logger.info("Audit %s for run %s", event.event_type, run_id)
        return event

    async def list_for_run(self, run_id: UUID) -> list[PayrollAuditEvent]:
        """List a run's events in the order they occurred."""
        result = await self.session.execute(
            select(PayrollAuditEvent)
            .where(PayrollAuditEvent.run_id == run_id)
            .order_by(PayrollAuditEvent.occurred_at, PayrollAuditEvent.event_id)
        )
        return list(result.scalars().all())
