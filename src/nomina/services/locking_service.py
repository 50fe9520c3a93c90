"""Period-scoped exclusive locking for calculation and finalization."""

from __future__ import annotations

import logging
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from nomina.database import acquire_advisory_lock, is_postgres, release_advisory_lock
from nomina.exceptions import RunInProgressError

logger = logging.getLogger(__name__)


class PeriodLockRegistry:
    """Process-local set of held period locks.

    try_acquire never blocks: a held period fails fast so the caller can
    retry later.
    """

    def __init__(self) -> None:
        self._held: set[UUID] = set()
        self._guard = threading.Lock()

    def try_acquire(self, period_id: UUID) -> bool:
        with self._guard:
            if period_id in self._held:
                return False
            self._held.add(period_id)
            return True

    def release(self, period_id: UUID) -> None:
        with self._guard:
            self._held.discard(period_id)

    def is_held(self, period_id: UUID) -> bool:
        with self._guard:
            return period_id in self._held


# Shared by every service instance in the process
period_locks = PeriodLockRegistry()


class LockingService:
    """Service for holding the single-writer lock of a payroll period.

    The lock is taken in two layers:
    1. The process-local registry (threads/tasks in this process)
    2. A PostgreSQL advisory lock (other processes), when on PostgreSQL

    Different periods never contend, even within one organization.
    """

    def __init__(self, session: AsyncSession, registry: PeriodLockRegistry | None = None):
        self.session = session
        self.registry = registry or period_locks

    @asynccontextmanager
    async def hold_period(self, period_id: UUID) -> AsyncIterator[None]:
        """Hold the period lock for the duration of the block.

        Raises:
            RunInProgressError: If another operation holds the lock
        """
        if not self.registry.try_acquire(period_id):
            logger.info("Period %s is locked by another operation", period_id)
            raise RunInProgressError(period_id)

        try:
            if is_postgres(self.session):
                async with self._advisory_lock(period_id):
                    yield
            else:
                yield
        finally:
            self.registry.release(period_id)

    @asynccontextmanager
    async def _advisory_lock(self, period_id: UUID) -> AsyncIterator[None]:
        # Dedicated connection: the session commits mid-operation and may
        # return its own connection to the pool, which would drop the lock.
        engine = self.session.bind
        async with engine.connect() as conn:
            if not await acquire_advisory_lock(conn, str(period_id)):
                logger.info("Period %s is locked by another process", period_id)
                raise RunInProgressError(period_id)
            try:
                yield
            finally:
                await release_advisory_lock(conn, str(period_id))
                await conn.commit()
