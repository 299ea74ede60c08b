"""Exclusive calculating lock per payroll period."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator
from uuid import UUID, uuid4

from indo_payroll.errors import ConcurrencyConflict, InvalidStateTransition, NotFoundError
from indo_payroll.models.base import utcnow
from indo_payroll.repositories.payroll import PayrollRepository
from indo_payroll.services.state_machine import PeriodStateMachine, PeriodStatus

logger = logging.getLogger(__name__)


class LockingService:
    """Service for holding a period while it is being calculated.

    The lock is a token written to the period row by a conditional UPDATE,
    so it works across processes and database backends. It is taken before
    any collaborator is called and released in a finally block, whatever
    the outcome. A lock older than the TTL is treated as abandoned and may
    be taken over.

    A second calculation on a held period fails fast with ConcurrencyConflict
    instead of queueing.
    """

    def __init__(self, payroll: PayrollRepository, ttl_seconds: int = 900):
        self.payroll = payroll
        self.ttl = timedelta(seconds=ttl_seconds)

    async def acquire(self, period_id: UUID, actor: str | None = None) -> UUID:
        token = uuid4()
        acquired = await self.payroll.try_acquire_lock(
            period_id, token, actor, stale_before=utcnow() - self.ttl
        )
        if acquired:
            logger.info("Calculation lock %s acquired on period %s", token, period_id)
            return token

        period = await self.payroll.get_period(period_id)
        if period is None:
            raise NotFoundError("Payroll period", period_id)
        if not PeriodStateMachine.can_calculate(period.status):
            raise InvalidStateTransition(
                period.status,
                PeriodStatus.CALCULATED.value,
                "finalized periods cannot be recalculated",
            )
        raise ConcurrencyConflict(
            f"Payroll period {period.period_label} is already being calculated"
            + (f" by {period.locked_by}" if period.locked_by else "")
        )

    async def release(self, period_id: UUID, token: UUID) -> None:
        released = await self.payroll.release_lock(period_id, token)
        if released:
            logger.info("Calculation lock %s released on period %s", token, period_id)
        else:
            logger.warning(
                "Calculation lock %s on period %s was no longer held at release",
                token,
                period_id,
            )

    @asynccontextmanager
    async def hold(self, period_id: UUID, actor: str | None = None) -> AsyncIterator[UUID]:
        """Hold the calculating lock for the duration of the block."""
        token = await self.acquire(period_id, actor)
        try:
            yield token
        finally:
            await self.release(period_id, token)
