"""Persistence gateway for payroll periods, line items and variable inputs."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Mapping
from uuid import UUID

from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from indo_payroll.calculators.engine import PeriodTotals
from indo_payroll.calculators.line_builder import LineItemData
from indo_payroll.calculators.types import VariableAmounts
from indo_payroll.errors import (
    ConcurrencyConflict,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from indo_payroll.models import PayrollLineItem, PayrollPeriod, VariableInput
from indo_payroll.models.base import utcnow
from indo_payroll.services.state_machine import PeriodStateMachine, PeriodStatus


class PayrollRepository:
    """All writes to a period go through conditional statements here.

    The period row is the unit of consistency: line items, totals, status
    and the variable inputs of a run are replaced in one transaction guarded
    by the calculating lock token.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    # === Periods ===

    async def create_period(self, month: int, year: int) -> PayrollPeriod:
        period = PayrollPeriod(month=month, year=year, status=PeriodStatus.DRAFT.value)
        try:
            async with self.session_factory() as session, session.begin():
                session.add(period)
        except IntegrityError as e:
            raise ValidationError(
                f"Payroll period {year:04d}-{month:02d} already exists"
            ) from e
        return period

    async def get_period(self, period_id: UUID) -> PayrollPeriod | None:
        async with self.session_factory() as session:
            return await session.get(PayrollPeriod, period_id)

    async def require_period(self, period_id: UUID) -> PayrollPeriod:
        period = await self.get_period(period_id)
        if period is None:
            raise NotFoundError("Payroll period", period_id)
        return period

    async def list_periods(
        self,
        status: str | None = None,
        year: int | None = None,
        limit: int = 50,
    ) -> list[PayrollPeriod]:
        stmt = select(PayrollPeriod).order_by(
            PayrollPeriod.year.desc(), PayrollPeriod.month.desc()
        )
        if status is not None:
            stmt = stmt.where(PayrollPeriod.status == status)
        if year is not None:
            stmt = stmt.where(PayrollPeriod.year == year)
        async with self.session_factory() as session:
            return list((await session.execute(stmt.limit(limit))).scalars().all())

    async def delete_draft_period(self, period_id: UUID) -> bool:
        """Delete a draft period that no calculation holds. Returns False if not allowed."""
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                delete(PayrollPeriod).where(
                    PayrollPeriod.period_id == period_id,
                    PayrollPeriod.status == PeriodStatus.DRAFT.value,
                    PayrollPeriod.lock_token.is_(None),
                )
            )
            return result.rowcount == 1

    async def status_counts(self) -> dict[str, int]:
        stmt = select(PayrollPeriod.status, func.count()).group_by(PayrollPeriod.status)
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).all()
        return {status: count for status, count in rows}

    async def finalized_net_total(self, year: int) -> Decimal:
        stmt = select(func.coalesce(func.sum(PayrollPeriod.total_net), 0)).where(
            PayrollPeriod.status == PeriodStatus.FINALIZED.value,
            PayrollPeriod.year == year,
        )
        async with self.session_factory() as session:
            total = (await session.execute(stmt)).scalar_one()
        return Decimal(str(total))

    # === Calculating lock ===

    async def try_acquire_lock(
        self, period_id: UUID, token: UUID, actor: str | None, stale_before: datetime
    ) -> bool:
        """Take the calculating lock if free (or stale) and the period is not finalized."""
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                update(PayrollPeriod)
                .where(
                    PayrollPeriod.period_id == period_id,
                    PayrollPeriod.status.in_(
                        [s.value for s in PeriodStateMachine.CALCULATION_ALLOWED]
                    ),
                    or_(
                        PayrollPeriod.lock_token.is_(None),
                        PayrollPeriod.locked_at < stale_before,
                    ),
                )
                .values(lock_token=token, locked_at=utcnow(), locked_by=actor)
            )
            return result.rowcount == 1

    async def release_lock(self, period_id: UUID, token: UUID) -> bool:
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                update(PayrollPeriod)
                .where(
                    PayrollPeriod.period_id == period_id,
                    PayrollPeriod.lock_token == token,
                )
                .values(lock_token=None, locked_at=None, locked_by=None)
            )
            return result.rowcount == 1

    # === Line items ===

    async def list_line_items(self, period_id: UUID) -> list[PayrollLineItem]:
        stmt = (
            select(PayrollLineItem)
            .where(PayrollLineItem.period_id == period_id)
            .order_by(PayrollLineItem.employee_number)
        )
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def replace_payroll_items(
        self,
        period_id: UUID,
        lock_token: UUID,
        items: list[LineItemData],
        totals: PeriodTotals,
        variable_inputs: Mapping[UUID, VariableAmounts] | None = None,
        actor: str | None = None,
    ) -> None:
        """Swap in a complete line-item set with its totals, atomically.

        The period row is updated first, conditional on the caller still
        holding the lock and the period not being finalized. Nothing is
        written when that condition fails.
        """
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                update(PayrollPeriod)
                .where(
                    PayrollPeriod.period_id == period_id,
                    PayrollPeriod.lock_token == lock_token,
                    PayrollPeriod.status != PeriodStatus.FINALIZED.value,
                )
                .values(
                    status=PeriodStatus.CALCULATED.value,
                    calculated_at=utcnow(),
                    calculated_by=actor,
                    **totals.to_dict(),
                )
            )
            if result.rowcount != 1:
                raise ConcurrencyConflict(
                    f"Payroll period {period_id} is no longer held by this calculation"
                )

            await session.execute(
                delete(PayrollLineItem).where(PayrollLineItem.period_id == period_id)
            )
            if items:
                await session.execute(insert(PayrollLineItem), [i.to_row() for i in items])
            if variable_inputs:
                await self._upsert_variable_inputs(session, period_id, variable_inputs)

    async def finalize_period(
        self, period_id: UUID, actor: str | None, calculated_at: datetime | None
    ) -> bool:
        """Move calculated -> finalized if nothing changed since `calculated_at`."""
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                update(PayrollPeriod)
                .where(
                    PayrollPeriod.period_id == period_id,
                    PayrollPeriod.status == PeriodStatus.CALCULATED.value,
                    PayrollPeriod.lock_token.is_(None),
                    PayrollPeriod.calculated_at == calculated_at,
                )
                .values(
                    status=PeriodStatus.FINALIZED.value,
                    finalized_at=utcnow(),
                    finalized_by=actor,
                )
            )
            return result.rowcount == 1

    # === Variable inputs ===

    async def get_variable_inputs(self, period_id: UUID) -> dict[UUID, VariableAmounts]:
        stmt = select(VariableInput).where(VariableInput.period_id == period_id)
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return {
            row.employee_id: VariableAmounts(
                bonus=row.bonus,
                overtime_pay=row.overtime_pay,
                other_allowances=row.other_allowances,
                other_deductions=row.other_deductions,
            )
            for row in rows
        }

    async def save_variable_inputs(
        self, period_id: UUID, inputs: Mapping[UUID, VariableAmounts]
    ) -> None:
        """Store inputs outside a calculation run. Finalized periods reject this."""
        async with self.session_factory() as session, session.begin():
            period = (
                await session.execute(
                    select(PayrollPeriod)
                    .where(PayrollPeriod.period_id == period_id)
                    .with_for_update()
                )
            ).scalar_one_or_none()
            if period is None:
                raise NotFoundError("Payroll period", period_id)
            if not PeriodStateMachine.can_modify_inputs(period.status):
                raise InvalidStateTransition(
                    period.status, period.status, "variable inputs of a finalized period are frozen"
                )
            await self._upsert_variable_inputs(session, period_id, inputs)

    @staticmethod
    async def _upsert_variable_inputs(
        session: AsyncSession, period_id: UUID, inputs: Mapping[UUID, VariableAmounts]
    ) -> None:
        existing = {
            row.employee_id: row
            for row in (
                await session.execute(
                    select(VariableInput).where(
                        VariableInput.period_id == period_id,
                        VariableInput.employee_id.in_(list(inputs)),
                    )
                )
            ).scalars()
        }
        for employee_id, amounts in inputs.items():
            row = existing.get(employee_id)
            if row is None:
                row = VariableInput(period_id=period_id, employee_id=employee_id)
                session.add(row)
            row.bonus = amounts.bonus
            row.overtime_pay = amounts.overtime_pay
            row.other_allowances = amounts.other_allowances
            row.other_deductions = amounts.other_deductions
        await session.flush()
