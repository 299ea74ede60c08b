"""Employee and salary component collaborators."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from indo_payroll.models import Employee, SalaryComponent


class EmployeeRepository:
    """Read access to employees."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, employee_id: UUID) -> Employee | None:
        async with self.session_factory() as session:
            return await session.get(Employee, employee_id)

    async def list_active(self) -> list[Employee]:
        """All employees currently on payroll, ordered by employee number."""
        stmt = (
            select(Employee)
            .where(Employee.status == "active")
            .order_by(Employee.employee_number)
        )
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def list_by_ids(self, employee_ids: Iterable[UUID]) -> list[Employee]:
        ids = list(employee_ids)
        if not ids:
            return []
        stmt = (
            select(Employee)
            .where(Employee.employee_id.in_(ids))
            .order_by(Employee.employee_number)
        )
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def list_active_matching(
        self,
        department_ids: Iterable[UUID] | None = None,
        position_id: UUID | None = None,
    ) -> list[Employee]:
        stmt = (
            select(Employee)
            .where(Employee.status == "active")
            .order_by(Employee.employee_number)
        )
        if department_ids is not None:
            stmt = stmt.where(Employee.department_id.in_(list(department_ids)))
        if position_id is not None:
            stmt = stmt.where(Employee.position_id == position_id)
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())


class SalaryComponentRepository:
    """Read access to live salary components.

    Writes go through the salary ledger only.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, component_id: UUID) -> SalaryComponent | None:
        async with self.session_factory() as session:
            return await session.get(SalaryComponent, component_id)

    async def list_active(self, employee_id: UUID) -> list[SalaryComponent]:
        stmt = (
            select(SalaryComponent)
            .where(
                SalaryComponent.employee_id == employee_id,
                SalaryComponent.is_active.is_(True),
            )
            .order_by(SalaryComponent.kind, SalaryComponent.name)
        )
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def list_for_employee(self, employee_id: UUID) -> list[SalaryComponent]:
        """Active and inactive components."""
        stmt = (
            select(SalaryComponent)
            .where(SalaryComponent.employee_id == employee_id)
            .order_by(SalaryComponent.kind, SalaryComponent.name)
        )
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def list_active_by_employee(
        self, employee_ids: Iterable[UUID]
    ) -> dict[UUID, list[SalaryComponent]]:
        """Active components grouped by employee, in one query."""
        ids = list(employee_ids)
        grouped: dict[UUID, list[SalaryComponent]] = defaultdict(list)
        if not ids:
            return grouped
        stmt = (
            select(SalaryComponent)
            .where(
                SalaryComponent.employee_id.in_(ids),
                SalaryComponent.is_active.is_(True),
            )
            .order_by(SalaryComponent.kind, SalaryComponent.name)
        )
        async with self.session_factory() as session:
            for component in (await session.execute(stmt)).scalars().all():
                grouped[component.employee_id].append(component)
        return grouped
