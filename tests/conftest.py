"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest

from indo_payroll.config import Settings
from indo_payroll.models import Department, Employee, Position, SalaryComponent
from indo_payroll.services.container import ServiceContainer


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a file SQLite database private to the test."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'payroll.db'}",
        engine_version="1.0.0",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
        calculation_workers=2,
        bulk_max_concurrency=4,
        bulk_rounding_unit=Decimal("1"),
        collaborator_timeout_seconds=10.0,
        calculation_lock_ttl_seconds=900,
    )


@pytest.fixture
async def container(settings) -> AsyncGenerator[ServiceContainer, None]:
    container = ServiceContainer.from_settings(settings)
    await container.init_models()
    yield container
    await container.close()


@pytest.fixture
def make_settings(settings):
    def _make(**changes) -> Settings:
        return replace(settings, **changes)

    return _make


class Seeder:
    """Writes master data straight through the session factory."""

    def __init__(self, container: ServiceContainer):
        self.session_factory = container.session_factory
        self._counter = 0

    async def department(self, name: str, parent_id: UUID | None = None) -> Department:
        department = Department(department_id=uuid4(), name=name, parent_id=parent_id)
        async with self.session_factory() as session, session.begin():
            session.add(department)
        return department

    async def position(self, title: str, department_id: UUID | None = None) -> Position:
        position = Position(position_id=uuid4(), title=title, department_id=department_id)
        async with self.session_factory() as session, session.begin():
            session.add(position)
        return position

    async def employee(
        self,
        basic: Decimal | str | None = "5000000",
        allowances: list[Decimal | str] | None = None,
        tax_status: str = "TK/0",
        status: str = "active",
        health: bool = True,
        employment: bool = True,
        department_id: UUID | None = None,
        position_id: UUID | None = None,
        name: str | None = None,
    ) -> Employee:
        """Employee with a basic salary component and optional allowances."""
        self._counter += 1
        employee = Employee(
            employee_id=uuid4(),
            employee_number=f"EMP-{self._counter:04d}",
            full_name=name or f"Employee {self._counter}",
            status=status,
            tax_status=tax_status,
            bpjs_health_enrolled=health,
            bpjs_employment_enrolled=employment,
            department_id=department_id,
            position_id=position_id,
        )
        components = []
        if basic is not None:
            components.append(
                SalaryComponent(
                    salary_component_id=uuid4(),
                    employee_id=employee.employee_id,
                    name="Gaji Pokok",
                    kind="basic_salary",
                    amount=Decimal(basic),
                )
            )
        for i, amount in enumerate(allowances or [], start=1):
            components.append(
                SalaryComponent(
                    salary_component_id=uuid4(),
                    employee_id=employee.employee_id,
                    name=f"Tunjangan {i}",
                    kind="fixed_allowance",
                    amount=Decimal(amount),
                )
            )
        async with self.session_factory() as session, session.begin():
            session.add(employee)
            await session.flush()
            session.add_all(components)
        return employee


@pytest.fixture
def seed(container) -> Seeder:
    return Seeder(container)
