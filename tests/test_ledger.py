"""Salary ledger: direct edits, history queries and compliance exports."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from indo_payroll.errors import (
    ConcurrencyConflict,
    LedgerImmutableError,
    NotFoundError,
    ValidationError,
)
from indo_payroll.models import ComplianceExport, SalaryChangeRecord
from indo_payroll.services.ledger import ComponentMutation, HistoryFilter


async def only_component(container, employee_id):
    [component] = await container.components.list_active(employee_id)
    return component


class TestDirectEdits:
    async def test_update_writes_auto_approved_record(self, container, seed):
        employee = await seed.employee(basic="5000000")
        component = await only_component(container, employee.employee_id)

        updated = await container.salary.update_component(
            component.salary_component_id,
            Decimal("5500000"),
            actor="hr",
            effective_date=date(2025, 2, 1),
            reason="Annual review",
        )

        assert updated.amount == Decimal("5500000")
        [record] = await container.ledger.history(employee.employee_id)
        assert record.approval_status == "auto_approved"
        assert record.source == "direct"
        assert record.previous_amount == Decimal("5000000")
        assert record.new_amount == Decimal("5500000")
        assert record.reason == "Annual review"

    async def test_create_and_deactivate(self, container, seed):
        employee = await seed.employee(basic=None)

        created = await container.salary.create_component(
            employee.employee_id, "Tunjangan Transport", "fixed_allowance", Decimal("400000"), "hr"
        )
        assert created.is_active

        removed = await container.salary.deactivate_component(
            created.salary_component_id, actor="hr"
        )
        assert not removed.is_active
        assert await container.salary.list_components(employee.employee_id) == []
        assert len(
            await container.salary.list_components(employee.employee_id, include_inactive=True)
        ) == 1

        actions = [r.action for r in await container.ledger.history(employee.employee_id)]
        assert sorted(actions) == ["create", "delete"]

    async def test_unknown_kind(self, container, seed):
        employee = await seed.employee()
        with pytest.raises(ValidationError, match="kind"):
            await container.salary.create_component(
                employee.employee_id, "Bonus", "bonus", Decimal("1"), "hr"
            )

    async def test_negative_amount(self, container, seed):
        employee = await seed.employee()
        component = await only_component(container, employee.employee_id)
        with pytest.raises(ValidationError, match="negative"):
            await container.salary.update_component(
                component.salary_component_id, Decimal("-1"), actor="hr"
            )
        assert await container.ledger.history(employee.employee_id) == []

    async def test_inactive_component_cannot_change(self, container, seed):
        employee = await seed.employee()
        component = await only_component(container, employee.employee_id)
        await container.salary.deactivate_component(component.salary_component_id, actor="hr")

        with pytest.raises(ValidationError, match="inactive"):
            await container.salary.update_component(
                component.salary_component_id, Decimal("1"), actor="hr"
            )

    async def test_unknown_component(self, container):
        with pytest.raises(NotFoundError):
            await container.salary.update_component(uuid4(), Decimal("1"), actor="hr")


class TestCommit:
    async def test_expected_amount_conflict_writes_nothing(self, container, seed):
        employee = await seed.employee(basic="5000000")
        component = await only_component(container, employee.employee_id)

        with pytest.raises(ConcurrencyConflict):
            await container.ledger.commit(
                [
                    ComponentMutation(
                        action="update",
                        employee_id=employee.employee_id,
                        component_id=component.salary_component_id,
                        new_amount=Decimal("6000000"),
                        expected_amount=Decimal("4000000"),
                    )
                ],
                changed_by="bulk",
                effective_date=date(2025, 1, 1),
            )

        assert (await only_component(container, employee.employee_id)).amount == Decimal(
            "5000000"
        )
        assert await container.ledger.history(employee.employee_id) == []

    async def test_on_commit_failure_rolls_back(self, container, seed):
        employee = await seed.employee(basic="5000000")
        component = await only_component(container, employee.employee_id)

        async def boom(session):
            raise RuntimeError("side write failed")

        with pytest.raises(RuntimeError):
            await container.ledger.commit(
                [
                    ComponentMutation(
                        action="update",
                        employee_id=employee.employee_id,
                        component_id=component.salary_component_id,
                        new_amount=Decimal("1"),
                    )
                ],
                changed_by="bulk",
                effective_date=date(2025, 1, 1),
                on_commit=boom,
            )

        assert (await only_component(container, employee.employee_id)).amount == Decimal(
            "5000000"
        )
        assert await container.ledger.history(employee.employee_id) == []

    async def test_empty_commit(self, container):
        records = await container.ledger.commit(
            [], changed_by="x", effective_date=date(2025, 1, 1)
        )
        assert records == []

    async def test_records_cannot_be_deleted(self, container, seed):
        employee = await seed.employee()
        component = await only_component(container, employee.employee_id)
        [record] = await container.ledger.commit(
            [
                ComponentMutation(
                    action="update",
                    employee_id=employee.employee_id,
                    component_id=component.salary_component_id,
                    new_amount=Decimal("1"),
                )
            ],
            changed_by="hr",
            effective_date=date(2025, 1, 1),
        )

        with pytest.raises(LedgerImmutableError):
            async with container.session_factory() as session, session.begin():
                stored = await session.get(SalaryChangeRecord, record.change_record_id)
                await session.delete(stored)

        assert len(await container.ledger.history(employee.employee_id)) == 1


class TestQueries:
    @pytest.fixture
    async def changed(self, container, seed):
        """One employee with a basic raise in January and an allowance in March."""
        employee = await seed.employee(basic="5000000")
        component = await only_component(container, employee.employee_id)
        await container.salary.update_component(
            component.salary_component_id,
            Decimal("5500000"),
            actor="alice",
            effective_date=date(2025, 1, 15),
        )
        await container.salary.create_component(
            employee.employee_id,
            "Tunjangan Makan",
            "fixed_allowance",
            Decimal("300000"),
            actor="bob",
            effective_date=date(2025, 3, 1),
        )
        return employee

    async def test_history_filters(self, container, changed):
        ledger = container.ledger

        assert len(await ledger.history(changed.employee_id)) == 2
        [january] = await ledger.history(
            changed.employee_id, HistoryFilter(end_date=date(2025, 1, 31))
        )
        assert january.action == "update"
        [by_bob] = await ledger.history(changed.employee_id, HistoryFilter(changed_by="bob"))
        assert by_bob.component_kind == "fixed_allowance"
        [created] = await ledger.history(None, HistoryFilter(actions=["create"]))
        assert created.employee_id == changed.employee_id
        assert await ledger.history(
            changed.employee_id, HistoryFilter(approval_statuses=["pending"])
        ) == []

    async def test_history_paging(self, container, changed):
        first = await container.ledger.history(changed.employee_id, HistoryFilter(limit=1))
        second = await container.ledger.history(
            changed.employee_id, HistoryFilter(limit=1, offset=1)
        )
        assert len(first) == len(second) == 1
        assert first[0].change_record_id != second[0].change_record_id

    async def test_compliance_export(self, container, changed, seed):
        other = await seed.employee()
        await container.salary.update_component(
            (await only_component(container, other.employee_id)).salary_component_id,
            Decimal("1"),
            actor="hr",
            effective_date=date(2025, 2, 1),
        )

        result = await container.ledger.export_for_compliance(
            date(2025, 1, 1), date(2025, 2, 28), requested_by="auditor"
        )

        assert result.export.record_count == 2
        assert result.export.employee_count == 2
        async with container.session_factory() as session:
            [stored] = (await session.execute(select(ComplianceExport))).scalars().all()
        assert stored.requested_by == "auditor"

        narrowed = await container.ledger.export_for_compliance(
            date(2025, 1, 1), date(2025, 12, 31), employee_ids=[changed.employee_id]
        )
        assert {r.employee_id for r in narrowed.records} == {changed.employee_id}
        assert narrowed.export.employee_ids == [str(changed.employee_id)]

    async def test_export_dates_validated(self, container):
        with pytest.raises(ValidationError):
            await container.ledger.export_for_compliance(date(2025, 2, 1), date(2025, 1, 1))

    async def test_salary_comparison(self, container, changed):
        comparison = await container.ledger.salary_comparison(
            changed.employee_id, date(2025, 1, 1), date(2025, 3, 31)
        )

        assert comparison.from_salary.basic == Decimal("5000000")
        assert comparison.from_salary.allowances == Decimal("0")
        assert comparison.to_salary.gross == Decimal("5800000")
        assert comparison.difference == Decimal("800000")
        assert len(comparison.changes) == 2

    async def test_comparison_window_excludes_later_changes(self, container, changed):
        comparison = await container.ledger.salary_comparison(
            changed.employee_id, date(2025, 3, 1), date(2025, 3, 31)
        )
        assert comparison.from_salary.basic == Decimal("5500000")
        assert comparison.difference == Decimal("300000")

    async def test_comparison_unknown_employee(self, container):
        with pytest.raises(NotFoundError):
            await container.ledger.salary_comparison(uuid4(), date(2025, 1, 1), date(2025, 2, 1))
