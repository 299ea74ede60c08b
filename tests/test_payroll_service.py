"""Period lifecycle against a real (SQLite) database."""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from indo_payroll.errors import (
    ComplianceViolation,
    ConcurrencyConflict,
    ExternalDependencyError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def service(container):
    return container.payroll


class TestCreatePeriod:
    async def test_creates_draft(self, service):
        period = await service.create_period(1, 2025)
        assert period.status == "draft"
        assert period.period_label == "2025-01"
        assert period.employee_count == 0

    async def test_duplicate_month_rejected(self, service):
        await service.create_period(2, 2025)
        with pytest.raises(ValidationError):
            await service.create_period(2, 2025)

    @pytest.mark.parametrize("month,year", [(0, 2025), (13, 2025), (6, 1999)])
    async def test_bad_month_or_year(self, service, month, year):
        with pytest.raises(ValidationError):
            await service.create_period(month, year)

    async def test_unknown_period(self, service):
        with pytest.raises(NotFoundError):
            await service.get_period(uuid4())

    async def test_list_filters_by_status(self, service, seed):
        await seed.employee()
        p1 = await service.create_period(1, 2025)
        await service.create_period(2, 2025)
        await service.calculate(p1.period_id)

        drafts = await service.list_periods(status="draft")
        assert [p.month for p in drafts] == [2]

        with pytest.raises(ValidationError):
            await service.list_periods(status="approved")


class TestCalculate:
    async def test_reference_employee(self, service, seed):
        employee = await seed.employee(basic="5000000")
        period = await service.create_period(1, 2025)

        result = await service.calculate(period.period_id, actor="hr@example.com")

        [item] = result.items
        assert item.employee_id == employee.employee_id
        assert item.pph21_monthly == Decimal("5000")
        assert item.net_salary == Decimal("4795000")
        assert result.totals.total_net == Decimal("4795000")
        assert result.warnings == []

        stored = await service.get_period(period.period_id)
        assert stored.status == "calculated"
        assert stored.calculated_by == "hr@example.com"
        assert stored.lock_token is None
        assert stored.total_net == Decimal("4795000")
        assert stored.employee_count == 1

    async def test_only_active_employees(self, service, seed):
        await seed.employee()
        await seed.employee(status="resigned")
        period = await service.create_period(1, 2025)

        result = await service.calculate(period.period_id)

        assert result.totals.employee_count == 1

    async def test_recalculation_is_idempotent(self, service, seed):
        await seed.employee()
        await seed.employee(basic="9000000", allowances=["750000"], tax_status="K/1")
        period = await service.create_period(3, 2025)

        first = await service.calculate(period.period_id)
        second = await service.calculate(period.period_id)

        assert [i.calculation_id for i in first.items] == [i.calculation_id for i in second.items]
        assert first.totals == second.totals
        stored = await service.list_line_items(period.period_id)
        assert len(stored) == 2

    async def test_recalculation_replaces_the_set(self, service, seed, container):
        employee = await seed.employee()
        period = await service.create_period(4, 2025)
        await service.calculate(period.period_id)

        [component] = await container.components.list_active(employee.employee_id)
        await container.salary.update_component(
            component.salary_component_id, Decimal("6000000"), actor="hr"
        )
        result = await service.calculate(period.period_id)

        [item] = await service.list_line_items(period.period_id)
        assert item.gross_salary == Decimal("6000000")
        assert item.calculation_id == result.items[0].calculation_id

    async def test_supplied_inputs_override_stored(self, service, seed, container):
        employee = await seed.employee()
        period = await service.create_period(5, 2025)
        await container.variable_inputs.set(
            period.period_id, {employee.employee_id: {"bonus": "1000000", "overtime_pay": "200000"}}
        )

        stored_only = await service.calculate(period.period_id)
        assert stored_only.items[0].gross_salary == Decimal("6200000")

        supplied = await service.calculate(
            period.period_id, variable_inputs={str(employee.employee_id): {"bonus": "500000"}}
        )
        [item] = supplied.items
        assert item.bonus == Decimal("500000")
        assert item.overtime_pay == Decimal("0")

        # supplied inputs are persisted with the commit
        inputs = await container.variable_inputs.get(period.period_id)
        assert inputs[employee.employee_id].bonus == Decimal("500000")

    async def test_inputs_for_inactive_employee_rejected(self, service, seed):
        await seed.employee()
        gone = await seed.employee(status="terminated")
        period = await service.create_period(6, 2025)
        await service.calculate(period.period_id)
        before = await service.list_line_items(period.period_id)

        with pytest.raises(ValidationError, match="inactive or unknown"):
            await service.calculate(
                period.period_id, variable_inputs={gone.employee_id: {"bonus": "1"}}
            )

        after = await service.list_line_items(period.period_id)
        assert [i.calculation_id for i in after] == [i.calculation_id for i in before]
        assert (await service.get_period(period.period_id)).lock_token is None

    async def test_negative_input_rejected(self, service, seed):
        employee = await seed.employee()
        period = await service.create_period(7, 2025)
        with pytest.raises(ValidationError, match="bonus"):
            await service.calculate(
                period.period_id, variable_inputs={employee.employee_id: {"bonus": "-1"}}
            )

    async def test_employee_without_components(self, service, seed):
        await seed.employee(basic=None)
        period = await service.create_period(8, 2025)

        result = await service.calculate(period.period_id)

        [item] = result.items
        assert item.gross_salary == Decimal("0")
        assert [w.kind for w in result.warnings] == ["non_positive_net"]

    async def test_finalized_period_cannot_be_recalculated(self, service, seed):
        await seed.employee()
        period = await service.create_period(9, 2025)
        await service.calculate(period.period_id)
        await service.finalize(period.period_id, actor="cfo")
        before = await service.list_line_items(period.period_id)

        with pytest.raises(InvalidStateTransition) as exc_info:
            await service.calculate(period.period_id)

        assert exc_info.value.from_status == "finalized"
        assert exc_info.value.to_status == "calculated"
        after = await service.list_line_items(period.period_id)
        assert [i.net_salary for i in after] == [i.net_salary for i in before]

    async def test_held_lock_conflicts(self, service, seed):
        await seed.employee()
        period = await service.create_period(10, 2025)
        token = await service.locks.acquire(period.period_id, actor="other-worker")

        with pytest.raises(ConcurrencyConflict, match="other-worker"):
            await service.calculate(period.period_id)

        await service.locks.release(period.period_id, token)
        result = await service.calculate(period.period_id)
        assert result.totals.employee_count == 1

    async def test_collaborator_timeout(self, service, seed, container, monkeypatch):
        await seed.employee()
        period = await service.create_period(11, 2025)

        async def slow_list_active():
            await asyncio.sleep(5)
            return []

        monkeypatch.setattr(container.employees, "list_active", slow_list_active)

        with pytest.raises(ExternalDependencyError) as exc_info:
            await service.calculate(period.period_id, timeout=0.05)

        assert exc_info.value.retryable is True
        stored = await service.get_period(period.period_id)
        assert stored.status == "draft"
        assert stored.lock_token is None

    async def test_unknown_period(self, service):
        with pytest.raises(NotFoundError):
            await service.calculate(uuid4())


class TestFinalize:
    async def test_finalize_calculated(self, service, seed):
        await seed.employee()
        period = await service.create_period(1, 2026)
        await service.calculate(period.period_id)

        finalized = await service.finalize(period.period_id, actor="cfo")

        assert finalized.status == "finalized"
        assert finalized.finalized_by == "cfo"
        assert finalized.finalized_at is not None

    async def test_draft_cannot_be_finalized(self, service):
        period = await service.create_period(2, 2026)
        with pytest.raises(InvalidStateTransition) as exc_info:
            await service.finalize(period.period_id)
        assert exc_info.value.from_status == "draft"
        assert exc_info.value.to_status == "finalized"

    async def test_finalize_twice(self, service, seed):
        await seed.employee()
        period = await service.create_period(3, 2026)
        await service.calculate(period.period_id)
        await service.finalize(period.period_id)

        with pytest.raises(InvalidStateTransition):
            await service.finalize(period.period_id)

    async def test_finalize_while_locked(self, service, seed):
        await seed.employee()
        period = await service.create_period(4, 2026)
        await service.calculate(period.period_id)
        token = await service.locks.acquire(period.period_id)

        with pytest.raises(ConcurrencyConflict):
            await service.finalize(period.period_id)

        await service.locks.release(period.period_id, token)

    async def test_non_positive_net_needs_acknowledgement(self, service, seed):
        employee = await seed.employee(basic="1000000")
        period = await service.create_period(5, 2026)
        await service.calculate(
            period.period_id,
            variable_inputs={employee.employee_id: {"other_deductions": "1500000"}},
        )

        with pytest.raises(ComplianceViolation) as exc_info:
            await service.finalize(period.period_id)
        assert exc_info.value.warnings[0].employee_id == employee.employee_id
        assert (await service.get_period(period.period_id)).status == "calculated"

        finalized = await service.finalize(period.period_id, acknowledge_warnings=True)
        assert finalized.status == "finalized"

    async def test_inputs_frozen_after_finalize(self, service, seed, container):
        employee = await seed.employee()
        period = await service.create_period(6, 2026)
        await service.calculate(period.period_id)
        await service.finalize(period.period_id)

        with pytest.raises(InvalidStateTransition, match="frozen"):
            await container.variable_inputs.set(
                period.period_id, {employee.employee_id: {"bonus": "1"}}
            )


class TestDeleteAndChecks:
    async def test_delete_draft(self, service):
        period = await service.create_period(1, 2027)
        await service.delete_period(period.period_id)
        with pytest.raises(NotFoundError):
            await service.get_period(period.period_id)

    async def test_calculated_period_is_kept(self, service, seed):
        await seed.employee()
        period = await service.create_period(2, 2027)
        await service.calculate(period.period_id)
        with pytest.raises(InvalidStateTransition):
            await service.delete_period(period.period_id)

    async def test_validate_reports_missing_employee(self, service, seed):
        await seed.employee()
        period = await service.create_period(3, 2027)
        await service.calculate(period.period_id)
        late = await seed.employee()

        result = await service.validate_period(period.period_id)

        assert not result.is_valid
        [issue] = result.issues
        assert issue.kind == "missing_employee"
        assert issue.employee_id == late.employee_id

    async def test_validate_draft(self, service):
        period = await service.create_period(4, 2027)
        result = await service.validate_period(period.period_id)
        assert [i.kind for i in result.issues] == ["not_calculated"]

    async def test_validate_times_out_loading_employees(
        self, service, seed, container, monkeypatch
    ):
        await seed.employee()
        period = await service.create_period(7, 2027)
        await service.calculate(period.period_id)

        async def slow_list_active():
            await asyncio.sleep(5)
            return []

        monkeypatch.setattr(container.employees, "list_active", slow_list_active)

        with pytest.raises(ExternalDependencyError, match="Timed out") as exc_info:
            await service.validate_period(period.period_id, timeout=0.05)
        assert exc_info.value.retryable is True

    async def test_statistics(self, service, seed):
        await seed.employee()
        p1 = await service.create_period(5, 2027)
        await service.create_period(6, 2027)
        await service.calculate(p1.period_id)
        await service.finalize(p1.period_id)

        stats = await service.get_statistics(2027)

        assert stats.by_status == {"draft": 1, "calculated": 0, "finalized": 1}
        assert stats.total_periods == 2
        assert stats.finalized_net_total == Decimal("4795000")
