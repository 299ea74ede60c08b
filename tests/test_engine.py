"""Unit tests for PayrollEngine."""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

from indo_payroll.calculators.engine import PayrollEngine, PeriodTotals
from indo_payroll.calculators.regulation import ContributionRates, RegulationConfig
from indo_payroll.calculators.types import (
    ComponentKind,
    EmployeeCalculationContext,
    SalaryComponentInput,
    TaxStatus,
    VariableAmounts,
)


def make_context(
    basic: str = "5000000",
    allowances: tuple[str, ...] = (),
    variables: VariableAmounts | None = None,
    tax_status: TaxStatus = TaxStatus.TK0,
    health: bool = True,
    employment: bool = True,
) -> EmployeeCalculationContext:
    components = [
        SalaryComponentInput(uuid4(), "Gaji Pokok", ComponentKind.BASIC_SALARY, Decimal(basic))
    ]
    components += [
        SalaryComponentInput(uuid4(), f"Tunjangan {i}", ComponentKind.FIXED_ALLOWANCE, Decimal(a))
        for i, a in enumerate(allowances)
    ]
    return EmployeeCalculationContext(
        period_id=uuid4(),
        employee_id=uuid4(),
        employee_number="EMP-0001",
        full_name="Budi Santoso",
        tax_status=tax_status,
        health_enrolled=health,
        employment_enrolled=employment,
        components=components,
        variables=variables or VariableAmounts(),
    )


class TestCalculateEmployee:
    def test_reference_employee(self):
        """Basic 5,000,000, TK/0, enrolled in both programs."""
        item = PayrollEngine().calculate_employee(make_context())

        assert item.gross_salary == Decimal("5000000")
        assert item.bpjs_health_employee == Decimal("50000")
        assert item.bpjs_health_employer == Decimal("200000")
        assert item.bpjs_jht_employee == Decimal("100000")
        assert item.bpjs_jht_employer == Decimal("185000")
        assert item.bpjs_jp_employee == Decimal("50000")
        assert item.bpjs_jp_employer == Decimal("100000")
        assert item.bpjs_jkk_employer == Decimal("12000")
        assert item.bpjs_jkm_employer == Decimal("15000")
        assert item.occupational_cost == Decimal("250000")
        assert item.taxable_income_annual == Decimal("1200000")
        assert item.pph21_annual == Decimal("60000")
        assert item.pph21_monthly == Decimal("5000")
        assert item.net_salary == Decimal("4795000")

    def test_variable_inputs_raise_gross(self):
        ctx = make_context(
            allowances=("1000000",),
            variables=VariableAmounts(
                bonus=Decimal("500000"),
                overtime_pay=Decimal("250000"),
                other_allowances=Decimal("250000"),
            ),
        )
        item = PayrollEngine().calculate_employee(ctx)
        assert item.fixed_allowances == Decimal("1000000")
        assert item.gross_salary == Decimal("7000000")

    def test_net_reconciles(self):
        ctx = make_context(
            basic="12345678",
            allowances=("765432",),
            variables=VariableAmounts(other_deductions=Decimal("100000")),
            tax_status=TaxStatus.K1,
        )
        item = PayrollEngine().calculate_employee(ctx)
        assert item.net_salary == (
            item.gross_salary
            - item.pph21_monthly
            - item.total_employee_contributions
            - item.other_deductions
        )
        assert item.total_deductions == item.gross_salary - item.net_salary

    def test_employer_contributions_do_not_reduce_net(self):
        item = PayrollEngine().calculate_employee(make_context())
        assert item.total_employer_contributions == Decimal("512000")
        assert item.gross_salary - item.net_salary == Decimal("205000")

    def test_deductions_can_push_net_below_zero(self):
        ctx = make_context(
            basic="1000000", variables=VariableAmounts(other_deductions=Decimal("2000000"))
        )
        engine = PayrollEngine()
        item = engine.calculate_employee(ctx)

        assert item.net_salary < 0
        [warning] = engine.compliance_warnings([item])
        assert warning.kind == "non_positive_net"
        assert warning.employee_id == ctx.employee_id

    def test_not_enrolled_means_untaxed_contributions(self):
        item = PayrollEngine().calculate_employee(make_context(health=False, employment=False))
        assert item.total_employee_contributions == Decimal("0")
        assert item.total_employer_contributions == Decimal("0")
        # no JHT/JP deduction => higher PKP
        assert item.taxable_income_annual == Decimal("3000000")


class TestCalculationId:
    def test_same_inputs_produce_same_id(self):
        engine = PayrollEngine()
        ctx = make_context()
        first = engine.calculate_employee(ctx)
        second = engine.calculate_employee(ctx)
        assert first.calculation_id == second.calculation_id
        assert first == second

    def test_different_inputs_produce_different_id(self):
        engine = PayrollEngine()
        ctx = make_context()
        changed = replace(ctx, variables=VariableAmounts(bonus=Decimal("1")))
        assert (
            engine.calculate_employee(ctx).calculation_id
            != engine.calculate_employee(changed).calculation_id
        )

    def test_regulation_change_produces_different_id(self):
        ctx = make_context()
        other = RegulationConfig(
            contributions=ContributionRates(jkk_employer_rate=Decimal("0.0054"))
        )
        assert (
            PayrollEngine().calculate_employee(ctx).calculation_id
            != PayrollEngine(other).calculate_employee(ctx).calculation_id
        )

    def test_engine_version_produces_different_id(self):
        ctx = make_context()
        assert (
            PayrollEngine(engine_version="1.0.0").calculate_employee(ctx).calculation_id
            != PayrollEngine(engine_version="1.1.0").calculate_employee(ctx).calculation_id
        )

    def test_component_order_does_not_matter(self):
        ctx = make_context(allowances=("100", "200"))
        reordered = replace(ctx, components=list(reversed(ctx.components)))
        assert PayrollEngine.compute_inputs_fingerprint(
            ctx
        ) == PayrollEngine.compute_inputs_fingerprint(reordered)


class TestPeriodTotals:
    def test_totals_are_sums_of_items(self):
        engine = PayrollEngine()
        items = [
            engine.calculate_employee(make_context()),
            engine.calculate_employee(make_context(basic="8000000", tax_status=TaxStatus.K2)),
        ]
        totals = PeriodTotals.from_items(items)

        assert totals.employee_count == 2
        assert totals.total_gross == sum(i.gross_salary for i in items)
        assert totals.total_pph21 == sum(i.pph21_monthly for i in items)
        assert totals.total_net == sum(i.net_salary for i in items)
        assert totals.total_employer_contributions == sum(
            i.total_employer_contributions for i in items
        )

    def test_empty_period(self):
        totals = PeriodTotals.from_items([])
        assert totals.employee_count == 0
        assert totals.total_net == Decimal("0")


@pytest.mark.parametrize("status", list(TaxStatus))
def test_every_tax_status_calculates(status):
    item = PayrollEngine().calculate_employee(make_context(tax_status=status))
    assert item.tax_status == status.value
    assert item.pph21_monthly >= 0
