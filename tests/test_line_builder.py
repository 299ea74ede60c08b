"""Tests for line item assembly and net reconciliation."""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

from indo_payroll.calculators.line_builder import LineItemBuilder, LineItemData
from indo_payroll.calculators.types import (
    ComponentKind,
    ContributionResult,
    EmployeeCalculationContext,
    SalaryComponentInput,
    TaxResult,
    TaxStatus,
    VariableAmounts,
)
from indo_payroll.errors import ValidationError
from indo_payroll.models import PayrollLineItem


@pytest.fixture
def ctx() -> EmployeeCalculationContext:
    return EmployeeCalculationContext(
        period_id=uuid4(),
        employee_id=uuid4(),
        employee_number="EMP-0007",
        full_name="Siti Rahma",
        tax_status=TaxStatus.K0,
        health_enrolled=True,
        employment_enrolled=True,
        components=[
            SalaryComponentInput(uuid4(), "Gaji Pokok", ComponentKind.BASIC_SALARY, Decimal("4000000")),
            SalaryComponentInput(uuid4(), "Transport", ComponentKind.FIXED_ALLOWANCE, Decimal("500000")),
        ],
        variables=VariableAmounts(bonus=Decimal("100000.40"), other_deductions=Decimal("50000")),
    )


def build(ctx: EmployeeCalculationContext) -> LineItemData:
    gross = LineItemBuilder.gross(ctx)
    contributions = ContributionResult(
        health_employee=Decimal("46001"), jht_employee=Decimal("92002")
    )
    tax = TaxResult(
        gross_monthly=gross,
        occupational_cost=Decimal("230005"),
        deductible_contributions=Decimal("92002"),
        net_monthly=Decimal("0"),
        net_annual=Decimal("0"),
        ptkp_amount=Decimal("58500000"),
        taxable_income_annual=Decimal("0"),
        pph21_annual=Decimal("0"),
        pph21_monthly=Decimal("0"),
    )
    return LineItemBuilder.build(
        ctx,
        contributions,
        tax,
        calculation_id=uuid4(),
        inputs_fingerprint="a" * 32,
        regulation_fingerprint="b" * 32,
        engine_version="1.0.0",
    )


def test_gross_is_rounded_sum(ctx):
    assert LineItemBuilder.gross(ctx) == Decimal("4600000")


def test_build_reconciles_net(ctx):
    item = build(ctx)
    assert item.total_employee_contributions == Decimal("138003")
    assert item.total_deductions == Decimal("188003")
    assert item.net_salary == Decimal("4411997")


def test_verify_net_rejects_inconsistent_item(ctx):
    item = replace(build(ctx), net_salary=Decimal("1"))
    with pytest.raises(ValidationError, match="Net salary mismatch"):
        LineItemBuilder.verify_net(item)


def test_row_matches_table_columns(ctx):
    row = build(ctx).to_row()
    columns = {c.name for c in PayrollLineItem.__table__.columns}
    assert set(row) == columns
