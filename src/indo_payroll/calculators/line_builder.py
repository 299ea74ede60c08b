"""Payroll line item snapshots with idempotent hashing."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from indo_payroll.calculators.tax_calculator import round_rupiah
from indo_payroll.calculators.types import (
    ContributionResult,
    EmployeeCalculationContext,
    TaxResult,
)
from indo_payroll.errors import ValidationError


@dataclass(frozen=True)
class LineItemData:
    """Full calculation snapshot for one (period, employee).

    Everything needed to reproduce or audit the figure is stored on the row,
    so a later change of master data or rates never alters history.
    """

    calculation_id: UUID
    period_id: UUID
    employee_id: UUID
    employee_number: str
    employee_name: str
    tax_status: str

    basic_salary: Decimal
    fixed_allowances: Decimal
    bonus: Decimal
    overtime_pay: Decimal
    other_allowances: Decimal
    other_deductions: Decimal
    gross_salary: Decimal

    bpjs_health_employee: Decimal
    bpjs_jht_employee: Decimal
    bpjs_jp_employee: Decimal
    bpjs_health_employer: Decimal
    bpjs_jht_employer: Decimal
    bpjs_jp_employer: Decimal
    bpjs_jkk_employer: Decimal
    bpjs_jkm_employer: Decimal

    occupational_cost: Decimal
    ptkp_amount: Decimal
    taxable_income_annual: Decimal
    pph21_annual: Decimal
    pph21_monthly: Decimal

    total_employee_contributions: Decimal
    total_employer_contributions: Decimal
    total_deductions: Decimal
    net_salary: Decimal

    inputs_fingerprint: str
    regulation_fingerprint: str
    engine_version: str

    def to_row(self) -> dict[str, Any]:
        """Column values for the persisted line item."""
        return asdict(self)


class LineItemBuilder:
    """Assembles a line item from calculator results.

    Sign conventions: every stored amount is non-negative; deductions are
    subtracted when deriving net, never stored negative.

    Net reconciliation (checked on every build):
        net = gross - pph21_monthly - employee contributions - other deductions
    """

    @staticmethod
    def gross(ctx: EmployeeCalculationContext) -> Decimal:
        """Monthly gross: recurring components plus variable additions."""
        return round_rupiah(ctx.basic_salary + ctx.fixed_allowances + ctx.variables.additions)

    @staticmethod
    def build(
        ctx: EmployeeCalculationContext,
        contributions: ContributionResult,
        tax: TaxResult,
        *,
        calculation_id: UUID,
        inputs_fingerprint: str,
        regulation_fingerprint: str,
        engine_version: str,
    ) -> LineItemData:
        gross = LineItemBuilder.gross(ctx)
        other_deductions = round_rupiah(ctx.variables.other_deductions)
        total_employee = contributions.total_employee
        total_deductions = tax.pph21_monthly + total_employee + other_deductions
        net = gross - total_deductions

        item = LineItemData(
            calculation_id=calculation_id,
            period_id=ctx.period_id,
            employee_id=ctx.employee_id,
            employee_number=ctx.employee_number,
            employee_name=ctx.full_name,
            tax_status=ctx.tax_status.value,
            basic_salary=round_rupiah(ctx.basic_salary),
            fixed_allowances=round_rupiah(ctx.fixed_allowances),
            bonus=round_rupiah(ctx.variables.bonus),
            overtime_pay=round_rupiah(ctx.variables.overtime_pay),
            other_allowances=round_rupiah(ctx.variables.other_allowances),
            other_deductions=other_deductions,
            gross_salary=gross,
            bpjs_health_employee=contributions.health_employee,
            bpjs_jht_employee=contributions.jht_employee,
            bpjs_jp_employee=contributions.jp_employee,
            bpjs_health_employer=contributions.health_employer,
            bpjs_jht_employer=contributions.jht_employer,
            bpjs_jp_employer=contributions.jp_employer,
            bpjs_jkk_employer=contributions.jkk_employer,
            bpjs_jkm_employer=contributions.jkm_employer,
            occupational_cost=tax.occupational_cost,
            ptkp_amount=tax.ptkp_amount,
            taxable_income_annual=tax.taxable_income_annual,
            pph21_annual=tax.pph21_annual,
            pph21_monthly=tax.pph21_monthly,
            total_employee_contributions=total_employee,
            total_employer_contributions=contributions.total_employer,
            total_deductions=total_deductions,
            net_salary=net,
            inputs_fingerprint=inputs_fingerprint,
            regulation_fingerprint=regulation_fingerprint,
            engine_version=engine_version,
        )
        LineItemBuilder.verify_net(item)
        return item

    @staticmethod
    def verify_net(item: LineItemData) -> None:
        """Raise if the stored figures do not reconcile to net."""
        expected = (
            item.gross_salary
            - item.pph21_monthly
            - item.total_employee_contributions
            - item.other_deductions
        )
        if expected != item.net_salary:
            raise ValidationError(
                f"Net salary mismatch for employee {item.employee_id}: "
                f"expected {expected}, got {item.net_salary}"
            )
