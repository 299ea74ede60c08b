"""Payroll calculation engine - per-employee pipeline.

Pure and synchronous: no I/O, no session. The period service feeds it
contexts loaded from the repositories and runs it on a worker pool.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from indo_payroll.calculators.contribution_calculator import ContributionCalculator
from indo_payroll.calculators.line_builder import LineItemBuilder, LineItemData
from indo_payroll.calculators.regulation import RegulationConfig
from indo_payroll.calculators.tax_calculator import TaxCalculator
from indo_payroll.calculators.types import EmployeeCalculationContext
from indo_payroll.errors import ComplianceWarning

ZERO = Decimal("0")


@dataclass
class PeriodTotals:
    """Period totals, always derived by summation over line items."""

    employee_count: int = 0
    total_gross: Decimal = ZERO
    total_pph21: Decimal = ZERO
    total_employee_contributions: Decimal = ZERO
    total_employer_contributions: Decimal = ZERO
    total_other_deductions: Decimal = ZERO
    total_net: Decimal = ZERO

    @classmethod
    def from_items(cls, items: Iterable[LineItemData]) -> PeriodTotals:
        totals = cls()
        for item in items:
            totals.employee_count += 1
            totals.total_gross += item.gross_salary
            totals.total_pph21 += item.pph21_monthly
            totals.total_employee_contributions += item.total_employee_contributions
            totals.total_employer_contributions += item.total_employer_contributions
            totals.total_other_deductions += item.other_deductions
            totals.total_net += item.net_salary
        return totals

    def to_dict(self) -> dict[str, int | Decimal]:
        return {
            "employee_count": self.employee_count,
            "total_gross": self.total_gross,
            "total_pph21": self.total_pph21,
            "total_employee_contributions": self.total_employee_contributions,
            "total_employer_contributions": self.total_employer_contributions,
            "total_other_deductions": self.total_other_deductions,
            "total_net": self.total_net,
        }


@dataclass
class PeriodCalculationResult:
    """Result of calculating an entire payroll period."""

    period_id: UUID
    items: list[LineItemData]
    totals: PeriodTotals
    warnings: list[ComplianceWarning] = field(default_factory=list)


class PayrollEngine:
    """Per-employee calculation pipeline.

    Stable order per employee:
    1) Gross = basic salary + fixed allowances + bonus + overtime + other allowances
    2) BPJS contributions on gross
    3) PPh 21 with the deductible (JHT + JP) employee shares
    4) Line item snapshot with net reconciliation
    """

    def __init__(self, regulation: RegulationConfig | None = None, engine_version: str = "1.0.0"):
        self.regulation = regulation or RegulationConfig()
        self.engine_version = engine_version
        self.contribution_calculator = ContributionCalculator(self.regulation.contributions)
        self.tax_calculator = TaxCalculator(self.regulation.tax)
        self.regulation_fingerprint = self.regulation.fingerprint()

    def calculate_employee(self, ctx: EmployeeCalculationContext) -> LineItemData:
        """Calculate one employee-month."""
        gross = LineItemBuilder.gross(ctx)

        contributions = self.contribution_calculator.calculate(
            gross,
            health_enrolled=ctx.health_enrolled,
            employment_enrolled=ctx.employment_enrolled,
        )
        tax = self.tax_calculator.calculate(
            gross,
            ctx.tax_status,
            deductible_contributions=contributions.tax_deductible,
        )

        inputs_fingerprint = self.compute_inputs_fingerprint(ctx)
        calculation_id = self.generate_calculation_id(
            ctx.period_id, ctx.employee_id, inputs_fingerprint
        )

        return LineItemBuilder.build(
            ctx,
            contributions,
            tax,
            calculation_id=calculation_id,
            inputs_fingerprint=inputs_fingerprint,
            regulation_fingerprint=self.regulation_fingerprint,
            engine_version=self.engine_version,
        )

    def generate_calculation_id(
        self, period_id: UUID, employee_id: UUID, inputs_fingerprint: str
    ) -> UUID:
        """Deterministic id: same period, employee, inputs, rules and version => same id."""
        data = {
            "period_id": str(period_id),
            "employee_id": str(employee_id),
            "engine_version": self.engine_version,
            "inputs_fingerprint": inputs_fingerprint,
            "regulation_fingerprint": self.regulation_fingerprint,
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])

    @staticmethod
    def compute_inputs_fingerprint(ctx: EmployeeCalculationContext) -> str:
        """Compute fingerprint of all inputs used in calculation."""
        json_str = json.dumps(ctx.to_canonical_dict(), sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    @staticmethod
    def compliance_warnings(items: Iterable[LineItemData]) -> list[ComplianceWarning]:
        """Findings that must be acknowledged before finalization."""
        warnings: list[ComplianceWarning] = []
        for item in items:
            if item.net_salary <= 0:
                warnings.append(
                    ComplianceWarning(
                        kind="non_positive_net",
                        message=(
                            f"Employee {item.employee_number} has non-positive "
                            f"net salary {item.net_salary}"
                        ),
                        employee_id=item.employee_id,
                    )
                )
        return warnings
