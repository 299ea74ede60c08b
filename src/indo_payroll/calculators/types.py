"""Type definitions for calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

ZERO = Decimal("0")


class TaxStatus(str, Enum):
    """PTKP marital/dependent status (TK = single, K = married)."""

    TK0 = "TK/0"
    TK1 = "TK/1"
    TK2 = "TK/2"
    TK3 = "TK/3"
    K0 = "K/0"
    K1 = "K/1"
    K2 = "K/2"
    K3 = "K/3"


class ComponentKind(str, Enum):
    """Recurring salary component kinds."""

    BASIC_SALARY = "basic_salary"
    FIXED_ALLOWANCE = "fixed_allowance"


@dataclass(frozen=True)
class TaxResult:
    """PPh 21 breakdown for one employee-month. All figures whole rupiah."""

    gross_monthly: Decimal
    occupational_cost: Decimal
    deductible_contributions: Decimal
    net_monthly: Decimal
    net_annual: Decimal
    ptkp_amount: Decimal
    taxable_income_annual: Decimal  # PKP
    pph21_annual: Decimal
    pph21_monthly: Decimal


@dataclass(frozen=True)
class ContributionResult:
    """BPJS contributions for one employee-month."""

    health_employee: Decimal = ZERO
    health_employer: Decimal = ZERO
    jht_employee: Decimal = ZERO
    jht_employer: Decimal = ZERO
    jp_employee: Decimal = ZERO
    jp_employer: Decimal = ZERO
    jkk_employer: Decimal = ZERO
    jkm_employer: Decimal = ZERO

    @property
    def total_employee(self) -> Decimal:
        return self.health_employee + self.jht_employee + self.jp_employee

    @property
    def total_employer(self) -> Decimal:
        return (
            self.health_employer
            + self.jht_employer
            + self.jp_employer
            + self.jkk_employer
            + self.jkm_employer
        )

    @property
    def tax_deductible(self) -> Decimal:
        """Employee shares that reduce taxable income (JHT + JP)."""
        return self.jht_employee + self.jp_employee


@dataclass(frozen=True)
class SalaryComponentInput:
    """An active recurring component as seen by the calculator."""

    component_id: UUID
    name: str
    kind: ComponentKind
    amount: Decimal


@dataclass(frozen=True)
class VariableAmounts:
    """Per-period variable inputs. Absent values are zero."""

    bonus: Decimal = ZERO
    overtime_pay: Decimal = ZERO
    other_allowances: Decimal = ZERO
    other_deductions: Decimal = ZERO

    @property
    def additions(self) -> Decimal:
        return self.bonus + self.overtime_pay + self.other_allowances

    def to_canonical_dict(self) -> dict[str, str]:
        return {
            "bonus": str(self.bonus),
            "overtime_pay": str(self.overtime_pay),
            "other_allowances": str(self.other_allowances),
            "other_deductions": str(self.other_deductions),
        }


@dataclass
class EmployeeCalculationContext:
    """Context for calculating a single employee's pay."""

    period_id: UUID
    employee_id: UUID
    employee_number: str
    full_name: str
    tax_status: TaxStatus
    health_enrolled: bool
    employment_enrolled: bool
    components: list[SalaryComponentInput] = field(default_factory=list)
    variables: VariableAmounts = field(default_factory=VariableAmounts)

    @property
    def basic_salary(self) -> Decimal:
        return sum(
            (c.amount for c in self.components if c.kind == ComponentKind.BASIC_SALARY),
            ZERO,
        )

    @property
    def fixed_allowances(self) -> Decimal:
        return sum(
            (c.amount for c in self.components if c.kind == ComponentKind.FIXED_ALLOWANCE),
            ZERO,
        )

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "employee_id": str(self.employee_id),
            "tax_status": self.tax_status.value,
            "health_enrolled": self.health_enrolled,
            "employment_enrolled": self.employment_enrolled,
            "components": sorted(
                (
                    {
                        "component_id": str(c.component_id),
                        "kind": c.kind.value,
                        "amount": str(c.amount),
                    }
                    for c in self.components
                ),
                key=lambda d: d["component_id"],
            ),
            "variables": self.variables.to_canonical_dict(),
        }
