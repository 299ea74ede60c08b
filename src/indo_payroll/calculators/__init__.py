"""Pure PPh 21 / BPJS calculators and the per-employee pipeline."""

from indo_payroll.calculators.contribution_calculator import ContributionCalculator
from indo_payroll.calculators.engine import (
    PayrollEngine,
    PeriodCalculationResult,
    PeriodTotals,
)
from indo_payroll.calculators.line_builder import LineItemBuilder, LineItemData
from indo_payroll.calculators.regulation import (
    ContributionRates,
    RegulationConfig,
    TaxBracket,
    TaxTable,
)
from indo_payroll.calculators.tax_calculator import TaxCalculator, round_rupiah
from indo_payroll.calculators.types import (
    ComponentKind,
    ContributionResult,
    EmployeeCalculationContext,
    SalaryComponentInput,
    TaxResult,
    TaxStatus,
    VariableAmounts,
)

__all__ = [
    "ComponentKind",
    "ContributionCalculator",
    "ContributionRates",
    "ContributionResult",
    "EmployeeCalculationContext",
    "LineItemBuilder",
    "LineItemData",
    "PayrollEngine",
    "PeriodCalculationResult",
    "PeriodTotals",
    "RegulationConfig",
    "SalaryComponentInput",
    "TaxBracket",
    "TaxCalculator",
    "TaxResult",
    "TaxStatus",
    "TaxTable",
    "VariableAmounts",
    "round_rupiah",
]
