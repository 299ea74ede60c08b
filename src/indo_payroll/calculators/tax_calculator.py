"""PPh 21 withholding using the configured tax table."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from indo_payroll.calculators.regulation import TaxTable
from indo_payroll.calculators.types import TaxResult, TaxStatus
from indo_payroll.errors import ValidationError

ZERO = Decimal("0")
RUPIAH = Decimal("1")
MONTHS = Decimal("12")


def round_rupiah(amount: Decimal) -> Decimal:
    """Round to whole rupiah, half up."""
    return amount.quantize(RUPIAH, rounding=ROUND_HALF_UP)


class TaxCalculator:
    """Calculates monthly PPh 21 for permanent employees.

    Pipeline (annualized method):
    1) occupational cost = min(gross * rate, monthly cap)
    2) net monthly = gross - occupational cost - deductible contributions
    3) PKP = max(0, net monthly * 12 - PTKP[status])
    4) annual tax = sum of each bracket's slice of PKP * bracket rate
    5) monthly tax = annual tax / 12

    Intermediate values keep full precision. Reported figures are rounded
    once, at the end, to whole rupiah.
    """

    def __init__(self, table: TaxTable | None = None):
        self.table = table or TaxTable()

    def calculate(
        self,
        gross_monthly: Decimal,
        tax_status: TaxStatus | str,
        deductible_contributions: Decimal = ZERO,
    ) -> TaxResult:
        if gross_monthly < 0:
            raise ValidationError("Gross salary cannot be negative")
        if deductible_contributions < 0:
            raise ValidationError("Deductible contributions cannot be negative")
        try:
            status = TaxStatus(tax_status)
        except ValueError as e:
            raise ValidationError(f"Unknown tax status: {tax_status!r}") from e

        occupational_cost = self.occupational_cost(gross_monthly)
        net_monthly = gross_monthly - occupational_cost - deductible_contributions
        net_annual = net_monthly * MONTHS
        ptkp = self.table.ptkp_for(status)
        pkp = max(ZERO, net_annual - ptkp)

        annual_tax = self.progressive_tax(pkp)

        return TaxResult(
            gross_monthly=round_rupiah(gross_monthly),
            occupational_cost=round_rupiah(occupational_cost),
            deductible_contributions=round_rupiah(deductible_contributions),
            net_monthly=round_rupiah(net_monthly),
            net_annual=round_rupiah(net_annual),
            ptkp_amount=round_rupiah(ptkp),
            taxable_income_annual=round_rupiah(pkp),
            pph21_annual=round_rupiah(annual_tax),
            pph21_monthly=round_rupiah(annual_tax / MONTHS),
        )

    def occupational_cost(self, gross_monthly: Decimal) -> Decimal:
        """Biaya jabatan, capped per month."""
        return min(
            gross_monthly * self.table.occupational_cost_rate,
            self.table.occupational_cost_monthly_cap,
        )

    def progressive_tax(self, pkp: Decimal) -> Decimal:
        """Annual tax on PKP, unrounded."""
        if pkp <= 0:
            return ZERO

        total_tax = ZERO
        remaining = pkp

        for bracket in self.table.brackets:
            if remaining <= 0:
                break

            if bracket.upper is None:
                taxable_in_bracket = remaining
            else:
                taxable_in_bracket = min(remaining, bracket.upper - bracket.lower)

            if taxable_in_bracket > 0:
                total_tax += taxable_in_bracket * bracket.rate
                remaining -= taxable_in_bracket

        return total_tax
