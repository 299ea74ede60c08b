"""BPJS Kesehatan and BPJS Ketenagakerjaan contributions."""

from __future__ import annotations

from decimal import Decimal

from indo_payroll.calculators.regulation import ContributionRates
from indo_payroll.calculators.tax_calculator import round_rupiah
from indo_payroll.calculators.types import ContributionResult
from indo_payroll.errors import ValidationError

ZERO = Decimal("0")


class ContributionCalculator:
    """Computes employee and employer BPJS shares from monthly gross.

    Health is computed on gross capped at the health salary cap. JP is
    computed on gross capped at the pension cap. JHT, JKK and JKM use the
    full gross. Employees not enrolled in a program get zeros for it.
    """

    def __init__(self, rates: ContributionRates | None = None):
        self.rates = rates or ContributionRates()

    def calculate(
        self,
        gross_monthly: Decimal,
        health_enrolled: bool = True,
        employment_enrolled: bool = True,
    ) -> ContributionResult:
        if gross_monthly < 0:
            raise ValidationError("Gross salary cannot be negative")

        r = self.rates
        health_employee = health_employer = ZERO
        if health_enrolled:
            health_base = min(gross_monthly, r.health_salary_cap)
            health_employee = round_rupiah(health_base * r.health_employee_rate)
            health_employer = round_rupiah(health_base * r.health_employer_rate)

        if not employment_enrolled:
            return ContributionResult(
                health_employee=health_employee,
                health_employer=health_employer,
            )

        pension_base = min(gross_monthly, r.pension_salary_cap)
        return ContributionResult(
            health_employee=health_employee,
            health_employer=health_employer,
            jht_employee=round_rupiah(gross_monthly * r.jht_employee_rate),
            jht_employer=round_rupiah(gross_monthly * r.jht_employer_rate),
            jp_employee=round_rupiah(pension_base * r.jp_employee_rate),
            jp_employer=round_rupiah(pension_base * r.jp_employer_rate),
            jkk_employer=round_rupiah(gross_monthly * r.jkk_employer_rate),
            jkm_employer=round_rupiah(gross_monthly * r.jkm_employer_rate),
        )
