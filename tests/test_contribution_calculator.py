"""Unit tests for BPJS contributions."""

from decimal import Decimal

import pytest

from indo_payroll.calculators.contribution_calculator import ContributionCalculator
from indo_payroll.calculators.regulation import ContributionRates
from indo_payroll.errors import ValidationError


class TestContributionCalculator:
    def test_reference_employee(self):
        result = ContributionCalculator().calculate(Decimal("5000000"))

        assert result.health_employee == Decimal("50000")
        assert result.health_employer == Decimal("200000")
        assert result.jht_employee == Decimal("100000")
        assert result.jht_employer == Decimal("185000")
        assert result.jp_employee == Decimal("50000")
        assert result.jp_employer == Decimal("100000")
        assert result.jkk_employer == Decimal("12000")
        assert result.jkm_employer == Decimal("15000")

        assert result.total_employee == Decimal("200000")
        assert result.total_employer == Decimal("512000")
        assert result.tax_deductible == Decimal("150000")

    def test_health_capped(self):
        result = ContributionCalculator().calculate(Decimal("20000000"))
        assert result.health_employee == Decimal("120000")
        assert result.health_employer == Decimal("480000")

    def test_pension_capped_but_jht_uncapped(self):
        result = ContributionCalculator().calculate(Decimal("20000000"))
        assert result.jp_employee == Decimal("100423")
        assert result.jp_employer == Decimal("200846")
        assert result.jht_employee == Decimal("400000")

    def test_not_enrolled_in_health(self):
        result = ContributionCalculator().calculate(Decimal("5000000"), health_enrolled=False)
        assert result.health_employee == Decimal("0")
        assert result.health_employer == Decimal("0")
        assert result.jht_employee == Decimal("100000")

    def test_not_enrolled_in_employment(self):
        result = ContributionCalculator().calculate(
            Decimal("5000000"), employment_enrolled=False
        )
        assert result.health_employee == Decimal("50000")
        assert result.jht_employee == Decimal("0")
        assert result.jp_employee == Decimal("0")
        assert result.jkk_employer == Decimal("0")
        assert result.jkm_employer == Decimal("0")
        assert result.tax_deductible == Decimal("0")

    def test_custom_rates(self):
        rates = ContributionRates(jkk_employer_rate=Decimal("0.0089"))
        result = ContributionCalculator(rates).calculate(Decimal("1000000"))
        assert result.jkk_employer == Decimal("8900")

    def test_negative_gross_rejected(self):
        with pytest.raises(ValidationError):
            ContributionCalculator().calculate(Decimal("-1"))

    def test_caps_hold_for_very_large_salaries(self):
        result = ContributionCalculator().calculate(Decimal(10**12))

        assert result.health_employee == Decimal("120000")
        assert result.health_employer == Decimal("480000")
        assert result.jp_employee == Decimal("100423")
        assert result.jp_employer == Decimal("200846")
        # JHT has no cap
        assert result.jht_employee == Decimal("20000000000")
