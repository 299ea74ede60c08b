"""Tests for the statutory configuration objects."""

import json
from decimal import Decimal

import pytest

from indo_payroll.calculators.regulation import (
    ContributionRates,
    RegulationConfig,
    TaxBracket,
    TaxTable,
    load_regulation,
)
from indo_payroll.calculators.types import TaxStatus
from indo_payroll.errors import ValidationError


class TestTaxTableValidation:
    def test_defaults_are_valid(self):
        table = TaxTable()
        assert table.ptkp_for(TaxStatus.TK0) == Decimal("54000000")
        assert table.brackets[-1].upper is None

    def test_gap_between_brackets_rejected(self):
        with pytest.raises(ValidationError, match="contiguous"):
            TaxTable(
                brackets=(
                    TaxBracket(Decimal("0"), Decimal("100"), Decimal("0.05")),
                    TaxBracket(Decimal("200"), None, Decimal("0.15")),
                )
            )

    def test_first_bracket_must_start_at_zero(self):
        with pytest.raises(ValidationError):
            TaxTable(brackets=(TaxBracket(Decimal("10"), None, Decimal("0.05")),))

    def test_last_bracket_must_be_open(self):
        with pytest.raises(ValidationError, match="open-ended"):
            TaxTable(brackets=(TaxBracket(Decimal("0"), Decimal("100"), Decimal("0.05")),))

    def test_missing_ptkp_status_rejected(self):
        with pytest.raises(ValidationError, match="PTKP"):
            TaxTable(ptkp={TaxStatus.TK0: Decimal("54000000")})

    def test_bracket_rate_bounds(self):
        with pytest.raises(ValidationError):
            TaxBracket(Decimal("0"), None, Decimal("1.5"))


class TestContributionRatesValidation:
    def test_rate_out_of_bounds(self):
        with pytest.raises(ValidationError, match="health_employee_rate"):
            ContributionRates(health_employee_rate=Decimal("0.5"))

    def test_health_cap_bounds(self):
        with pytest.raises(ValidationError):
            ContributionRates(health_salary_cap=Decimal("0"))


class TestRegulationConfig:
    def test_fingerprint_is_stable(self):
        assert RegulationConfig().fingerprint() == RegulationConfig().fingerprint()
        assert len(RegulationConfig().fingerprint()) == 32

    def test_fingerprint_changes_with_rates(self):
        changed = RegulationConfig(
            contributions=ContributionRates(jkk_employer_rate=Decimal("0.0054"))
        )
        assert changed.fingerprint() != RegulationConfig().fingerprint()

    def test_pairs_roundtrip_keeps_fingerprint(self):
        config = RegulationConfig()
        assert RegulationConfig.from_pairs(config.to_pairs()).fingerprint() == config.fingerprint()

    def test_from_pairs_overrides_only_given_keys(self):
        config = RegulationConfig.from_pairs(
            {
                "ptkp_k_1": "70000000",
                "bpjs_health_max_salary": "15000000",
                "occupational_cost_max_monthly": "600000",
            }
        )
        assert config.tax.ptkp_for(TaxStatus.K1) == Decimal("70000000")
        assert config.tax.ptkp_for(TaxStatus.TK0) == Decimal("54000000")
        assert config.contributions.health_salary_cap == Decimal("15000000")
        assert config.tax.occupational_cost_monthly_cap == Decimal("600000")

    def test_from_pairs_brackets(self):
        config = RegulationConfig.from_pairs(
            {
                "tax_bracket_1_min": "0",
                "tax_bracket_1_max": "50000000",
                "tax_bracket_1_rate": "0.05",
                "tax_bracket_2_min": "50000000",
                "tax_bracket_2_max": "",
                "tax_bracket_2_rate": "0.15",
            }
        )
        assert len(config.tax.brackets) == 2
        assert config.tax.brackets[1].upper is None

    def test_non_numeric_value_rejected(self):
        with pytest.raises(ValidationError, match="not a number"):
            RegulationConfig.from_pairs({"bpjs_jkk_company_rate": "abc"})

    def test_json_file(self, tmp_path):
        path = tmp_path / "regulation.json"
        payload = RegulationConfig().to_dict()
        payload["name"] = "pmk-168-2023"
        payload["contributions"]["jkk_employer_rate"] = "0.0054"
        path.write_text(json.dumps(payload), encoding="utf-8")

        config = load_regulation(str(path))

        assert config.name == "pmk-168-2023"
        assert config.contributions.jkk_employer_rate == Decimal("0.0054")

    def test_load_defaults_without_path(self):
        assert load_regulation(None).fingerprint() == RegulationConfig().fingerprint()
