"""Statutory rate tables for PPh 21 and BPJS.

Explicit configuration objects. Regulation updates change these values,
never the calculation code.

Pattern:
    regulation = RegulationConfig(
        tax=TaxTable(...),
        contributions=ContributionRates(...),
    )

Rules:
    1. Immutable after creation (frozen dataclasses).
    2. Validated on construction.
    3. Loadable from a JSON document or from flat key/value pairs
       (the layout of the app configuration table).
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Mapping

from indo_payroll.calculators.types import TaxStatus
from indo_payroll.errors import ValidationError

ZERO = Decimal("0")
ONE = Decimal("1")


@dataclass(frozen=True)
class TaxBracket:
    """Annual PKP bracket taxed at its own rate."""

    lower: Decimal
    upper: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g. 0.05 for 5%

    def __post_init__(self) -> None:
        if self.lower < 0:
            raise ValidationError("Tax bracket lower bound cannot be negative")
        if self.upper is not None and self.upper <= self.lower:
            raise ValidationError("Tax bracket maximums must be greater than minimums")
        if not ZERO <= self.rate <= ONE:
            raise ValidationError("Tax bracket rate must be between 0 and 100%")


DEFAULT_PTKP: dict[TaxStatus, Decimal] = {
    TaxStatus.TK0: Decimal("54000000"),
    TaxStatus.TK1: Decimal("58500000"),
    TaxStatus.TK2: Decimal("63000000"),
    TaxStatus.TK3: Decimal("67500000"),
    TaxStatus.K0: Decimal("58500000"),
    TaxStatus.K1: Decimal("63000000"),
    TaxStatus.K2: Decimal("67500000"),
    TaxStatus.K3: Decimal("72000000"),
}

DEFAULT_BRACKETS: tuple[TaxBracket, ...] = (
    TaxBracket(Decimal("0"), Decimal("60000000"), Decimal("0.05")),
    TaxBracket(Decimal("60000000"), Decimal("250000000"), Decimal("0.15")),
    TaxBracket(Decimal("250000000"), Decimal("500000000"), Decimal("0.25")),
    TaxBracket(Decimal("500000000"), Decimal("5000000000"), Decimal("0.30")),
    TaxBracket(Decimal("5000000000"), None, Decimal("0.35")),
)


@dataclass(frozen=True)
class TaxTable:
    """
    PPh 21 configuration.

    Attributes:
        brackets: Ascending, contiguous annual brackets starting at zero.
        ptkp: Annual non-taxable threshold for each of the 8 tax statuses.
        occupational_cost_rate: Share of monthly gross allowed as
            occupational cost (biaya jabatan). Default 5%.
        occupational_cost_monthly_cap: Monthly ceiling of the occupational
            cost. Default 500,000.
    """

    brackets: tuple[TaxBracket, ...] = DEFAULT_BRACKETS
    ptkp: Mapping[TaxStatus, Decimal] = field(default_factory=lambda: dict(DEFAULT_PTKP))
    occupational_cost_rate: Decimal = Decimal("0.05")
    occupational_cost_monthly_cap: Decimal = Decimal("500000")

    def __post_init__(self) -> None:
        if not self.brackets:
            raise ValidationError("At least one tax bracket is required")
        if self.brackets[0].lower != 0:
            raise ValidationError("The first tax bracket must start at zero")
        for prev, cur in zip(self.brackets, self.brackets[1:]):
            if prev.upper is None or prev.upper != cur.lower:
                raise ValidationError("Tax brackets must be ascending and contiguous")
        if self.brackets[-1].upper is not None:
            raise ValidationError("The last tax bracket must be open-ended")

        missing = [s.value for s in TaxStatus if s not in self.ptkp]
        if missing:
            raise ValidationError(f"PTKP amounts missing for: {', '.join(missing)}")
        if any(amount < 0 for amount in self.ptkp.values()):
            raise ValidationError("PTKP amounts cannot be negative")

        if not ZERO <= self.occupational_cost_rate <= Decimal("0.1"):
            raise ValidationError("Occupational cost rate must be between 0 and 10%")
        if self.occupational_cost_monthly_cap <= 0:
            raise ValidationError("Occupational cost max monthly must be greater than 0")

    def ptkp_for(self, status: TaxStatus) -> Decimal:
        """Annual PTKP threshold for a tax status."""
        return self.ptkp[status]


@dataclass(frozen=True)
class ContributionRates:
    """
    BPJS contribution rates and salary caps.

    Attributes:
        health_employee_rate / health_employer_rate: BPJS Kesehatan split.
        health_salary_cap: Maximum insurable salary for health.
        jht_employee_rate / jht_employer_rate: Old-age savings (JHT).
        jp_employee_rate / jp_employer_rate: Pension (JP).
        pension_salary_cap: Maximum insurable salary for JP.
        jkk_employer_rate: Workplace accident (employer only, flat).
        jkm_employer_rate: Death benefit (employer only, flat).
    """

    health_employee_rate: Decimal = Decimal("0.01")
    health_employer_rate: Decimal = Decimal("0.04")
    health_salary_cap: Decimal = Decimal("12000000")
    jht_employee_rate: Decimal = Decimal("0.02")
    jht_employer_rate: Decimal = Decimal("0.037")
    jp_employee_rate: Decimal = Decimal("0.01")
    jp_employer_rate: Decimal = Decimal("0.02")
    pension_salary_cap: Decimal = Decimal("10042300")
    jkk_employer_rate: Decimal = Decimal("0.0024")
    jkm_employer_rate: Decimal = Decimal("0.003")

    def __post_init__(self) -> None:
        bounded = {
            "health_employee_rate": Decimal("0.1"),
            "health_employer_rate": Decimal("0.1"),
            "jht_employee_rate": Decimal("0.1"),
            "jht_employer_rate": Decimal("0.1"),
            "jp_employee_rate": Decimal("0.1"),
            "jp_employer_rate": Decimal("0.1"),
            "jkk_employer_rate": Decimal("0.02"),
            "jkm_employer_rate": Decimal("0.01"),
        }
        for name, upper in bounded.items():
            value = getattr(self, name)
            if not ZERO <= value <= upper:
                raise ValidationError(f"{name} must be between 0 and {upper * 100}%")
        if self.health_salary_cap <= 0 or self.health_salary_cap > Decimal("50000000"):
            raise ValidationError("BPJS Health max salary must be between 0 and 50 million")
        if self.pension_salary_cap <= 0:
            raise ValidationError("Pension max salary must be greater than 0")


# Flat key layout of the configuration table.
_TAX_KEYS = {
    "occupational_cost_rate": "occupational_cost_rate",
    "occupational_cost_max_monthly": "occupational_cost_monthly_cap",
}
_CONTRIBUTION_KEYS = {
    "bpjs_health_employee_rate": "health_employee_rate",
    "bpjs_health_company_rate": "health_employer_rate",
    "bpjs_health_max_salary": "health_salary_cap",
    "bpjs_jht_employee_rate": "jht_employee_rate",
    "bpjs_jht_company_rate": "jht_employer_rate",
    "bpjs_jp_employee_rate": "jp_employee_rate",
    "bpjs_jp_company_rate": "jp_employer_rate",
    "bpjs_jp_max_salary": "pension_salary_cap",
    "bpjs_jkk_company_rate": "jkk_employer_rate",
    "bpjs_jkm_company_rate": "jkm_employer_rate",
}


def _decimal(value: Any, key: str) -> Decimal:
    try:
        return Decimal(str(value))
    except ArithmeticError as e:
        raise ValidationError(f"Configuration value '{key}' is not a number: {value!r}") from e


@dataclass(frozen=True)
class RegulationConfig:
    """Complete statutory configuration used by the calculators."""

    tax: TaxTable = field(default_factory=TaxTable)
    contributions: ContributionRates = field(default_factory=ContributionRates)
    name: str = "default-2024"

    def fingerprint(self) -> str:
        """Stable hash of every value that can change a calculation."""
        json_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "tax": {
                "brackets": [
                    {
                        "min": str(b.lower),
                        "max": str(b.upper) if b.upper is not None else None,
                        "rate": str(b.rate),
                    }
                    for b in self.tax.brackets
                ],
                "ptkp": {s.value: str(self.tax.ptkp[s]) for s in TaxStatus},
                "occupational_cost_rate": str(self.tax.occupational_cost_rate),
                "occupational_cost_monthly_cap": str(self.tax.occupational_cost_monthly_cap),
            },
            "contributions": {
                attr: str(getattr(self.contributions, attr))
                for attr in _CONTRIBUTION_KEYS.values()
            },
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> RegulationConfig:
        """Build from the structure produced by `to_dict`.

        Sections that are absent fall back to the defaults.
        """
        tax_payload = payload.get("tax", {})
        tax_kwargs: dict[str, Any] = {}
        if "brackets" in tax_payload:
            tax_kwargs["brackets"] = tuple(
                TaxBracket(
                    lower=_decimal(b["min"], "brackets.min"),
                    upper=_decimal(b["max"], "brackets.max") if b.get("max") is not None else None,
                    rate=_decimal(b["rate"], "brackets.rate"),
                )
                for b in tax_payload["brackets"]
            )
        if "ptkp" in tax_payload:
            try:
                tax_kwargs["ptkp"] = {
                    TaxStatus(k): _decimal(v, f"ptkp.{k}")
                    for k, v in tax_payload["ptkp"].items()
                }
            except ValueError as e:
                raise ValidationError(f"Unknown tax status in PTKP table: {e}") from e
        for attr in ("occupational_cost_rate", "occupational_cost_monthly_cap"):
            if attr in tax_payload:
                tax_kwargs[attr] = _decimal(tax_payload[attr], attr)

        contribution_payload = payload.get("contributions", {})
        contribution_kwargs = {
            attr: _decimal(value, attr)
            for attr, value in contribution_payload.items()
            if attr in _CONTRIBUTION_KEYS.values()
        }

        return cls(
            tax=TaxTable(**tax_kwargs),
            contributions=ContributionRates(**contribution_kwargs),
            name=payload.get("name", "custom"),
        )

    @classmethod
    def from_json_file(cls, path: str | Path) -> RegulationConfig:
        """Load a regulation document from a JSON file."""
        with open(path, encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    @classmethod
    def from_pairs(cls, pairs: Mapping[str, str]) -> RegulationConfig:
        """Build from flat key/value configuration rows.

        Keys follow the configuration table layout: ``ptkp_tk_0``,
        ``tax_bracket_1_min``/``_max``/``_rate``, ``bpjs_health_max_salary``,
        ``occupational_cost_max_monthly`` and so on. Unknown keys are ignored
        and missing keys keep their defaults.
        """
        defaults = cls()

        ptkp = dict(defaults.tax.ptkp)
        for status in TaxStatus:
            key = "ptkp_" + status.value.lower().replace("/", "_")
            if key in pairs:
                ptkp[status] = _decimal(pairs[key], key)

        brackets = list(defaults.tax.brackets)
        index = 1
        parsed: list[TaxBracket] = []
        while f"tax_bracket_{index}_rate" in pairs:
            prefix = f"tax_bracket_{index}"
            upper = pairs.get(f"{prefix}_max")
            parsed.append(
                TaxBracket(
                    lower=_decimal(pairs.get(f"{prefix}_min", "0"), f"{prefix}_min"),
                    upper=_decimal(upper, f"{prefix}_max") if upper not in (None, "") else None,
                    rate=_decimal(pairs[f"{prefix}_rate"], f"{prefix}_rate"),
                )
            )
            index += 1
        if parsed:
            brackets = parsed

        tax_kwargs: dict[str, Any] = {"brackets": tuple(brackets), "ptkp": ptkp}
        for key, attr in _TAX_KEYS.items():
            if key in pairs:
                tax_kwargs[attr] = _decimal(pairs[key], key)

        contribution_kwargs = {
            attr: _decimal(pairs[key], key)
            for key, attr in _CONTRIBUTION_KEYS.items()
            if key in pairs
        }

        return cls(
            tax=TaxTable(**tax_kwargs),
            contributions=ContributionRates(**contribution_kwargs),
            name=pairs.get("regulation_name", "configured"),
        )

    def to_pairs(self) -> dict[str, str]:
        """Flatten into key/value configuration rows (inverse of `from_pairs`)."""
        pairs: dict[str, str] = {"regulation_name": self.name}
        for status in TaxStatus:
            pairs["ptkp_" + status.value.lower().replace("/", "_")] = str(self.tax.ptkp[status])
        for i, bracket in enumerate(self.tax.brackets, start=1):
            pairs[f"tax_bracket_{i}_min"] = str(bracket.lower)
            pairs[f"tax_bracket_{i}_max"] = str(bracket.upper) if bracket.upper is not None else ""
            pairs[f"tax_bracket_{i}_rate"] = str(bracket.rate)
        for key, attr in _TAX_KEYS.items():
            pairs[key] = str(getattr(self.tax, attr))
        for key, attr in _CONTRIBUTION_KEYS.items():
            pairs[key] = str(getattr(self.contributions, attr))
        return pairs


def load_regulation(path: str | None) -> RegulationConfig:
    """Load the configured regulation, or the built-in defaults."""
    if path:
        return RegulationConfig.from_json_file(path)
    return RegulationConfig()
