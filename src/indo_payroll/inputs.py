"""Validated boundary inputs.

Requests are parsed into these models once, at the service boundary, so
the core only ever sees well-formed data.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Literal, Union
from uuid import UUID

import pydantic
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from indo_payroll.calculators.types import ComponentKind, VariableAmounts
from indo_payroll.errors import ValidationError

NonNegativeAmount = Annotated[Decimal, Field(ge=0, max_digits=18, decimal_places=2)]


class InputModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


# ============================================================================
# Variable inputs
# ============================================================================


class VariableInputs(InputModel):
    """Per-period variable amounts for one employee. Absent => zero."""

    bonus: NonNegativeAmount = Decimal("0")
    overtime_pay: NonNegativeAmount = Decimal("0")
    other_allowances: NonNegativeAmount = Decimal("0")
    other_deductions: NonNegativeAmount = Decimal("0")

    def to_amounts(self) -> VariableAmounts:
        return VariableAmounts(
            bonus=self.bonus,
            overtime_pay=self.overtime_pay,
            other_allowances=self.other_allowances,
            other_deductions=self.other_deductions,
        )


# ============================================================================
# Bulk operation cohort selector
# ============================================================================


class EmployeeIdsSelector(InputModel):
    """Explicit list of employees."""

    kind: Literal["employee_ids"] = "employee_ids"
    employee_ids: list[UUID] = Field(min_length=1)


class FilterSelector(InputModel):
    """Active employees matching every given criterion."""

    kind: Literal["filter"] = "filter"
    department_id: UUID | None = None
    include_sub_departments: bool = False
    position_id: UUID | None = None
    salary_min: NonNegativeAmount | None = None
    salary_max: NonNegativeAmount | None = None

    @model_validator(mode="after")
    def _check_range(self) -> FilterSelector:
        if (
            self.salary_min is not None
            and self.salary_max is not None
            and self.salary_min > self.salary_max
        ):
            raise ValueError("salary_min cannot be greater than salary_max")
        return self


CohortSelector = Annotated[
    Union[EmployeeIdsSelector, FilterSelector], Field(discriminator="kind")
]


# ============================================================================
# Bulk operation adjustment rule
# ============================================================================


class PercentageRule(InputModel):
    """Scale every active component by a percentage (10 = +10%)."""

    kind: Literal["percentage"] = "percentage"
    percentage: Decimal = Field(gt=-100, le=1000)


class FixedAmountRule(InputModel):
    """Add an amount (may be negative) to the basic salary component."""

    kind: Literal["fixed_amount"] = "fixed_amount"
    amount: Decimal = Field(max_digits=18, decimal_places=2)


class ExplicitRule(InputModel):
    """Target amount per employee per component."""

    kind: Literal["explicit"] = "explicit"
    targets: dict[UUID, dict[UUID, NonNegativeAmount]] = Field(min_length=1)


AdjustmentRule = Annotated[
    Union[PercentageRule, FixedAmountRule, ExplicitRule], Field(discriminator="kind")
]


class BulkOperationSpec(InputModel):
    """Everything needed to create a bulk salary operation."""

    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    selector: CohortSelector
    rule: AdjustmentRule
    effective_date: date
    reason: str | None = None


# ============================================================================
# Salary change proposals
# ============================================================================


class ComponentChange(InputModel):
    """One requested change to an employee's salary components."""

    action: Literal["create", "update", "delete"] = "update"
    component_id: UUID | None = None
    component_name: str | None = Field(default=None, min_length=1)
    component_kind: ComponentKind | None = None
    new_amount: NonNegativeAmount | None = None

    @model_validator(mode="after")
    def _check_action(self) -> ComponentChange:
        if self.action == "create":
            if self.component_id is not None:
                raise ValueError("create must not reference an existing component")
            if self.component_name is None or self.component_kind is None:
                raise ValueError("create requires component_name and component_kind")
            if self.new_amount is None:
                raise ValueError("create requires new_amount")
        elif self.action == "update":
            if self.component_id is None or self.new_amount is None:
                raise ValueError("update requires component_id and new_amount")
        elif self.component_id is None:
            raise ValueError("delete requires component_id")
        return self


class SalaryChangeProposal(InputModel):
    """A set of component changes awaiting approval."""

    employee_id: UUID
    changes: list[ComponentChange] = Field(min_length=1)
    reason: str = Field(min_length=1)
    notes: str | None = None
    effective_date: date


SELECTOR_ADAPTER: TypeAdapter[EmployeeIdsSelector | FilterSelector] = TypeAdapter(CohortSelector)
RULE_ADAPTER: TypeAdapter[PercentageRule | FixedAmountRule | ExplicitRule] = TypeAdapter(
    AdjustmentRule
)


def parse(model: type[BaseModel] | TypeAdapter[Any], value: Any) -> Any:
    """Validate `value` against a model or adapter, raising the engine's ValidationError.

    Already-validated model instances pass through unchanged.
    """
    if isinstance(value, BaseModel) and not isinstance(model, TypeAdapter):
        if isinstance(value, model):
            return value
    try:
        if isinstance(model, TypeAdapter):
            return model.validate_python(value)
        return model.model_validate(value)
    except pydantic.ValidationError as e:
        raise ValidationError(_describe(e)) from e


def _describe(error: pydantic.ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item["loc"])
        parts.append(f"{loc}: {item['msg']}" if loc else item["msg"])
    return "; ".join(parts)


def parse_uuid(value: Any, what: str = "employee id") -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as e:
        raise ValidationError(f"Invalid {what}: {value!r}") from e
