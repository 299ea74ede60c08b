"""Variable component store: per-period inputs held before calculation."""

from __future__ import annotations

import logging
from typing import Any, Mapping
from uuid import UUID

from indo_payroll.calculators.types import VariableAmounts
from indo_payroll.errors import ValidationError
from indo_payroll.inputs import VariableInputs, parse, parse_uuid
from indo_payroll.repositories.employees import EmployeeRepository
from indo_payroll.repositories.payroll import PayrollRepository

logger = logging.getLogger(__name__)


def parse_variable_inputs(
    inputs: Mapping[Any, VariableInputs | Mapping[str, Any]] | None,
) -> dict[UUID, VariableAmounts]:
    """Validate raw per-employee inputs into amounts keyed by employee id."""
    if not inputs:
        return {}
    return {
        parse_uuid(employee_id): parse(VariableInputs, value).to_amounts()
        for employee_id, value in inputs.items()
    }


def merge_inputs(
    stored: Mapping[UUID, VariableAmounts],
    supplied: Mapping[UUID, VariableAmounts],
) -> dict[UUID, VariableAmounts]:
    """Supplied inputs replace stored ones per employee."""
    merged = dict(stored)
    merged.update(supplied)
    return merged


class VariableInputStore:
    """Bonus, overtime, allowance and deduction inputs per (period, employee)."""

    def __init__(self, payroll: PayrollRepository, employees: EmployeeRepository):
        self.payroll = payroll
        self.employees = employees

    async def get(self, period_id: UUID) -> dict[UUID, VariableAmounts]:
        await self.payroll.require_period(period_id)
        return await self.payroll.get_variable_inputs(period_id)

    async def set(
        self,
        period_id: UUID,
        inputs: Mapping[Any, VariableInputs | Mapping[str, Any]],
    ) -> dict[UUID, VariableAmounts]:
        """Store inputs ahead of a calculation run.

        Raises:
            ValidationError: malformed amounts or unknown employees
            InvalidStateTransition: the period is finalized
        """
        parsed = parse_variable_inputs(inputs)
        if not parsed:
            return parsed

        known = {e.employee_id for e in await self.employees.list_by_ids(parsed)}
        unknown = [str(i) for i in parsed if i not in known]
        if unknown:
            raise ValidationError(f"Unknown employee(s): {', '.join(unknown)}")

        await self.payroll.save_variable_inputs(period_id, parsed)
        logger.info(
            "Stored variable inputs for %d employee(s) on period %s", len(parsed), period_id
        )
        return parsed
