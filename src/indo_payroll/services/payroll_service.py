"""Payroll period service - main orchestrator for period operations."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from indo_payroll.calculators.engine import PayrollEngine, PeriodCalculationResult, PeriodTotals
from indo_payroll.calculators.line_builder import LineItemData
from indo_payroll.calculators.types import (
    ComponentKind,
    EmployeeCalculationContext,
    SalaryComponentInput,
    TaxStatus,
    VariableAmounts,
)
from indo_payroll.errors import (
    ComplianceViolation,
    ComplianceWarning,
    ConcurrencyConflict,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from indo_payroll.inputs import VariableInputs
from indo_payroll.models import Employee, PayrollLineItem, PayrollPeriod, SalaryComponent
from indo_payroll.repositories.employees import EmployeeRepository, SalaryComponentRepository
from indo_payroll.repositories.payroll import PayrollRepository
from indo_payroll.services.collaborators import DEFAULT_TIMEOUT_SECONDS, call_with_timeout
from indo_payroll.services.locking_service import LockingService
from indo_payroll.services.state_machine import PeriodStateMachine, PeriodStatus
from indo_payroll.services.variable_inputs import merge_inputs, parse_variable_inputs

logger = logging.getLogger(__name__)


@dataclass
class PeriodValidation:
    """Outcome of validating a period before finalization."""

    period_id: UUID
    issues: list[ComplianceWarning] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues


@dataclass
class PeriodStatistics:
    total_periods: int
    by_status: dict[str, int]
    year: int
    finalized_net_total: Decimal


class PayrollService:
    """Service for managing the payroll period lifecycle.

    Operations:
    - create_period: open a draft period for a (month, year)
    - calculate: compute and commit the full line-item set under the period lock
    - finalize: freeze a calculated period
    - delete_period: remove a draft period
    - validate_period / get_statistics: read-only checks and summaries
    """

    def __init__(
        self,
        payroll: PayrollRepository,
        employees: EmployeeRepository,
        components: SalaryComponentRepository,
        locks: LockingService,
        engine: PayrollEngine,
        executor: Executor | None = None,
        collaborator_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.payroll = payroll
        self.employees = employees
        self.components = components
        self.locks = locks
        self.engine = engine
        self.executor = executor
        self.collaborator_timeout = collaborator_timeout

    # === Periods ===

    async def create_period(self, month: int, year: int) -> PayrollPeriod:
        if not 1 <= month <= 12:
            raise ValidationError(f"Month must be between 1 and 12, got {month}")
        if not 2000 <= year <= 2100:
            raise ValidationError(f"Year must be between 2000 and 2100, got {year}")
        period = await self.payroll.create_period(month, year)
        logger.info("Created payroll period %s (%s)", period.period_label, period.period_id)
        return period

    async def get_period(self, period_id: UUID) -> PayrollPeriod:
        return await self.payroll.require_period(period_id)

    async def list_periods(
        self,
        status: str | None = None,
        year: int | None = None,
        limit: int = 50,
    ) -> list[PayrollPeriod]:
        if status is not None and status not in {s.value for s in PeriodStatus}:
            raise ValidationError(f"Unknown period status: {status!r}")
        return await self.payroll.list_periods(status=status, year=year, limit=limit)

    async def list_line_items(self, period_id: UUID) -> list[PayrollLineItem]:
        await self.payroll.require_period(period_id)
        return await self.payroll.list_line_items(period_id)

    async def delete_period(self, period_id: UUID) -> None:
        """Delete a draft period. Calculated and finalized periods are kept."""
        period = await self.payroll.require_period(period_id)
        if not PeriodStateMachine.can_delete(period.status):
            raise InvalidStateTransition(
                period.status, "deleted", "only draft periods can be deleted"
            )
        if not await self.payroll.delete_draft_period(period_id):
            current = await self.payroll.get_period(period_id)
            if current is None:
                return
            if not PeriodStateMachine.can_delete(current.status):
                raise InvalidStateTransition(
                    current.status, "deleted", "only draft periods can be deleted"
                )
            raise ConcurrencyConflict(
                f"Payroll period {current.period_label} is being calculated"
            )
        logger.info("Deleted draft payroll period %s", period_id)

    # === Calculation ===

    async def calculate(
        self,
        period_id: UUID,
        variable_inputs: Mapping[Any, VariableInputs | Mapping[str, Any]] | None = None,
        actor: str | None = None,
        timeout: float | None = None,
    ) -> PeriodCalculationResult:
        """Calculate every active employee and commit the set atomically.

        Raises:
            NotFoundError: unknown period
            InvalidStateTransition: period is finalized
            ConcurrencyConflict: another calculation holds the period
            ValidationError: malformed inputs, or inputs for inactive employees
            ExternalDependencyError: a collaborator failed or timed out
        """
        supplied = parse_variable_inputs(variable_inputs)
        timeout = timeout if timeout is not None else self.collaborator_timeout

        async with self.locks.hold(period_id, actor) as lock_token:
            employees = await call_with_timeout(self.employees.list_active(), timeout, "employees")
            active_ids = {e.employee_id for e in employees}

            unknown = sorted(str(i) for i in supplied if i not in active_ids)
            if unknown:
                raise ValidationError(
                    f"Variable inputs given for inactive or unknown employee(s): {', '.join(unknown)}"
                )

            components = await call_with_timeout(
                self.components.list_active_by_employee(active_ids),
                timeout,
                "salary components",
            )
            stored = await self.payroll.get_variable_inputs(period_id)
            variables = merge_inputs(stored, supplied)

            contexts = [
                self._build_context(period_id, e, components.get(e.employee_id, []), variables)
                for e in employees
            ]
            items = await self._compute(contexts)
            totals = PeriodTotals.from_items(items)

            await self.payroll.replace_payroll_items(
                period_id,
                lock_token,
                items,
                totals,
                variable_inputs=supplied,
                actor=actor,
            )

        warnings = self.engine.compliance_warnings(items)
        logger.info(
            "Calculated period %s: %d employee(s), net %s, %d warning(s)",
            period_id,
            totals.employee_count,
            totals.total_net,
            len(warnings),
        )
        return PeriodCalculationResult(
            period_id=period_id, items=items, totals=totals, warnings=warnings
        )

    async def _compute(self, contexts: list[EmployeeCalculationContext]) -> list[LineItemData]:
        loop = asyncio.get_running_loop()
        return list(
            await asyncio.gather(
                *(
                    loop.run_in_executor(self.executor, self.engine.calculate_employee, ctx)
                    for ctx in contexts
                )
            )
        )

    @staticmethod
    def _build_context(
        period_id: UUID,
        employee: Employee,
        components: list[SalaryComponent],
        variables: Mapping[UUID, VariableAmounts],
    ) -> EmployeeCalculationContext:
        try:
            tax_status = TaxStatus(employee.tax_status)
        except ValueError as e:
            raise ValidationError(
                f"Employee {employee.employee_number} has unknown tax status "
                f"{employee.tax_status!r}"
            ) from e

        return EmployeeCalculationContext(
            period_id=period_id,
            employee_id=employee.employee_id,
            employee_number=employee.employee_number,
            full_name=employee.full_name,
            tax_status=tax_status,
            health_enrolled=employee.bpjs_health_enrolled,
            employment_enrolled=employee.bpjs_employment_enrolled,
            components=[
                SalaryComponentInput(
                    component_id=c.salary_component_id,
                    name=c.name,
                    kind=ComponentKind(c.kind),
                    amount=c.amount,
                )
                for c in components
            ],
            variables=variables.get(employee.employee_id, VariableAmounts()),
        )

    # === Finalization ===

    async def finalize(
        self,
        period_id: UUID,
        actor: str | None = None,
        acknowledge_warnings: bool = False,
    ) -> PayrollPeriod:
        """Freeze a calculated period.

        Raises:
            InvalidStateTransition: period is not calculated
            ConcurrencyConflict: a calculation is in flight
            ComplianceViolation: warnings exist and were not acknowledged
        """
        period = await self.payroll.require_period(period_id)
        self._check_finalizable(period)

        items = await self.payroll.list_line_items(period_id)
        warnings = self.engine.compliance_warnings(items)
        if warnings and not acknowledge_warnings:
            raise ComplianceViolation(warnings)

        if not await self.payroll.finalize_period(period_id, actor, period.calculated_at):
            current = await self.payroll.require_period(period_id)
            self._check_finalizable(current)
            raise ConcurrencyConflict(
                f"Payroll period {current.period_label} was recalculated during finalization"
            )

        if warnings:
            logger.warning(
                "Period %s finalized by %s with %d acknowledged warning(s)",
                period_id,
                actor,
                len(warnings),
            )
        else:
            logger.info("Period %s finalized by %s", period_id, actor)
        return await self.payroll.require_period(period_id)

    @staticmethod
    def _check_finalizable(period: PayrollPeriod) -> None:
        PeriodStateMachine.validate_transition(
            period.status, PeriodStatus.FINALIZED.value, "period must be calculated first"
        )
        errors = PeriodStateMachine.validate_period_for_finalize(period)
        if errors:
            raise ConcurrencyConflict("; ".join(errors))

    # === Read-only checks ===

    async def validate_period(
        self, period_id: UUID, timeout: float | None = None
    ) -> PeriodValidation:
        """List everything that would block or weaken a finalization.

        Raises:
            NotFoundError: unknown period
            ExternalDependencyError: loading active employees failed or timed out
        """
        period = await self.payroll.require_period(period_id)
        result = PeriodValidation(period_id=period_id)

        if period.status == PeriodStatus.DRAFT.value:
            result.issues.append(
                ComplianceWarning("not_calculated", "Period has not been calculated")
            )
            return result

        items = await self.payroll.list_line_items(period_id)
        result.issues.extend(self.engine.compliance_warnings(items))

        if period.status == PeriodStatus.CALCULATED.value:
            calculated = {item.employee_id for item in items}
            timeout = timeout if timeout is not None else self.collaborator_timeout
            active = await call_with_timeout(self.employees.list_active(), timeout, "employees")
            for employee in active:
                if employee.employee_id not in calculated:
                    result.issues.append(
                        ComplianceWarning(
                            "missing_employee",
                            f"Active employee {employee.employee_number} is not in the calculation",
                            employee_id=employee.employee_id,
                        )
                    )
        return result

    async def get_statistics(self, year: int | None = None) -> PeriodStatistics:
        year = year or date.today().year
        counts = await self.payroll.status_counts()
        by_status = {s.value: counts.get(s.value, 0) for s in PeriodStatus}
        return PeriodStatistics(
            total_periods=sum(by_status.values()),
            by_status=by_status,
            year=year,
            finalized_net_total=await self.payroll.finalized_net_total(year),
        )
