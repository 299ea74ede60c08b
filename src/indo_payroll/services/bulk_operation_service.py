"""Bulk salary operations: preview, create, execute, cancel and roll back."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Awaitable, Callable, Mapping, Sequence, Union
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from indo_payroll.errors import (
    InvalidStateTransition,
    PartialFailure,
    PayrollError,
    ValidationError,
)
from indo_payroll.inputs import (
    RULE_ADAPTER,
    SELECTOR_ADAPTER,
    BulkOperationSpec,
    EmployeeIdsSelector,
    ExplicitRule,
    FilterSelector,
    FixedAmountRule,
    PercentageRule,
    parse,
)
from indo_payroll.models import BulkOperation, BulkOperationItem, Employee, SalaryComponent
from indo_payroll.repositories.bulk import BulkOperationRepository
from indo_payroll.repositories.employees import EmployeeRepository, SalaryComponentRepository
from indo_payroll.repositories.master_data import MasterDataRepository
from indo_payroll.services.collaborators import DEFAULT_TIMEOUT_SECONDS, call_with_timeout
from indo_payroll.services.ledger import ComponentMutation, SalaryLedger

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

Selector = Union[EmployeeIdsSelector, FilterSelector]
Rule = Union[PercentageRule, FixedAmountRule, ExplicitRule]
ProgressCallback = Callable[[int, int, "BulkItemResult"], Union[None, Awaitable[None]]]


class AdjustmentError(PayrollError):
    """The rule cannot be applied to one employee's components."""

    code = "ADJUSTMENT_ERROR"


@dataclass(frozen=True)
class PlannedChange:
    component_id: UUID
    name: str
    kind: str
    current_amount: Decimal
    planned_amount: Decimal

    @property
    def changed(self) -> bool:
        return self.current_amount != self.planned_amount


@dataclass
class BulkPreviewItem:
    employee_id: UUID
    employee_number: str
    full_name: str
    current_total: Decimal
    planned_total: Decimal
    changes: list[PlannedChange] = field(default_factory=list)
    error: str | None = None

    @property
    def difference(self) -> Decimal:
        return self.planned_total - self.current_total


@dataclass
class BulkPreview:
    items: list[BulkPreviewItem]

    @property
    def employee_count(self) -> int:
        return len(self.items)

    @property
    def total_current(self) -> Decimal:
        return sum((i.current_total for i in self.items), ZERO)

    @property
    def total_planned(self) -> Decimal:
        return sum((i.planned_total for i in self.items), ZERO)

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.items if i.error)


@dataclass(frozen=True)
class BulkItemResult:
    employee_id: UUID
    status: str
    current_total: Decimal
    planned_total: Decimal
    applied_total: Decimal | None = None
    error: str | None = None


@dataclass
class BulkOperationResult:
    """Outcome of executing a bulk operation.

    Item failures are reported here, never raised. Call
    `raise_for_status()` to turn anything short of 'completed' into
    PartialFailure.
    """

    operation_id: UUID
    status: str
    items: list[BulkItemResult] = field(default_factory=list)
    error_message: str | None = None

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def applied_count(self) -> int:
        return sum(1 for i in self.items if i.status == "applied")

    @property
    def failed_count(self) -> int:
        return sum(1 for i in self.items if i.status == "failed")

    @property
    def pending_count(self) -> int:
        return sum(1 for i in self.items if i.status == "pending")

    def raise_for_status(self) -> None:
        if self.status != "completed":
            raise PartialFailure(self)

    @classmethod
    def from_operation(cls, operation: BulkOperation) -> BulkOperationResult:
        return cls(
            operation_id=operation.bulk_operation_id,
            status=operation.status,
            items=[
                BulkItemResult(
                    employee_id=i.employee_id,
                    status=i.status,
                    current_total=i.current_total,
                    planned_total=i.planned_total,
                    applied_total=i.applied_total,
                    error=i.error_message,
                )
                for i in operation.items
            ],
            error_message=operation.error_message,
        )


def round_to_unit(amount: Decimal, unit: Decimal) -> Decimal:
    """Round half up to a multiple of `unit` (e.g. 1000 rupiah)."""
    return (amount / unit).quantize(Decimal("1"), rounding=ROUND_HALF_UP) * unit


def plan_adjustment(
    rule: Rule,
    employee_id: UUID,
    components: Sequence[SalaryComponent],
    rounding_unit: Decimal = Decimal("1"),
) -> list[PlannedChange]:
    """New amount for every active component of one employee.

    Raises AdjustmentError when the rule does not fit the employee.
    """
    if isinstance(rule, PercentageRule):
        if not components:
            raise AdjustmentError("Employee has no active salary components")
        factor = 1 + rule.percentage / HUNDRED
        planned = {
            c.salary_component_id: round_to_unit(c.amount * factor, rounding_unit)
            for c in components
        }

    elif isinstance(rule, FixedAmountRule):
        basics = sorted(
            (c for c in components if c.kind == "basic_salary"), key=lambda c: c.name
        )
        if not basics:
            raise AdjustmentError("Employee has no active basic salary component")
        target = basics[0]
        new_amount = round_to_unit(target.amount + rule.amount, rounding_unit)
        if new_amount < 0:
            raise AdjustmentError(
                f"Adjustment would make {target.name} negative ({new_amount})"
            )
        planned = {c.salary_component_id: c.amount for c in components}
        planned[target.salary_component_id] = new_amount

    else:
        targets = rule.targets.get(employee_id)
        if not targets:
            raise AdjustmentError("No target amounts given for employee")
        by_id = {c.salary_component_id: c for c in components}
        missing = [str(cid) for cid in targets if cid not in by_id]
        if missing:
            raise AdjustmentError(
                f"Salary component(s) not active for employee: {', '.join(missing)}"
            )
        planned = {c.salary_component_id: c.amount for c in components}
        for component_id, amount in targets.items():
            planned[component_id] = round_to_unit(amount, rounding_unit)

    return [
        PlannedChange(
            component_id=c.salary_component_id,
            name=c.name,
            kind=c.kind,
            current_amount=c.amount,
            planned_amount=planned[c.salary_component_id],
        )
        for c in components
    ]


class BulkOperationService:
    """Applies one adjustment rule across a cohort of employees.

    Each employee is its own unit of work: components are re-read, the rule
    is applied and the result is committed through the ledger in a single
    transaction. One employee failing never affects the others.

    Cancellation is cooperative: the flag is checked before each item, so
    applied items stay applied and the rest stay pending.
    """

    def __init__(
        self,
        bulk: BulkOperationRepository,
        employees: EmployeeRepository,
        components: SalaryComponentRepository,
        master_data: MasterDataRepository,
        ledger: SalaryLedger,
        max_concurrency: int = 4,
        rounding_unit: Decimal = Decimal("1"),
        collaborator_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.bulk = bulk
        self.employees = employees
        self.components = components
        self.master_data = master_data
        self.ledger = ledger
        self.max_concurrency = max_concurrency
        self.rounding_unit = rounding_unit
        self.collaborator_timeout = collaborator_timeout

    # === Preview ===

    async def preview(
        self,
        selector: Selector | Mapping[str, Any],
        rule: Rule | Mapping[str, Any],
        timeout: float | None = None,
    ) -> BulkPreview:
        """Per-employee before/after. Writes nothing.

        Raises:
            ValidationError: malformed selector or rule, unknown or inactive employees
            ExternalDependencyError: loading the cohort failed or timed out
        """
        selector = parse(SELECTOR_ADAPTER, selector)
        rule = parse(RULE_ADAPTER, rule)
        timeout = timeout if timeout is not None else self.collaborator_timeout

        employees = await self._resolve_cohort(selector, timeout)
        components = await call_with_timeout(
            self.components.list_active_by_employee(e.employee_id for e in employees),
            timeout,
            "salary components",
        )

        items: list[BulkPreviewItem] = []
        for employee in employees:
            active = components.get(employee.employee_id, [])
            current_total = sum((c.amount for c in active), ZERO)
            if isinstance(selector, FilterSelector) and not _in_range(current_total, selector):
                continue
            item = BulkPreviewItem(
                employee_id=employee.employee_id,
                employee_number=employee.employee_number,
                full_name=employee.full_name,
                current_total=current_total,
                planned_total=current_total,
            )
            try:
                item.changes = plan_adjustment(rule, employee.employee_id, active, self.rounding_unit)
                item.planned_total = sum((c.planned_amount for c in item.changes), ZERO)
            except AdjustmentError as e:
                item.error = str(e)
            items.append(item)
        return BulkPreview(items=items)

    async def _resolve_cohort(self, selector: Selector, timeout: float) -> list[Employee]:
        if isinstance(selector, EmployeeIdsSelector):
            ids = list(dict.fromkeys(selector.employee_ids))
            employees = await call_with_timeout(
                self.employees.list_by_ids(ids), timeout, "employees"
            )
            found = {e.employee_id: e for e in employees}
            unknown = [str(i) for i in ids if i not in found]
            if unknown:
                raise ValidationError(f"Unknown employee(s): {', '.join(unknown)}")
            inactive = [e.employee_number for e in employees if e.status != "active"]
            if inactive:
                raise ValidationError(f"Employee(s) not active: {', '.join(inactive)}")
            return employees

        department_ids = None
        if selector.department_id is not None:
            index = await call_with_timeout(
                self.master_data.load_department_index(), timeout, "departments"
            )
            department_ids = index.subtree(
                selector.department_id, include_descendants=selector.include_sub_departments
            )
        return await call_with_timeout(
            self.employees.list_active_matching(
                department_ids=department_ids, position_id=selector.position_id
            ),
            timeout,
            "employees",
        )

    # === Create ===

    async def create(
        self, spec: BulkOperationSpec | Mapping[str, Any], actor: str, timeout: float | None = None
    ) -> BulkOperation:
        """Persist the operation with one pending item per cohort employee."""
        spec = parse(BulkOperationSpec, spec)
        preview = await self.preview(spec.selector, spec.rule, timeout)
        if not preview.items:
            raise ValidationError("Cohort selector matched no employees")

        operation = BulkOperation(
            name=spec.name,
            description=spec.description,
            selector=spec.selector.model_dump(mode="json"),
            rule=spec.rule.model_dump(mode="json"),
            status="pending",
            effective_date=spec.effective_date,
            reason=spec.reason,
            created_by=actor,
        )
        return await self._persist(operation, preview)

    async def _persist(self, operation: BulkOperation, preview: BulkPreview) -> BulkOperation:
        items = [
            BulkOperationItem(
                employee_id=i.employee_id,
                status="pending",
                current_total=i.current_total,
                planned_total=i.planned_total,
            )
            for i in preview.items
        ]
        operation = await self.bulk.create(operation, items)
        logger.info(
            "Created bulk operation %s '%s' for %d employee(s)",
            operation.bulk_operation_id,
            operation.name,
            len(items),
        )
        return operation

    async def get(self, operation_id: UUID) -> BulkOperation:
        return await self.bulk.require(operation_id)

    async def list_operations(self, status: str | None = None, limit: int = 50) -> list[BulkOperation]:
        return await self.bulk.list_operations(status=status, limit=limit)

    # === Execute ===

    async def execute(
        self,
        operation_id: UUID,
        on_progress: ProgressCallback | None = None,
        timeout: float | None = None,
    ) -> BulkOperationResult:
        """Run every pending item. Never raises for item failures.

        `timeout` bounds each item's component read; an item that times out
        is recorded as failed.

        Raises:
            NotFoundError: unknown operation
            InvalidStateTransition: operation is not pending
        """
        operation = await self.bulk.require(operation_id)
        if not await self.bulk.mark_started(operation_id):
            current = await self.bulk.require(operation_id)
            raise InvalidStateTransition(
                current.status, "in_progress", "only pending operations can be executed"
            )
        logger.info("Executing bulk operation %s", operation_id)

        try:
            rule = parse(RULE_ADAPTER, operation.rule)
        except ValidationError as e:
            await self.bulk.finish(operation_id, "failed", 0, 0, error_message=str(e))
            logger.error("Bulk operation %s failed to start: %s", operation_id, e)
            return BulkOperationResult.from_operation(await self.bulk.require(operation_id))

        timeout = timeout if timeout is not None else self.collaborator_timeout
        pending = [i for i in operation.items if i.status == "pending"]
        total = len(pending)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        progress_lock = asyncio.Lock()
        state = {"done": 0, "cancelled": False}

        async def run(item: BulkOperationItem) -> None:
            async with semaphore:
                if state["cancelled"] or await self.bulk.is_cancel_requested(operation_id):
                    state["cancelled"] = True
                    return
                outcome = await self._execute_item(operation, rule, item, timeout)
                if on_progress is not None:
                    async with progress_lock:
                        state["done"] += 1
                        try:
                            callback = on_progress(state["done"], total, outcome)
                            if inspect.isawaitable(callback):
                                await callback
                        except Exception:
                            logger.exception(
                                "Progress callback failed for bulk operation %s", operation_id
                            )

        await asyncio.gather(*(run(item) for item in pending))

        refreshed = await self.bulk.require(operation_id)
        result = BulkOperationResult.from_operation(refreshed)
        status = self._terminal_status(result, cancelled=state["cancelled"])
        await self.bulk.finish(operation_id, status, result.applied_count, result.failed_count)
        result.status = status

        if status == "cancelled":
            logger.info(
                "Bulk operation %s cancelled: %d applied, %d pending",
                operation_id,
                result.applied_count,
                result.pending_count,
            )
        else:
            logger.info(
                "Bulk operation %s %s: %d applied, %d failed",
                operation_id,
                status,
                result.applied_count,
                result.failed_count,
            )
        return result

    async def _execute_item(
        self, operation: BulkOperation, rule: Rule, item: BulkOperationItem, timeout: float
    ) -> BulkItemResult:
        try:
            active = await call_with_timeout(
                self.components.list_active(item.employee_id), timeout, "salary components"
            )
            plan = plan_adjustment(rule, item.employee_id, active, self.rounding_unit)
            applied_total = sum((c.planned_amount for c in plan), ZERO)
            mutations = [
                ComponentMutation(
                    action="update",
                    employee_id=item.employee_id,
                    component_id=c.component_id,
                    new_amount=c.planned_amount,
                    expected_amount=c.current_amount,
                )
                for c in plan
                if c.changed
            ]

            async def mark_applied(session: AsyncSession) -> None:
                await self.bulk.record_item(
                    item.bulk_operation_item_id, "applied", applied_total, session=session
                )

            if mutations:
                await self.ledger.commit(
                    mutations,
                    changed_by=operation.created_by,
                    effective_date=operation.effective_date,
                    reason=operation.reason or operation.name,
                    source="rollback" if operation.rollback_of else "bulk",
                    bulk_operation_id=operation.bulk_operation_id,
                    on_commit=mark_applied,
                )
            else:
                await self.bulk.record_item(item.bulk_operation_item_id, "applied", applied_total)

        except (PayrollError, SQLAlchemyError) as e:
            logger.warning(
                "Bulk operation %s: employee %s failed: %s",
                operation.bulk_operation_id,
                item.employee_id,
                e,
            )
            return await self._fail_item(item, str(e))
        except Exception as e:
            logger.exception(
                "Bulk operation %s: unexpected error for employee %s",
                operation.bulk_operation_id,
                item.employee_id,
            )
            return await self._fail_item(item, f"Unexpected error: {e}")

        return BulkItemResult(
            employee_id=item.employee_id,
            status="applied",
            current_total=item.current_total,
            planned_total=item.planned_total,
            applied_total=applied_total,
        )

    async def _fail_item(self, item: BulkOperationItem, message: str) -> BulkItemResult:
        await self.bulk.record_item(item.bulk_operation_item_id, "failed", error_message=message)
        return BulkItemResult(
            employee_id=item.employee_id,
            status="failed",
            current_total=item.current_total,
            planned_total=item.planned_total,
            error=message,
        )

    @staticmethod
    def _terminal_status(result: BulkOperationResult, cancelled: bool) -> str:
        if cancelled and result.pending_count:
            return "cancelled"
        if result.applied_count == result.total:
            return "completed"
        if result.applied_count == 0:
            return "failed"
        return "partially_completed"

    # === Cancel ===

    async def cancel(self, operation_id: UUID) -> BulkOperation:
        """Request cancellation. A pending operation is cancelled at once."""
        operation = await self.bulk.require(operation_id)
        if not await self.bulk.request_cancel(operation_id):
            raise InvalidStateTransition(
                operation.status, "cancelled", "operation has already finished"
            )
        # A started run sees the flag and finishes the operation itself.
        if await self.bulk.finish_if_pending(operation_id, "cancelled"):
            logger.info("Bulk operation %s cancelled before it started", operation_id)
        else:
            logger.info("Cancellation requested for bulk operation %s", operation_id)
        return await self.bulk.require(operation_id)

    # === Rollback ===

    async def rollback(self, operation_id: UUID, actor: str, reason: str) -> BulkOperationResult:
        """Restore the previous amounts of every applied item.

        Runs as a new compensating operation whose explicit targets are the
        amounts recorded before the original change. History is only
        appended to. The original is marked rolled_back when every
        compensation succeeded.
        """
        if not reason:
            raise ValidationError("A rollback reason is required")
        original = await self.bulk.require(operation_id)
        if original.rollback_of is not None:
            raise ValidationError("A rollback operation cannot itself be rolled back")
        if original.status not in ("completed", "partially_completed", "cancelled"):
            raise InvalidStateTransition(
                original.status, "rolled_back", "only finished operations can be rolled back"
            )
        if await self.bulk.find_rollback_of(operation_id) is not None:
            raise InvalidStateTransition(
                original.status, "rolled_back", "operation already has a rollback"
            )

        records = await self.ledger.records_for_operation(operation_id)
        if not records:
            raise ValidationError("Operation has no applied changes to roll back")

        targets: dict[UUID, dict[UUID, Decimal]] = {}
        for record in records:
            # Earliest record per component holds the pre-operation amount.
            per_employee = targets.setdefault(record.employee_id, {})
            if record.salary_component_id not in per_employee:
                per_employee[record.salary_component_id] = record.previous_amount or ZERO

        compensating = BulkOperation(
            name=f"Rollback of {original.name}",
            description=reason,
            selector=EmployeeIdsSelector(employee_ids=list(targets)).model_dump(mode="json"),
            rule=ExplicitRule(targets=targets).model_dump(mode="json"),
            status="pending",
            effective_date=original.effective_date,
            reason=reason,
            created_by=actor,
            rollback_of=operation_id,
        )
        preview = await self.preview(compensating.selector, compensating.rule)
        compensating = await self._persist(compensating, preview)

        result = await self.execute(compensating.bulk_operation_id)
        if result.status == "completed":
            await self.bulk.mark_rolled_back(operation_id)
            logger.info("Bulk operation %s rolled back by %s", operation_id, actor)
        else:
            logger.warning(
                "Rollback of bulk operation %s finished '%s'", operation_id, result.status
            )
        return result


def _in_range(total: Decimal, selector: FilterSelector) -> bool:
    if selector.salary_min is not None and total < selector.salary_min:
        return False
    if selector.salary_max is not None and total > selector.salary_max:
        return False
    return True
