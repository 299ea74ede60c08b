"""Salary ledger - append-only history of salary component changes.

Provides transactional writes of salary components with:
- Exactly one SalaryChangeRecord per committed component mutation
- Live row and record written in the same transaction
- Pending records decided at most once (pending -> approved | rejected)
- Compensation through new records (no updates/deletes of history)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Awaitable, Callable, Iterable, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from indo_payroll.errors import (
    ConcurrencyConflict,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from indo_payroll.models import ComplianceExport, Employee, SalaryChangeRecord, SalaryComponent
from indo_payroll.models.base import utcnow

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

COMMITTED_STATUSES = ("approved", "auto_approved")


@dataclass(frozen=True)
class ComponentMutation:
    """One requested change to a live salary component.

    create: component_name, component_kind and new_amount are required.
    update: component_id and new_amount are required.
    delete: component_id is required; the component is deactivated.

    expected_amount, when set, must match the live amount at write time.
    """

    action: str
    employee_id: UUID
    component_id: UUID | None = None
    component_name: str | None = None
    component_kind: str | None = None
    new_amount: Decimal | None = None
    expected_amount: Decimal | None = None


@dataclass
class HistoryFilter:
    start_date: date | None = None
    end_date: date | None = None
    actions: Sequence[str] | None = None
    approval_statuses: Sequence[str] | None = None
    component_kind: str | None = None
    changed_by: str | None = None
    limit: int = 100
    offset: int = 0


@dataclass
class SalarySnapshot:
    basic: Decimal = ZERO
    allowances: Decimal = ZERO

    @property
    def gross(self) -> Decimal:
        return self.basic + self.allowances


@dataclass
class SalaryComparison:
    employee_id: UUID
    from_date: date
    to_date: date
    from_salary: SalarySnapshot
    to_salary: SalarySnapshot
    changes: list[SalaryChangeRecord] = field(default_factory=list)

    @property
    def difference(self) -> Decimal:
        return self.to_salary.gross - self.from_salary.gross


@dataclass(frozen=True)
class ComplianceExportResult:
    export: ComplianceExport
    records: list[SalaryChangeRecord]


@dataclass(frozen=True)
class _Applied:
    component: SalaryComponent
    previous_amount: Decimal | None
    previous_is_active: bool | None
    new_amount: Decimal | None
    new_is_active: bool


class SalaryLedger:
    """The single writer of SalaryComponent rows.

    Notes:
    - salary_change_record is append-only (ORM guards reject deletes and
      edits of decided records; this class exposes no update/delete).
    - A failed commit or decision writes nothing at all.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    # === Writes ===

    async def commit(
        self,
        mutations: Sequence[ComponentMutation],
        *,
        changed_by: str,
        effective_date: date,
        reason: str | None = None,
        notes: str | None = None,
        source: str = "direct",
        bulk_operation_id: UUID | None = None,
        on_commit: Callable[[AsyncSession], Awaitable[None]] | None = None,
    ) -> list[SalaryChangeRecord]:
        """Apply live mutations, each with its auto-approved record, atomically.

        `on_commit` runs inside the same transaction after the records are
        added; an exception from it rolls everything back.
        """
        if not mutations:
            return []
        records: list[SalaryChangeRecord] = []
        async with self.session_factory() as session, session.begin():
            for mutation in mutations:
                applied = await self._apply(session, mutation)
                record = SalaryChangeRecord(
                    change_record_id=uuid4(),
                    salary_component_id=applied.component.salary_component_id,
                    employee_id=mutation.employee_id,
                    component_name=applied.component.name,
                    component_kind=applied.component.kind,
                    action=mutation.action,
                    previous_amount=applied.previous_amount,
                    new_amount=applied.new_amount,
                    previous_is_active=applied.previous_is_active,
                    new_is_active=applied.new_is_active,
                    approval_status="auto_approved",
                    source=source,
                    changed_by=changed_by,
                    reason=reason,
                    notes=notes,
                    effective_date=effective_date,
                    decided_by=changed_by,
                    decided_at=utcnow(),
                    bulk_operation_id=bulk_operation_id,
                )
                session.add(record)
                records.append(record)
            if on_commit is not None:
                await session.flush()
                await on_commit(session)
        logger.debug("Committed %d salary mutation(s) from %s", len(records), source)
        return records

    async def append(
        self,
        entries: Sequence[ComponentMutation],
        *,
        changed_by: str,
        effective_date: date,
        reason: str | None = None,
        notes: str | None = None,
        source: str = "approval",
    ) -> list[SalaryChangeRecord]:
        """Record pending changes. No live component is touched."""
        if not entries:
            return []
        records: list[SalaryChangeRecord] = []
        async with self.session_factory() as session, session.begin():
            for entry in entries:
                previous_amount: Decimal | None = None
                previous_is_active: bool | None = None
                name = entry.component_name
                kind = entry.component_kind
                if entry.action != "delete":
                    self._check_amount(entry.new_amount)

                if entry.action == "create":
                    await self._require_employee(session, entry.employee_id)
                    if not name or not kind:
                        raise ValidationError("create requires component_name and component_kind")
                else:
                    component = await self._load_component(session, entry)
                    if not component.is_active:
                        raise ValidationError(
                            f"Salary component {component.salary_component_id} is inactive"
                        )
                    previous_amount = component.amount
                    previous_is_active = component.is_active
                    name = component.name
                    kind = component.kind

                record = SalaryChangeRecord(
                    change_record_id=uuid4(),
                    salary_component_id=entry.component_id,
                    employee_id=entry.employee_id,
                    component_name=name,
                    component_kind=kind,
                    action=entry.action,
                    previous_amount=previous_amount,
                    new_amount=entry.new_amount if entry.action != "delete" else None,
                    previous_is_active=previous_is_active,
                    new_is_active=entry.action != "delete",
                    approval_status="pending",
                    source=source,
                    changed_by=changed_by,
                    reason=reason,
                    notes=notes,
                    effective_date=effective_date,
                )
                session.add(record)
                records.append(record)
        return records

    async def decide(
        self,
        record_ids: Sequence[UUID],
        approve: bool,
        actor: str,
        notes: str | None = None,
    ) -> list[SalaryChangeRecord]:
        """Move pending records to approved (applying them) or rejected.

        All ids must exist and be pending, otherwise nothing changes.
        """
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            raise ValidationError("At least one record id is required")
        target = "approved" if approve else "rejected"

        async with self.session_factory() as session, session.begin():
            rows = (
                await session.execute(
                    select(SalaryChangeRecord)
                    .where(SalaryChangeRecord.change_record_id.in_(ids))
                    .order_by(SalaryChangeRecord.created_at)
                    .with_for_update()
                )
            ).scalars().all()
            by_id = {r.change_record_id: r for r in rows}

            for record_id in ids:
                if record_id not in by_id:
                    raise NotFoundError("Salary change record", record_id)
            for record in rows:
                if record.approval_status != "pending":
                    raise InvalidStateTransition(
                        record.approval_status,
                        target,
                        f"record {record.change_record_id} has already been decided",
                    )

            decided_at = utcnow()
            for record in rows:
                values: dict[str, object] = {
                    "approval_status": target,
                    "decided_by": actor,
                    "decided_at": decided_at,
                }
                if approve:
                    applied = await self._apply(
                        session,
                        ComponentMutation(
                            action=record.action,
                            employee_id=record.employee_id,
                            component_id=record.salary_component_id,
                            component_name=record.component_name,
                            component_kind=record.component_kind,
                            new_amount=record.new_amount,
                        ),
                    )
                    values.update(
                        salary_component_id=applied.component.salary_component_id,
                        previous_amount=applied.previous_amount,
                        previous_is_active=applied.previous_is_active,
                        decision_notes=notes,
                    )
                else:
                    values["rejection_reason"] = notes or "Rejected"

                result = await session.execute(
                    update(SalaryChangeRecord)
                    .where(
                        SalaryChangeRecord.change_record_id == record.change_record_id,
                        SalaryChangeRecord.approval_status == "pending",
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise ConcurrencyConflict(
                        f"Salary change record {record.change_record_id} was decided concurrently"
                    )

        logger.info("%s %d salary change record(s) by %s", target.capitalize(), len(ids), actor)
        return await self.get_records(ids)

    async def _apply(self, session: AsyncSession, mutation: ComponentMutation) -> _Applied:
        if mutation.action == "create":
            await self._require_employee(session, mutation.employee_id)
            if not mutation.component_name or not mutation.component_kind:
                raise ValidationError("create requires component_name and component_kind")
            self._check_amount(mutation.new_amount)
            component = SalaryComponent(
                salary_component_id=uuid4(),
                employee_id=mutation.employee_id,
                name=mutation.component_name,
                kind=mutation.component_kind,
                amount=mutation.new_amount,
                is_active=True,
            )
            session.add(component)
            await session.flush()
            return _Applied(component, None, None, mutation.new_amount, True)

        component = await self._load_component(session, mutation)
        if not component.is_active:
            raise ValidationError(
                f"Salary component {component.salary_component_id} is inactive"
            )
        if mutation.expected_amount is not None and component.amount != mutation.expected_amount:
            raise ConcurrencyConflict(
                f"Salary component {component.salary_component_id} changed from "
                f"{mutation.expected_amount} to {component.amount}"
            )
        previous_amount = component.amount

        if mutation.action == "update":
            self._check_amount(mutation.new_amount)
            component.amount = mutation.new_amount
            new_amount, new_is_active = mutation.new_amount, True
        elif mutation.action == "delete":
            component.is_active = False
            new_amount, new_is_active = None, False
        else:
            raise ValidationError(f"Unknown salary change action: {mutation.action!r}")

        await session.flush()
        return _Applied(component, previous_amount, True, new_amount, new_is_active)

    @staticmethod
    def _check_amount(amount: Decimal | None) -> None:
        if amount is None:
            raise ValidationError("new_amount is required")
        if amount < 0:
            raise ValidationError("Salary component amount cannot be negative")

    @staticmethod
    async def _require_employee(session: AsyncSession, employee_id: UUID) -> Employee:
        employee = await session.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    @staticmethod
    async def _load_component(
        session: AsyncSession, mutation: ComponentMutation
    ) -> SalaryComponent:
        if mutation.component_id is None:
            raise ValidationError(f"{mutation.action} requires component_id")
        component = (
            await session.execute(
                select(SalaryComponent)
                .where(SalaryComponent.salary_component_id == mutation.component_id)
                .with_for_update()
            )
        ).scalar_one_or_none()
        if component is None:
            raise NotFoundError("Salary component", mutation.component_id)
        if component.employee_id != mutation.employee_id:
            raise ValidationError(
                f"Salary component {mutation.component_id} does not belong to "
                f"employee {mutation.employee_id}"
            )
        return component

    # === Reads ===

    async def get_records(self, record_ids: Iterable[UUID]) -> list[SalaryChangeRecord]:
        ids = list(record_ids)
        async with self.session_factory() as session:
            rows = (
                await session.execute(
                    select(SalaryChangeRecord).where(SalaryChangeRecord.change_record_id.in_(ids))
                )
            ).scalars().all()
        order = {record_id: i for i, record_id in enumerate(ids)}
        return sorted(rows, key=lambda r: order[r.change_record_id])

    async def history(
        self, employee_id: UUID | None = None, filters: HistoryFilter | None = None
    ) -> list[SalaryChangeRecord]:
        """Change records, newest first."""
        f = filters or HistoryFilter()
        stmt = select(SalaryChangeRecord)
        if employee_id is not None:
            stmt = stmt.where(SalaryChangeRecord.employee_id == employee_id)
        if f.start_date is not None:
            stmt = stmt.where(SalaryChangeRecord.effective_date >= f.start_date)
        if f.end_date is not None:
            stmt = stmt.where(SalaryChangeRecord.effective_date <= f.end_date)
        if f.actions:
            stmt = stmt.where(SalaryChangeRecord.action.in_(list(f.actions)))
        if f.approval_statuses:
            stmt = stmt.where(SalaryChangeRecord.approval_status.in_(list(f.approval_statuses)))
        if f.component_kind is not None:
            stmt = stmt.where(SalaryChangeRecord.component_kind == f.component_kind)
        if f.changed_by is not None:
            stmt = stmt.where(SalaryChangeRecord.changed_by == f.changed_by)
        stmt = (
            stmt.order_by(
                SalaryChangeRecord.created_at.desc(), SalaryChangeRecord.change_record_id
            )
            .limit(f.limit)
            .offset(f.offset)
        )
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def records_for_operation(self, bulk_operation_id: UUID) -> list[SalaryChangeRecord]:
        """Committed records written by one bulk operation, oldest first."""
        stmt = (
            select(SalaryChangeRecord)
            .where(
                SalaryChangeRecord.bulk_operation_id == bulk_operation_id,
                SalaryChangeRecord.approval_status.in_(COMMITTED_STATUSES),
            )
            .order_by(SalaryChangeRecord.created_at)
        )
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def list_pending(
        self,
        employee_ids: Sequence[UUID] | None = None,
        requested_by: str | None = None,
        limit: int = 100,
    ) -> list[SalaryChangeRecord]:
        """Pending records, oldest first."""
        stmt = select(SalaryChangeRecord).where(SalaryChangeRecord.approval_status == "pending")
        if employee_ids:
            stmt = stmt.where(SalaryChangeRecord.employee_id.in_(list(employee_ids)))
        if requested_by is not None:
            stmt = stmt.where(SalaryChangeRecord.changed_by == requested_by)
        stmt = stmt.order_by(SalaryChangeRecord.created_at).limit(limit)
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def export_for_compliance(
        self,
        start: date,
        end: date,
        employee_ids: Sequence[UUID] | None = None,
        requested_by: str = "system",
    ) -> ComplianceExportResult:
        """Every record effective within [start, end], plus an export audit row."""
        if end < start:
            raise ValidationError("Export end date must not be before start date")

        stmt = select(SalaryChangeRecord).where(
            SalaryChangeRecord.effective_date >= start,
            SalaryChangeRecord.effective_date <= end,
        )
        if employee_ids:
            stmt = stmt.where(SalaryChangeRecord.employee_id.in_(list(employee_ids)))
        stmt = stmt.order_by(
            SalaryChangeRecord.employee_id, SalaryChangeRecord.created_at.desc()
        )

        async with self.session_factory() as session, session.begin():
            records = list((await session.execute(stmt)).scalars().all())
            export = ComplianceExport(
                compliance_export_id=uuid4(),
                period_start=start,
                period_end=end,
                employee_ids=[str(i) for i in employee_ids] if employee_ids else None,
                record_count=len(records),
                employee_count=len({r.employee_id for r in records}),
                requested_by=requested_by,
                generated_at=utcnow(),
            )
            session.add(export)

        logger.info(
            "Compliance export %s: %d record(s) for %s..%s requested by %s",
            export.compliance_export_id,
            export.record_count,
            start,
            end,
            requested_by,
        )
        return ComplianceExportResult(export=export, records=records)

    async def salary_comparison(
        self, employee_id: UUID, from_date: date, to_date: date
    ) -> SalaryComparison:
        """Current salary against the salary before the changes effective in the window.

        The earlier snapshot is reconstructed by undoing every committed
        change effective within [from_date, to_date], per component kind.
        """
        if to_date < from_date:
            raise ValidationError("to_date must not be before from_date")

        async with self.session_factory() as session:
            await self._require_employee(session, employee_id)
            components = (
                await session.execute(
                    select(SalaryComponent).where(
                        SalaryComponent.employee_id == employee_id,
                        SalaryComponent.is_active.is_(True),
                    )
                )
            ).scalars().all()
            changes = list(
                (
                    await session.execute(
                        select(SalaryChangeRecord)
                        .where(
                            SalaryChangeRecord.employee_id == employee_id,
                            SalaryChangeRecord.approval_status.in_(COMMITTED_STATUSES),
                            SalaryChangeRecord.effective_date >= from_date,
                            SalaryChangeRecord.effective_date <= to_date,
                        )
                        .order_by(SalaryChangeRecord.created_at)
                    )
                ).scalars().all()
            )

        current = SalarySnapshot()
        for c in components:
            if c.kind == "basic_salary":
                current.basic += c.amount
            else:
                current.allowances += c.amount

        basic_delta = allowance_delta = ZERO
        for change in changes:
            before = change.previous_amount if change.previous_is_active else None
            after = change.new_amount if change.new_is_active else None
            delta = (after or ZERO) - (before or ZERO)
            if change.component_kind == "basic_salary":
                basic_delta += delta
            else:
                allowance_delta += delta

        earlier = SalarySnapshot(
            basic=max(ZERO, current.basic - basic_delta),
            allowances=max(ZERO, current.allowances - allowance_delta),
        )
        return SalaryComparison(
            employee_id=employee_id,
            from_date=from_date,
            to_date=to_date,
            from_salary=earlier,
            to_salary=current,
            changes=changes,
        )
