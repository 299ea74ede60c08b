"""Salary change ledger, bulk operation and compliance export models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
    inspect,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from indo_payroll.errors import LedgerImmutableError
from indo_payroll.models.base import Base, TimestampMixin

AMOUNT = Numeric(18, 2)


class SalaryChangeRecord(Base, TimestampMixin):
    """Append-only record of one salary component mutation.

    A record is mutable only while pending (decision fields are filled in
    once). Approved, rejected and auto-approved records never change and no
    record is ever deleted.
    """

    __tablename__ = "salary_change_record"

    change_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    salary_component_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("salary_component.salary_component_id", ondelete="RESTRICT"),
        nullable=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    component_name: Mapped[str] = mapped_column(String, nullable=False)
    component_kind: Mapped[str] = mapped_column(String, nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)

    previous_amount: Mapped[Decimal | None] = mapped_column(AMOUNT, nullable=True)
    new_amount: Mapped[Decimal | None] = mapped_column(AMOUNT, nullable=True)
    previous_is_active: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    new_is_active: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    approval_status: Mapped[str] = mapped_column(String, nullable=False)
    source: Mapped[str] = mapped_column(String, nullable=False, default="direct")
    changed_by: Mapped[str] = mapped_column(String, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)

    decided_by: Mapped[str | None] = mapped_column(String, nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    decision_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    bulk_operation_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("bulk_operation.bulk_operation_id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    __table_args__ = (
        CheckConstraint(
            "action IN ('create', 'update', 'delete')",
            name="salary_change_record_action_check",
        ),
        CheckConstraint(
            "approval_status IN ('pending', 'approved', 'rejected', 'auto_approved')",
            name="salary_change_record_approval_check",
        ),
        CheckConstraint(
            "source IN ('direct', 'bulk', 'approval', 'rollback')",
            name="salary_change_record_source_check",
        ),
        CheckConstraint(
            "component_kind IN ('basic_salary', 'fixed_allowance')",
            name="salary_change_record_kind_check",
        ),
        CheckConstraint(
            "(previous_amount IS NULL OR previous_amount >= 0)"
            " AND (new_amount IS NULL OR new_amount >= 0)",
            name="salary_change_record_amount_check",
        ),
    )


@event.listens_for(SalaryChangeRecord, "before_delete")
def _reject_ledger_delete(mapper: Any, connection: Any, target: SalaryChangeRecord) -> None:
    raise LedgerImmutableError(
        f"Salary change record {target.change_record_id} cannot be deleted"
    )


@event.listens_for(SalaryChangeRecord, "before_update")
def _reject_decided_update(mapper: Any, connection: Any, target: SalaryChangeRecord) -> None:
    history = inspect(target).attrs.approval_status.history
    previous = history.deleted[0] if history.deleted else target.approval_status
    if previous != "pending":
        raise LedgerImmutableError(
            f"Salary change record {target.change_record_id} is '{previous}' and immutable"
        )


class BulkOperation(Base, TimestampMixin):
    """A named salary adjustment over a cohort of employees."""

    __tablename__ = "bulk_operation"

    bulk_operation_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    selector: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    rule: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    cancel_requested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    applied_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    rollback_of: Mapped[UUID | None] = mapped_column(
        ForeignKey("bulk_operation.bulk_operation_id", ondelete="RESTRICT"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'partially_completed',"
            " 'failed', 'cancelled', 'rolled_back')",
            name="bulk_operation_status_check",
        ),
    )

    # Relationships
    items: Mapped[list[BulkOperationItem]] = relationship(
        back_populates="operation",
        cascade="all, delete-orphan",
        order_by="BulkOperationItem.employee_id",
    )


class BulkOperationItem(Base):
    """One employee within a bulk operation."""

    __tablename__ = "bulk_operation_item"

    bulk_operation_item_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    bulk_operation_id: Mapped[UUID] = mapped_column(
        ForeignKey("bulk_operation.bulk_operation_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    current_total: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    planned_total: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    applied_total: Mapped[Decimal | None] = mapped_column(AMOUNT, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "bulk_operation_id", "employee_id", name="bulk_operation_item_employee_unique"
        ),
        CheckConstraint(
            "status IN ('pending', 'applied', 'failed')",
            name="bulk_operation_item_status_check",
        ),
    )

    # Relationships
    operation: Mapped[BulkOperation] = relationship(back_populates="items")


class ComplianceExport(Base):
    """Audit row written every time salary history is exported."""

    __tablename__ = "compliance_export"

    compliance_export_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    employee_ids: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    record_count: Mapped[int] = mapped_column(Integer, nullable=False)
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False)
    requested_by: Mapped[str] = mapped_column(String, nullable=False)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("period_end >= period_start", name="compliance_export_dates_check"),
    )
