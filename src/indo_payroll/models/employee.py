"""Employee and recurring salary component models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from indo_payroll.models.base import Base, TimestampMixin, utcnow

if TYPE_CHECKING:
    from indo_payroll.models.master_data import Department, Position


class Employee(Base, TimestampMixin):
    """Employee as supplied by the HR system."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_number: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("department.department_id", ondelete="SET NULL"),
        nullable=True,
    )
    position_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("position.position_id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    tax_status: Mapped[str] = mapped_column(String, nullable=False, default="TK/0")
    bpjs_health_enrolled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    bpjs_employment_enrolled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'resigned', 'terminated')",
            name="employee_status_check",
        ),
        CheckConstraint(
            "tax_status IN ('TK/0', 'TK/1', 'TK/2', 'TK/3', 'K/0', 'K/1', 'K/2', 'K/3')",
            name="employee_tax_status_check",
        ),
    )

    # Relationships
    department: Mapped[Department | None] = relationship()
    position: Mapped[Position | None] = relationship()
    salary_components: Mapped[list[SalaryComponent]] = relationship(
        back_populates="employee"
    )


class SalaryComponent(Base, TimestampMixin):
    """Recurring monthly salary component.

    Written only through the salary ledger so every change leaves a record.
    Components are deactivated, never deleted.
    """

    __tablename__ = "salary_component"

    salary_component_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "kind IN ('basic_salary', 'fixed_allowance')",
            name="salary_component_kind_check",
        ),
        CheckConstraint("amount >= 0", name="salary_component_amount_check"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="salary_components")
