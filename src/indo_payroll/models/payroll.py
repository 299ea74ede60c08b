"""Payroll period, line item and variable input models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from indo_payroll.models.base import Base, TimestampMixin, utcnow

AMOUNT = Numeric(18, 2)


class PayrollPeriod(Base, TimestampMixin):
    """Monthly payroll period.

    Status machine: draft -> calculated -> calculated -> finalized.
    lock_token is set while a calculation run holds the period.
    """

    __tablename__ = "payroll_period"

    period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    lock_token: Mapped[UUID | None] = mapped_column(nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    locked_by: Mapped[str | None] = mapped_column(String, nullable=True)

    calculated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    calculated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_by: Mapped[str | None] = mapped_column(String, nullable=True)

    # Totals (meaningful from 'calculated' on)
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_gross: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False, default=Decimal("0"))
    total_pph21: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False, default=Decimal("0"))
    total_employee_contributions: Mapped[Decimal] = mapped_column(
        AMOUNT, nullable=False, default=Decimal("0")
    )
    total_employer_contributions: Mapped[Decimal] = mapped_column(
        AMOUNT, nullable=False, default=Decimal("0")
    )
    total_other_deductions: Mapped[Decimal] = mapped_column(
        AMOUNT, nullable=False, default=Decimal("0")
    )
    total_net: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False, default=Decimal("0"))

    __table_args__ = (
        UniqueConstraint("month", "year", name="payroll_period_month_year_unique"),
        CheckConstraint("month BETWEEN 1 AND 12", name="payroll_period_month_check"),
        CheckConstraint("year BETWEEN 2000 AND 2100", name="payroll_period_year_check"),
        CheckConstraint(
            "status IN ('draft', 'calculated', 'finalized')",
            name="payroll_period_status_check",
        ),
    )

    # Relationships
    line_items: Mapped[list[PayrollLineItem]] = relationship(
        back_populates="period", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def period_label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


class PayrollLineItem(Base):
    """Immutable calculation snapshot for one (period, employee).

    Keyed by the deterministic calculation_id; replaced only as a full set.
    """

    __tablename__ = "payroll_line_item"

    calculation_id: Mapped[UUID] = mapped_column(primary_key=True)
    period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.period_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    employee_number: Mapped[str] = mapped_column(String, nullable=False)
    employee_name: Mapped[str] = mapped_column(String, nullable=False)
    tax_status: Mapped[str] = mapped_column(String, nullable=False)

    basic_salary: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    fixed_allowances: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    bonus: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    overtime_pay: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    other_allowances: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    gross_salary: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)

    bpjs_health_employee: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    bpjs_jht_employee: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    bpjs_jp_employee: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    bpjs_health_employer: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    bpjs_jht_employer: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    bpjs_jp_employer: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    bpjs_jkk_employer: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    bpjs_jkm_employer: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)

    occupational_cost: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    ptkp_amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    taxable_income_annual: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    pph21_annual: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    pph21_monthly: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)

    total_employee_contributions: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    total_employer_contributions: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)

    # Traceability
    inputs_fingerprint: Mapped[str] = mapped_column(String, nullable=False)
    regulation_fingerprint: Mapped[str] = mapped_column(String, nullable=False)
    engine_version: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("period_id", "employee_id", name="payroll_line_item_period_employee_unique"),
        CheckConstraint("gross_salary >= 0", name="payroll_line_item_gross_check"),
        CheckConstraint(
            "net_salary = gross_salary - pph21_monthly - total_employee_contributions"
            " - other_deductions",
            name="payroll_line_item_net_check",
        ),
    )

    # Relationships
    period: Mapped[PayrollPeriod] = relationship(back_populates="line_items")


class VariableInput(Base):
    """Per-period variable amounts for one employee, held until calculation."""

    __tablename__ = "variable_input"

    variable_input_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.period_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    bonus: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False, default=Decimal("0"))
    overtime_pay: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False, default=Decimal("0"))
    other_allowances: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False, default=Decimal("0"))
    other_deductions: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False, default=Decimal("0"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("period_id", "employee_id", name="variable_input_period_employee_unique"),
        CheckConstraint(
            "bonus >= 0 AND overtime_pay >= 0 AND other_allowances >= 0"
            " AND other_deductions >= 0",
            name="variable_input_non_negative_check",
        ),
    )
