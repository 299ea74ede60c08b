"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from indo_payroll.inputs import AdjustmentRule, CohortSelector, VariableInputs


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Errors
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None


# ============================================================================
# Payroll period schemas
# ============================================================================


class PeriodCreate(BaseModel):
    month: int
    year: int


class PeriodResponse(ORMModel):
    period_id: UUID
    month: int
    year: int
    status: str
    calculated_at: datetime | None = None
    calculated_by: str | None = None
    finalized_at: datetime | None = None
    finalized_by: str | None = None
    employee_count: int
    total_gross: Decimal
    total_pph21: Decimal
    total_employee_contributions: Decimal
    total_employer_contributions: Decimal
    total_other_deductions: Decimal
    total_net: Decimal
    created_at: datetime


class PeriodListResponse(BaseModel):
    items: list[PeriodResponse]
    total: int


class LineItemResponse(ORMModel):
    """Stored calculation snapshot for one employee."""

    calculation_id: UUID
    period_id: UUID
    employee_id: UUID
    employee_number: str
    employee_name: str
    tax_status: str

    basic_salary: Decimal
    fixed_allowances: Decimal
    bonus: Decimal
    overtime_pay: Decimal
    other_allowances: Decimal
    other_deductions: Decimal
    gross_salary: Decimal

    bpjs_health_employee: Decimal
    bpjs_jht_employee: Decimal
    bpjs_jp_employee: Decimal
    bpjs_health_employer: Decimal
    bpjs_jht_employer: Decimal
    bpjs_jp_employer: Decimal
    bpjs_jkk_employer: Decimal
    bpjs_jkm_employer: Decimal

    occupational_cost: Decimal
    ptkp_amount: Decimal
    taxable_income_annual: Decimal
    pph21_annual: Decimal
    pph21_monthly: Decimal

    total_employee_contributions: Decimal
    total_employer_contributions: Decimal
    total_deductions: Decimal
    net_salary: Decimal

    inputs_fingerprint: str
    regulation_fingerprint: str
    engine_version: str


class WarningResponse(BaseModel):
    kind: str
    message: str
    employee_id: UUID | None = None


class CalculateRequest(BaseModel):
    """Variable inputs keyed by employee id; stored inputs fill the gaps."""

    variable_inputs: dict[UUID, VariableInputs] = Field(default_factory=dict)
    actor: str | None = None


class TotalsResponse(BaseModel):
    employee_count: int
    total_gross: Decimal
    total_pph21: Decimal
    total_employee_contributions: Decimal
    total_employer_contributions: Decimal
    total_other_deductions: Decimal
    total_net: Decimal


class CalculationResponse(BaseModel):
    period_id: UUID
    totals: TotalsResponse
    items: list[LineItemResponse]
    warnings: list[WarningResponse]


class FinalizeRequest(BaseModel):
    actor: str | None = None
    acknowledge_warnings: bool = False


class ValidationResponse(BaseModel):
    period_id: UUID
    is_valid: bool
    issues: list[WarningResponse]


class StatisticsResponse(BaseModel):
    total_periods: int
    by_status: dict[str, int]
    year: int
    finalized_net_total: Decimal


class VariableInputsRequest(BaseModel):
    inputs: dict[UUID, VariableInputs]


class VariableInputsResponse(BaseModel):
    period_id: UUID
    inputs: dict[UUID, VariableInputs]


# ============================================================================
# Bulk operation schemas
# ============================================================================


class BulkPreviewRequest(BaseModel):
    selector: CohortSelector
    rule: AdjustmentRule


class PlannedChangeResponse(ORMModel):
    component_id: UUID
    name: str
    kind: str
    current_amount: Decimal
    planned_amount: Decimal


class BulkPreviewItemResponse(ORMModel):
    employee_id: UUID
    employee_number: str
    full_name: str
    current_total: Decimal
    planned_total: Decimal
    difference: Decimal
    changes: list[PlannedChangeResponse]
    error: str | None = None


class BulkPreviewResponse(ORMModel):
    employee_count: int
    error_count: int
    total_current: Decimal
    total_planned: Decimal
    items: list[BulkPreviewItemResponse]


class BulkOperationCreate(BaseModel):
    name: str
    description: str | None = None
    selector: CohortSelector
    rule: AdjustmentRule
    effective_date: date
    reason: str | None = None
    created_by: str


class BulkItemResponse(ORMModel):
    employee_id: UUID
    status: str
    current_total: Decimal
    planned_total: Decimal
    applied_total: Decimal | None = None
    error_message: str | None = None


class BulkOperationResponse(ORMModel):
    bulk_operation_id: UUID
    name: str
    description: str | None = None
    selector: dict[str, Any]
    rule: dict[str, Any]
    status: str
    cancel_requested: bool
    effective_date: date
    reason: str | None = None
    created_by: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    total_items: int
    applied_count: int
    failed_count: int
    error_message: str | None = None
    rollback_of: UUID | None = None
    created_at: datetime


class BulkOperationDetailResponse(BulkOperationResponse):
    items: list[BulkItemResponse]


class BulkResultItemResponse(ORMModel):
    employee_id: UUID
    status: str
    current_total: Decimal
    planned_total: Decimal
    applied_total: Decimal | None = None
    error: str | None = None


class BulkExecutionResponse(ORMModel):
    operation_id: UUID
    status: str
    total: int
    applied_count: int
    failed_count: int
    pending_count: int
    items: list[BulkResultItemResponse]


class RollbackRequest(BaseModel):
    actor: str
    reason: str


# ============================================================================
# Salary schemas
# ============================================================================


class SalaryComponentResponse(ORMModel):
    salary_component_id: UUID
    employee_id: UUID
    name: str
    kind: str
    amount: Decimal
    is_active: bool


class SalaryComponentCreate(BaseModel):
    name: str
    kind: str
    amount: Decimal = Field(ge=0)
    actor: str
    effective_date: date | None = None
    reason: str | None = None


class SalaryComponentUpdate(BaseModel):
    amount: Decimal = Field(ge=0)
    actor: str
    effective_date: date | None = None
    reason: str | None = None


class SalaryChangeRecordResponse(ORMModel):
    change_record_id: UUID
    salary_component_id: UUID | None = None
    employee_id: UUID
    component_name: str
    component_kind: str
    action: str
    previous_amount: Decimal | None = None
    new_amount: Decimal | None = None
    previous_is_active: bool | None = None
    new_is_active: bool | None = None
    approval_status: str
    source: str
    changed_by: str
    reason: str | None = None
    notes: str | None = None
    effective_date: date
    decided_by: str | None = None
    decided_at: datetime | None = None
    rejection_reason: str | None = None
    decision_notes: str | None = None
    bulk_operation_id: UUID | None = None
    created_at: datetime


class DecisionRequest(BaseModel):
    record_ids: list[UUID] = Field(min_length=1)
    approve: bool
    actor: str
    notes: str | None = None


class SalarySnapshotResponse(ORMModel):
    basic: Decimal
    allowances: Decimal
    gross: Decimal


class SalaryComparisonResponse(ORMModel):
    employee_id: UUID
    from_date: date
    to_date: date
    from_salary: SalarySnapshotResponse
    to_salary: SalarySnapshotResponse
    difference: Decimal
    changes: list[SalaryChangeRecordResponse]


class ComplianceExportRequest(BaseModel):
    start: date
    end: date
    employee_ids: list[UUID] | None = None
    requested_by: str


class ComplianceExportResponse(BaseModel):
    compliance_export_id: UUID
    period_start: date
    period_end: date
    record_count: int
    employee_count: int
    requested_by: str
    generated_at: datetime
    records: list[SalaryChangeRecordResponse]
