"""Salary component, approval and history endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from indo_payroll.api.dependencies import Approvals, Ledger, SalaryComponents
from indo_payroll.api.schemas import (
    ComplianceExportRequest,
    ComplianceExportResponse,
    DecisionRequest,
    ErrorResponse,
    SalaryChangeRecordResponse,
    SalaryComparisonResponse,
    SalaryComponentCreate,
    SalaryComponentResponse,
    SalaryComponentUpdate,
)
from indo_payroll.inputs import SalaryChangeProposal
from indo_payroll.services.ledger import HistoryFilter

router = APIRouter(tags=["salary"])

EmployeeId = Annotated[UUID, Path()]
ComponentId = Annotated[UUID, Path()]


# ============================================================================
# Components (direct edits)
# ============================================================================


@router.get(
    "/employees/{employee_id}/components",
    response_model=list[SalaryComponentResponse],
)
async def list_components(
    service: SalaryComponents,
    employee_id: EmployeeId,
    include_inactive: bool = False,
) -> list[SalaryComponentResponse]:
    components = await service.list_components(employee_id, include_inactive=include_inactive)
    return [SalaryComponentResponse.model_validate(c) for c in components]


@router.post(
    "/employees/{employee_id}/components",
    response_model=SalaryComponentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_component(
    service: SalaryComponents,
    employee_id: EmployeeId,
    payload: SalaryComponentCreate,
) -> SalaryComponentResponse:
    component = await service.create_component(
        employee_id,
        name=payload.name,
        kind=payload.kind,
        amount=payload.amount,
        actor=payload.actor,
        effective_date=payload.effective_date,
        reason=payload.reason,
    )
    return SalaryComponentResponse.model_validate(component)


@router.put(
    "/components/{component_id}",
    response_model=SalaryComponentResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_component(
    service: SalaryComponents,
    component_id: ComponentId,
    payload: SalaryComponentUpdate,
) -> SalaryComponentResponse:
    component = await service.update_component(
        component_id,
        amount=payload.amount,
        actor=payload.actor,
        effective_date=payload.effective_date,
        reason=payload.reason,
    )
    return SalaryComponentResponse.model_validate(component)


@router.delete(
    "/components/{component_id}",
    response_model=SalaryComponentResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def deactivate_component(
    service: SalaryComponents,
    component_id: ComponentId,
    actor: str,
    reason: str | None = None,
) -> SalaryComponentResponse:
    """Deactivate a component. Its history is kept."""
    component = await service.deactivate_component(component_id, actor=actor, reason=reason)
    return SalaryComponentResponse.model_validate(component)


# ============================================================================
# Approval workflow
# ============================================================================


@router.post(
    "/salary-changes",
    response_model=list[SalaryChangeRecordResponse],
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def propose_salary_change(
    service: Approvals,
    payload: SalaryChangeProposal,
    actor: str,
) -> list[SalaryChangeRecordResponse]:
    """Record pending changes. Live salary data is untouched until approval."""
    records = await service.propose(payload, actor=actor)
    return [SalaryChangeRecordResponse.model_validate(r) for r in records]


@router.get("/salary-changes/pending", response_model=list[SalaryChangeRecordResponse])
async def list_pending_changes(
    service: Approvals,
    employee_id: Annotated[list[UUID] | None, Query()] = None,
    requested_by: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> list[SalaryChangeRecordResponse]:
    records = await service.list_pending(employee_id, requested_by, limit)
    return [SalaryChangeRecordResponse.model_validate(r) for r in records]


@router.post(
    "/salary-changes/decisions",
    response_model=list[SalaryChangeRecordResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def decide_salary_change(
    service: Approvals, payload: DecisionRequest
) -> list[SalaryChangeRecordResponse]:
    """Approve or reject pending records, all or nothing."""
    records = await service.decide(
        payload.record_ids, approve=payload.approve, actor=payload.actor, notes=payload.notes
    )
    return [SalaryChangeRecordResponse.model_validate(r) for r in records]


# ============================================================================
# History
# ============================================================================


@router.get(
    "/employees/{employee_id}/salary-history",
    response_model=list[SalaryChangeRecordResponse],
)
async def salary_history(
    ledger: Ledger,
    employee_id: EmployeeId,
    start_date: date | None = None,
    end_date: date | None = None,
    action: Annotated[list[str] | None, Query()] = None,
    approval_status: Annotated[list[str] | None, Query()] = None,
    component_kind: str | None = None,
    changed_by: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[SalaryChangeRecordResponse]:
    records = await ledger.history(
        employee_id,
        HistoryFilter(
            start_date=start_date,
            end_date=end_date,
            actions=action,
            approval_statuses=approval_status,
            component_kind=component_kind,
            changed_by=changed_by,
            limit=limit,
            offset=offset,
        ),
    )
    return [SalaryChangeRecordResponse.model_validate(r) for r in records]


@router.get(
    "/employees/{employee_id}/salary-comparison",
    response_model=SalaryComparisonResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def salary_comparison(
    ledger: Ledger,
    employee_id: EmployeeId,
    from_date: date,
    to_date: date,
) -> SalaryComparisonResponse:
    comparison = await ledger.salary_comparison(employee_id, from_date, to_date)
    return SalaryComparisonResponse.model_validate(comparison)


@router.post(
    "/compliance-exports",
    response_model=ComplianceExportResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def export_for_compliance(
    ledger: Ledger, payload: ComplianceExportRequest
) -> ComplianceExportResponse:
    """Every change effective in the window, plus an audit row for the export."""
    result = await ledger.export_for_compliance(
        payload.start,
        payload.end,
        employee_ids=payload.employee_ids,
        requested_by=payload.requested_by,
    )
    export = result.export
    return ComplianceExportResponse(
        compliance_export_id=export.compliance_export_id,
        period_start=export.period_start,
        period_end=export.period_end,
        record_count=export.record_count,
        employee_count=export.employee_count,
        requested_by=export.requested_by,
        generated_at=export.generated_at,
        records=[SalaryChangeRecordResponse.model_validate(r) for r in result.records],
    )
