"""Payroll period endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from indo_payroll.api.dependencies import Payroll, VariableInputsStore
from indo_payroll.api.schemas import (
    CalculateRequest,
    CalculationResponse,
    ErrorResponse,
    FinalizeRequest,
    LineItemResponse,
    PeriodCreate,
    PeriodListResponse,
    PeriodResponse,
    StatisticsResponse,
    TotalsResponse,
    ValidationResponse,
    VariableInputsRequest,
    VariableInputsResponse,
    WarningResponse,
)
from indo_payroll.calculators.types import VariableAmounts
from indo_payroll.inputs import VariableInputs

router = APIRouter(prefix="/periods", tags=["periods"])

PeriodId = Annotated[UUID, Path()]


def _to_inputs(amounts: dict[UUID, VariableAmounts]) -> dict[UUID, VariableInputs]:
    return {
        employee_id: VariableInputs(
            bonus=a.bonus,
            overtime_pay=a.overtime_pay,
            other_allowances=a.other_allowances,
            other_deductions=a.other_deductions,
        )
        for employee_id, a in amounts.items()
    }


# ============================================================================
# Period CRUD
# ============================================================================


@router.post(
    "",
    response_model=PeriodResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_period(service: Payroll, payload: PeriodCreate) -> PeriodResponse:
    """Open a draft period for a month."""
    period = await service.create_period(payload.month, payload.year)
    return PeriodResponse.model_validate(period)


@router.get("", response_model=PeriodListResponse)
async def list_periods(
    service: Payroll,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    year: int | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> PeriodListResponse:
    periods = await service.list_periods(status=status_filter, year=year, limit=limit)
    return PeriodListResponse(
        items=[PeriodResponse.model_validate(p) for p in periods],
        total=len(periods),
    )


@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(service: Payroll, year: int | None = None) -> StatisticsResponse:
    stats = await service.get_statistics(year)
    return StatisticsResponse(
        total_periods=stats.total_periods,
        by_status=stats.by_status,
        year=stats.year,
        finalized_net_total=stats.finalized_net_total,
    )


@router.get(
    "/{period_id}",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_period(service: Payroll, period_id: PeriodId) -> PeriodResponse:
    return PeriodResponse.model_validate(await service.get_period(period_id))


@router.delete(
    "/{period_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_period(service: Payroll, period_id: PeriodId) -> Response:
    """Delete a draft period."""
    await service.delete_period(period_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{period_id}/line-items",
    response_model=list[LineItemResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_line_items(service: Payroll, period_id: PeriodId) -> list[LineItemResponse]:
    items = await service.list_line_items(period_id)
    return [LineItemResponse.model_validate(i) for i in items]


# ============================================================================
# Variable inputs
# ============================================================================


@router.get(
    "/{period_id}/variable-inputs",
    response_model=VariableInputsResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_variable_inputs(
    store: VariableInputsStore, period_id: PeriodId
) -> VariableInputsResponse:
    amounts = await store.get(period_id)
    return VariableInputsResponse(period_id=period_id, inputs=_to_inputs(amounts))


@router.put(
    "/{period_id}/variable-inputs",
    response_model=VariableInputsResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def set_variable_inputs(
    store: VariableInputsStore,
    period_id: PeriodId,
    payload: VariableInputsRequest,
) -> VariableInputsResponse:
    """Store bonus, overtime and deduction inputs ahead of calculation."""
    amounts = await store.set(period_id, payload.inputs)
    return VariableInputsResponse(period_id=period_id, inputs=_to_inputs(amounts))


# ============================================================================
# Lifecycle
# ============================================================================


@router.post(
    "/{period_id}/calculate",
    response_model=CalculationResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def calculate_period(
    service: Payroll,
    period_id: PeriodId,
    payload: CalculateRequest | None = None,
) -> CalculationResponse:
    """Calculate every active employee and replace the period's line items."""
    payload = payload or CalculateRequest()
    result = await service.calculate(
        period_id, variable_inputs=payload.variable_inputs, actor=payload.actor
    )
    return CalculationResponse(
        period_id=result.period_id,
        totals=TotalsResponse(**result.totals.to_dict()),
        items=[LineItemResponse.model_validate(i, from_attributes=True) for i in result.items],
        warnings=[WarningResponse(**w.to_dict()) for w in result.warnings],
    )


@router.post(
    "/{period_id}/finalize",
    response_model=PeriodResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def finalize_period(
    service: Payroll,
    period_id: PeriodId,
    payload: FinalizeRequest | None = None,
) -> PeriodResponse:
    """Freeze a calculated period."""
    payload = payload or FinalizeRequest()
    period = await service.finalize(
        period_id, actor=payload.actor, acknowledge_warnings=payload.acknowledge_warnings
    )
    return PeriodResponse.model_validate(period)


@router.get(
    "/{period_id}/validation",
    response_model=ValidationResponse,
    responses={404: {"model": ErrorResponse}},
)
async def validate_period(service: Payroll, period_id: PeriodId) -> ValidationResponse:
    result = await service.validate_period(period_id)
    return ValidationResponse(
        period_id=result.period_id,
        is_valid=result.is_valid,
        issues=[WarningResponse(**w.to_dict()) for w in result.issues],
    )
