"""Bulk salary operation endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from indo_payroll.api.dependencies import BulkOperations
from indo_payroll.api.schemas import (
    BulkExecutionResponse,
    BulkOperationCreate,
    BulkOperationDetailResponse,
    BulkOperationResponse,
    BulkPreviewRequest,
    BulkPreviewResponse,
    ErrorResponse,
    RollbackRequest,
)
from indo_payroll.inputs import BulkOperationSpec

router = APIRouter(prefix="/bulk-operations", tags=["bulk-operations"])

OperationId = Annotated[UUID, Path()]


@router.post(
    "/preview",
    response_model=BulkPreviewResponse,
    responses={422: {"model": ErrorResponse}},
)
async def preview_bulk_operation(
    service: BulkOperations, payload: BulkPreviewRequest
) -> BulkPreviewResponse:
    """Before/after per employee. Nothing is written."""
    preview = await service.preview(payload.selector, payload.rule)
    return BulkPreviewResponse.model_validate(preview)


@router.post(
    "",
    response_model=BulkOperationDetailResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_bulk_operation(
    service: BulkOperations, payload: BulkOperationCreate
) -> BulkOperationDetailResponse:
    spec = BulkOperationSpec(
        name=payload.name,
        description=payload.description,
        selector=payload.selector,
        rule=payload.rule,
        effective_date=payload.effective_date,
        reason=payload.reason,
    )
    operation = await service.create(spec, actor=payload.created_by)
    return BulkOperationDetailResponse.model_validate(operation)


@router.get("", response_model=list[BulkOperationResponse])
async def list_bulk_operations(
    service: BulkOperations,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> list[BulkOperationResponse]:
    operations = await service.list_operations(status=status_filter, limit=limit)
    return [BulkOperationResponse.model_validate(o) for o in operations]


@router.get(
    "/{operation_id}",
    response_model=BulkOperationDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_bulk_operation(
    service: BulkOperations, operation_id: OperationId
) -> BulkOperationDetailResponse:
    return BulkOperationDetailResponse.model_validate(await service.get(operation_id))


@router.post(
    "/{operation_id}/execute",
    response_model=BulkExecutionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def execute_bulk_operation(
    service: BulkOperations, operation_id: OperationId
) -> BulkExecutionResponse:
    """Run the operation to completion. Item failures are reported, not raised."""
    result = await service.execute(operation_id)
    return BulkExecutionResponse.model_validate(result)


@router.post(
    "/{operation_id}/cancel",
    response_model=BulkOperationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_bulk_operation(
    service: BulkOperations, operation_id: OperationId
) -> BulkOperationResponse:
    return BulkOperationResponse.model_validate(await service.cancel(operation_id))


@router.post(
    "/{operation_id}/rollback",
    response_model=BulkExecutionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def rollback_bulk_operation(
    service: BulkOperations, operation_id: OperationId, payload: RollbackRequest
) -> BulkExecutionResponse:
    """Restore the amounts in force before the operation ran."""
    result = await service.rollback(operation_id, actor=payload.actor, reason=payload.reason)
    return BulkExecutionResponse.model_validate(result)
