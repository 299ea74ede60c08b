"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from indo_payroll.services.approval_service import ApprovalService
from indo_payroll.services.bulk_operation_service import BulkOperationService
from indo_payroll.services.container import ServiceContainer
from indo_payroll.services.ledger import SalaryLedger
from indo_payroll.services.payroll_service import PayrollService
from indo_payroll.services.salary_service import SalaryComponentService
from indo_payroll.services.variable_inputs import VariableInputStore


def get_container(request: Request) -> ServiceContainer:
    """Container built by the application lifespan."""
    return request.app.state.container


Container = Annotated[ServiceContainer, Depends(get_container)]


def get_payroll_service(container: Container) -> PayrollService:
    return container.payroll


def get_variable_input_store(container: Container) -> VariableInputStore:
    return container.variable_inputs


def get_bulk_service(container: Container) -> BulkOperationService:
    return container.bulk


def get_salary_service(container: Container) -> SalaryComponentService:
    return container.salary


def get_approval_service(container: Container) -> ApprovalService:
    return container.approvals


def get_ledger(container: Container) -> SalaryLedger:
    return container.ledger


# Type aliases for cleaner dependency injection
Payroll = Annotated[PayrollService, Depends(get_payroll_service)]
VariableInputsStore = Annotated[VariableInputStore, Depends(get_variable_input_store)]
BulkOperations = Annotated[BulkOperationService, Depends(get_bulk_service)]
SalaryComponents = Annotated[SalaryComponentService, Depends(get_salary_service)]
Approvals = Annotated[ApprovalService, Depends(get_approval_service)]
Ledger = Annotated[SalaryLedger, Depends(get_ledger)]
