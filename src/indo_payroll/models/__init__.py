"""SQLAlchemy ORM models."""

from indo_payroll.models.base import Base
from indo_payroll.models.employee import Employee, SalaryComponent
from indo_payroll.models.master_data import Department, Position
from indo_payroll.models.payroll import PayrollLineItem, PayrollPeriod, VariableInput
from indo_payroll.models.salary import (
    BulkOperation,
    BulkOperationItem,
    ComplianceExport,
    SalaryChangeRecord,
)

__all__ = [
    "Base",
    "BulkOperation",
    "BulkOperationItem",
    "ComplianceExport",
    "Department",
    "Employee",
    "PayrollLineItem",
    "PayrollPeriod",
    "Position",
    "SalaryChangeRecord",
    "SalaryComponent",
    "VariableInput",
]
