"""Error kinds raised by the payroll services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from indo_payroll.services.bulk_operation_service import BulkOperationResult


class PayrollError(Exception):
    """Base class for all payroll engine errors."""

    code = "PAYROLL_ERROR"


class ValidationError(PayrollError):
    """Raised when input is malformed or violates a business rule."""

    code = "VALIDATION_ERROR"


class NotFoundError(PayrollError):
    """Raised when a period, employee, component or record does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidStateTransition(PayrollError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_STATE_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ConcurrencyConflict(PayrollError):
    """Raised when another unit of work holds the resource."""

    code = "CONCURRENCY_CONFLICT"


class PartialFailure(PayrollError):
    """Raised on request when a bulk operation finished with mixed outcomes."""

    code = "PARTIAL_FAILURE"

    def __init__(self, result: BulkOperationResult):
        self.result = result
        super().__init__(
            f"Bulk operation {result.operation_id} finished '{result.status}': "
            f"{result.applied_count} applied, {result.failed_count} failed, "
            f"{result.pending_count} pending"
        )


class ComplianceViolation(PayrollError):
    """Raised when a period has compliance warnings that were not acknowledged."""

    code = "COMPLIANCE_VIOLATION"

    def __init__(self, warnings: list[ComplianceWarning]):
        self.warnings = warnings
        super().__init__(
            f"{len(warnings)} compliance warning(s) require acknowledgment: "
            + "; ".join(w.message for w in warnings[:5])
        )


class ExternalDependencyError(PayrollError):
    """Raised when a collaborator (employee or salary data) fails or times out."""

    code = "EXTERNAL_DEPENDENCY_ERROR"

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)


class LedgerImmutableError(PayrollError):
    """Raised when something tries to edit or delete salary history."""

    code = "LEDGER_IMMUTABLE"


@dataclass(frozen=True)
class ComplianceWarning:
    """A single compliance finding on a payroll period."""

    kind: str
    message: str
    employee_id: UUID | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "employee_id": str(self.employee_id) if self.employee_id else None,
        }
