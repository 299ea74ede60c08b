"""Payroll period state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from indo_payroll.errors import InvalidStateTransition

if TYPE_CHECKING:
    from indo_payroll.models import PayrollPeriod


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    DRAFT = "draft"
    CALCULATED = "calculated"
    FINALIZED = "finalized"


class PeriodStateMachine:
    """State machine for payroll period status transitions.

    Allowed transitions:
    - draft → calculated (calculate)
    - calculated → calculated (recalculate)
    - calculated → finalized (finalize)

    finalized is terminal: no recalculation, no input changes.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodStatus.DRAFT: [PeriodStatus.CALCULATED],
        PeriodStatus.CALCULATED: [PeriodStatus.CALCULATED, PeriodStatus.FINALIZED],
        PeriodStatus.FINALIZED: [],  # Terminal state
    }

    # Statuses where (re)calculation is allowed
    CALCULATION_ALLOWED = {PeriodStatus.DRAFT, PeriodStatus.CALCULATED}

    # Statuses where variable inputs can be modified
    INPUTS_MUTABLE = {PeriodStatus.DRAFT, PeriodStatus.CALCULATED}

    # Statuses where the period may be removed
    DELETABLE = {PeriodStatus.DRAFT}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(
        cls, from_status: str, to_status: str, reason: str | None = None
    ) -> None:
        """Validate a transition, raising InvalidStateTransition if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransition(from_status, to_status, reason)

    @classmethod
    def can_calculate(cls, status: str) -> bool:
        return status in cls.CALCULATION_ALLOWED

    @classmethod
    def can_modify_inputs(cls, status: str) -> bool:
        return status in cls.INPUTS_MUTABLE

    @classmethod
    def can_delete(cls, status: str) -> bool:
        return status in cls.DELETABLE

    @classmethod
    def validate_period_for_finalize(cls, period: PayrollPeriod) -> list[str]:
        """Validate a period for finalization, returning any errors.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []

        if not cls.can_transition(period.status, PeriodStatus.FINALIZED):
            errors.append(f"Cannot finalize a period in status '{period.status}'")
            return errors

        if period.lock_token is not None:
            errors.append("A calculation is in progress for this period")

        return errors
