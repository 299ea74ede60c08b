"""Tests for the payroll period state machine."""

from types import SimpleNamespace
from uuid import uuid4

import pytest

from indo_payroll.errors import InvalidStateTransition
from indo_payroll.services.state_machine import PeriodStateMachine, PeriodStatus


class TestPeriodStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        # draft -> calculated
        assert PeriodStateMachine.can_transition("draft", "calculated") is True
        # calculated -> calculated (recalculate)
        assert PeriodStateMachine.can_transition("calculated", "calculated") is True
        # calculated -> finalized
        assert PeriodStateMachine.can_transition("calculated", "finalized") is True

    def test_invalid_transitions(self):
        # Can't skip calculation
        assert PeriodStateMachine.can_transition("draft", "finalized") is False
        # No way back
        assert PeriodStateMachine.can_transition("calculated", "draft") is False
        # Finalized is terminal
        assert PeriodStateMachine.can_transition("finalized", "calculated") is False
        assert PeriodStateMachine.can_transition("finalized", "draft") is False

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidStateTransition) as exc_info:
            PeriodStateMachine.validate_transition("finalized", "calculated")

        assert exc_info.value.from_status == "finalized"
        assert exc_info.value.to_status == "calculated"

    def test_status_sets(self):
        assert PeriodStateMachine.can_calculate("draft")
        assert PeriodStateMachine.can_calculate("calculated")
        assert not PeriodStateMachine.can_calculate("finalized")

        assert PeriodStateMachine.can_modify_inputs("calculated")
        assert not PeriodStateMachine.can_modify_inputs("finalized")

        assert PeriodStateMachine.can_delete("draft")
        assert not PeriodStateMachine.can_delete("calculated")

    def test_calculation_statuses_follow_transitions(self):
        for status in PeriodStatus:
            assert PeriodStateMachine.can_calculate(status.value) == (
                PeriodStateMachine.can_transition(status.value, PeriodStatus.CALCULATED.value)
            )


class TestFinalizeValidation:
    def test_calculated_and_unlocked(self):
        period = SimpleNamespace(status="calculated", lock_token=None)
        assert PeriodStateMachine.validate_period_for_finalize(period) == []

    def test_locked_period(self):
        period = SimpleNamespace(status="calculated", lock_token=uuid4())
        errors = PeriodStateMachine.validate_period_for_finalize(period)
        assert errors == ["A calculation is in progress for this period"]

    def test_draft_period(self):
        period = SimpleNamespace(status="draft", lock_token=None)
        errors = PeriodStateMachine.validate_period_for_finalize(period)
        assert "Cannot finalize" in errors[0]
