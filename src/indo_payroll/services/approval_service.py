"""Salary change approval workflow: propose, then approve or reject."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence
from uuid import UUID

from indo_payroll.inputs import SalaryChangeProposal, parse, parse_uuid
from indo_payroll.models import SalaryChangeRecord
from indo_payroll.services.ledger import ComponentMutation, SalaryLedger

logger = logging.getLogger(__name__)


class ApprovalService:
    """Proposals are pending ledger records until decided.

    - propose: pending records only, no live salary data touched
    - decide(approve): live component written and record approved, atomically
    - decide(reject): record rejected, nothing else changes
    Decided records are terminal.
    """

    def __init__(self, ledger: SalaryLedger):
        self.ledger = ledger

    async def propose(
        self,
        proposal: SalaryChangeProposal | Mapping[str, Any],
        actor: str,
    ) -> list[SalaryChangeRecord]:
        """Create one pending record per requested component change.

        Raises:
            ValidationError: malformed proposal, or a target component that
                does not belong to the employee or is inactive
            NotFoundError: unknown employee or component
        """
        spec: SalaryChangeProposal = parse(SalaryChangeProposal, proposal)
        entries = [
            ComponentMutation(
                action=change.action,
                employee_id=spec.employee_id,
                component_id=change.component_id,
                component_name=change.component_name,
                component_kind=change.component_kind.value if change.component_kind else None,
                new_amount=change.new_amount,
            )
            for change in spec.changes
        ]
        records = await self.ledger.append(
            entries,
            changed_by=actor,
            effective_date=spec.effective_date,
            reason=spec.reason,
            notes=spec.notes,
            source="approval",
        )
        logger.info(
            "Proposed %d salary change(s) for employee %s by %s",
            len(records),
            spec.employee_id,
            actor,
        )
        return records

    async def decide(
        self,
        record_ids: Sequence[UUID | str],
        approve: bool,
        actor: str,
        notes: str | None = None,
    ) -> list[SalaryChangeRecord]:
        """Approve or reject pending records, all or nothing.

        Raises:
            NotFoundError: an id does not exist
            InvalidStateTransition: a record is no longer pending
        """
        ids = [parse_uuid(i, "record id") for i in record_ids]
        return await self.ledger.decide(ids, approve=approve, actor=actor, notes=notes)

    async def list_pending(
        self,
        employee_ids: Sequence[UUID] | None = None,
        requested_by: str | None = None,
        limit: int = 100,
    ) -> list[SalaryChangeRecord]:
        return await self.ledger.list_pending(employee_ids, requested_by, limit)
