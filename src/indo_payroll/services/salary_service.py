"""Direct salary component edits, recorded as auto-approved ledger entries."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from indo_payroll.calculators.types import ComponentKind
from indo_payroll.errors import NotFoundError, ValidationError
from indo_payroll.models import SalaryChangeRecord, SalaryComponent
from indo_payroll.repositories.employees import SalaryComponentRepository
from indo_payroll.services.ledger import ComponentMutation, SalaryLedger

logger = logging.getLogger(__name__)


class SalaryComponentService:
    """Create, change and deactivate salary components without approval."""

    def __init__(self, ledger: SalaryLedger, components: SalaryComponentRepository):
        self.ledger = ledger
        self.components = components

    async def list_components(
        self, employee_id: UUID, include_inactive: bool = False
    ) -> list[SalaryComponent]:
        if include_inactive:
            return await self.components.list_for_employee(employee_id)
        return await self.components.list_active(employee_id)

    async def create_component(
        self,
        employee_id: UUID,
        name: str,
        kind: str,
        amount: Decimal,
        actor: str,
        effective_date: date | None = None,
        reason: str | None = None,
    ) -> SalaryComponent:
        try:
            kind = ComponentKind(kind).value
        except ValueError as e:
            raise ValidationError(f"Unknown component kind: {kind!r}") from e
        if not name:
            raise ValidationError("Component name is required")

        [record] = await self.ledger.commit(
            [
                ComponentMutation(
                    action="create",
                    employee_id=employee_id,
                    component_name=name,
                    component_kind=kind,
                    new_amount=amount,
                )
            ],
            changed_by=actor,
            effective_date=effective_date or date.today(),
            reason=reason,
        )
        logger.info("Created %s component for employee %s by %s", kind, employee_id, actor)
        return await self._reload(record)

    async def update_component(
        self,
        component_id: UUID,
        amount: Decimal,
        actor: str,
        effective_date: date | None = None,
        reason: str | None = None,
    ) -> SalaryComponent:
        component = await self._require(component_id)
        [record] = await self.ledger.commit(
            [
                ComponentMutation(
                    action="update",
                    employee_id=component.employee_id,
                    component_id=component_id,
                    new_amount=amount,
                )
            ],
            changed_by=actor,
            effective_date=effective_date or date.today(),
            reason=reason,
        )
        return await self._reload(record)

    async def deactivate_component(
        self,
        component_id: UUID,
        actor: str,
        effective_date: date | None = None,
        reason: str | None = None,
    ) -> SalaryComponent:
        component = await self._require(component_id)
        [record] = await self.ledger.commit(
            [
                ComponentMutation(
                    action="delete",
                    employee_id=component.employee_id,
                    component_id=component_id,
                )
            ],
            changed_by=actor,
            effective_date=effective_date or date.today(),
            reason=reason,
        )
        return await self._reload(record)

    async def _require(self, component_id: UUID) -> SalaryComponent:
        component = await self.components.get(component_id)
        if component is None:
            raise NotFoundError("Salary component", component_id)
        return component

    async def _reload(self, record: SalaryChangeRecord) -> SalaryComponent:
        return await self._require(record.salary_component_id)
