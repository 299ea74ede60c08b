"""Wires repositories and services around one engine and session factory."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from indo_payroll.calculators.engine import PayrollEngine
from indo_payroll.calculators.regulation import load_regulation
from indo_payroll.config import Settings, get_settings
from indo_payroll.database import create_engine, create_session_factory, init_models
from indo_payroll.repositories.bulk import BulkOperationRepository
from indo_payroll.repositories.employees import EmployeeRepository, SalaryComponentRepository
from indo_payroll.repositories.master_data import MasterDataRepository
from indo_payroll.repositories.payroll import PayrollRepository
from indo_payroll.services.approval_service import ApprovalService
from indo_payroll.services.bulk_operation_service import BulkOperationService
from indo_payroll.services.ledger import SalaryLedger
from indo_payroll.services.locking_service import LockingService
from indo_payroll.services.payroll_service import PayrollService
from indo_payroll.services.salary_service import SalaryComponentService
from indo_payroll.services.variable_inputs import VariableInputStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything the API (or a script) needs, built from one Settings."""

    settings: Settings
    db_engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    executor: ThreadPoolExecutor
    payroll_engine: PayrollEngine
    payroll_repository: PayrollRepository
    employees: EmployeeRepository
    components: SalaryComponentRepository
    master_data: MasterDataRepository
    ledger: SalaryLedger
    payroll: PayrollService
    variable_inputs: VariableInputStore
    salary: SalaryComponentService
    approvals: ApprovalService
    bulk: BulkOperationService

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ServiceContainer:
        settings = settings or get_settings()
        regulation = load_regulation(settings.regulation_config_path)
        db_engine = create_engine(settings.database_url, echo=settings.debug)
        session_factory = create_session_factory(db_engine)
        executor = ThreadPoolExecutor(
            max_workers=settings.calculation_workers, thread_name_prefix="payroll-calc"
        )

        payroll_engine = PayrollEngine(regulation, engine_version=settings.engine_version)
        payroll_repository = PayrollRepository(session_factory)
        employees = EmployeeRepository(session_factory)
        components = SalaryComponentRepository(session_factory)
        master_data = MasterDataRepository(session_factory)
        ledger = SalaryLedger(session_factory)
        locks = LockingService(payroll_repository, ttl_seconds=settings.calculation_lock_ttl_seconds)

        logger.info(
            "Payroll engine %s using regulation '%s' (%s)",
            settings.engine_version,
            regulation.name,
            payroll_engine.regulation_fingerprint,
        )
        return cls(
            settings=settings,
            db_engine=db_engine,
            session_factory=session_factory,
            executor=executor,
            payroll_engine=payroll_engine,
            payroll_repository=payroll_repository,
            employees=employees,
            components=components,
            master_data=master_data,
            ledger=ledger,
            payroll=PayrollService(
                payroll_repository,
                employees,
                components,
                locks,
                payroll_engine,
                executor=executor,
                collaborator_timeout=settings.collaborator_timeout_seconds,
            ),
            variable_inputs=VariableInputStore(payroll_repository, employees),
            salary=SalaryComponentService(ledger, components),
            approvals=ApprovalService(ledger),
            bulk=BulkOperationService(
                BulkOperationRepository(session_factory),
                employees,
                components,
                master_data,
                ledger,
                max_concurrency=settings.bulk_max_concurrency,
                rounding_unit=settings.bulk_rounding_unit,
                collaborator_timeout=settings.collaborator_timeout_seconds,
            ),
        )

    async def init_models(self) -> None:
        await init_models(self.db_engine)

    async def close(self) -> None:
        self.executor.shutdown(wait=True)
        await self.db_engine.dispose()
