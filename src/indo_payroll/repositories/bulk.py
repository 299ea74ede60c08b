"""Bulk operation and item persistence."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from indo_payroll.errors import NotFoundError
from indo_payroll.models import BulkOperation, BulkOperationItem
from indo_payroll.models.base import utcnow

TERMINAL_STATUSES = ("completed", "partially_completed", "failed", "cancelled", "rolled_back")


class BulkOperationRepository:
    """Status changes are conditional updates so concurrent callers cannot
    start, cancel or roll back the same operation twice."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(
        self, operation: BulkOperation, items: list[BulkOperationItem]
    ) -> BulkOperation:
        async with self.session_factory() as session, session.begin():
            operation.items = items
            operation.total_items = len(items)
            session.add(operation)
        return operation

    async def get(self, operation_id: UUID) -> BulkOperation | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(BulkOperation)
                .where(BulkOperation.bulk_operation_id == operation_id)
                .options(selectinload(BulkOperation.items))
            )
            return result.scalar_one_or_none()

    async def require(self, operation_id: UUID) -> BulkOperation:
        operation = await self.get(operation_id)
        if operation is None:
            raise NotFoundError("Bulk operation", operation_id)
        return operation

    async def list_operations(
        self, status: str | None = None, limit: int = 50
    ) -> list[BulkOperation]:
        stmt = select(BulkOperation).order_by(BulkOperation.created_at.desc()).limit(limit)
        if status is not None:
            stmt = stmt.where(BulkOperation.status == status)
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def mark_started(self, operation_id: UUID) -> bool:
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                update(BulkOperation)
                .where(
                    BulkOperation.bulk_operation_id == operation_id,
                    BulkOperation.status == "pending",
                    BulkOperation.cancel_requested.is_(False),
                )
                .values(status="in_progress", started_at=utcnow())
            )
            return result.rowcount == 1

    async def is_cancel_requested(self, operation_id: UUID) -> bool:
        async with self.session_factory() as session:
            flag = await session.scalar(
                select(BulkOperation.cancel_requested).where(
                    BulkOperation.bulk_operation_id == operation_id
                )
            )
        return bool(flag)

    async def request_cancel(self, operation_id: UUID) -> bool:
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                update(BulkOperation)
                .where(
                    BulkOperation.bulk_operation_id == operation_id,
                    BulkOperation.status.in_(("pending", "in_progress")),
                )
                .values(cancel_requested=True)
            )
            return result.rowcount == 1

    async def record_item(
        self,
        item_id: UUID,
        status: str,
        applied_total: Decimal | None = None,
        error_message: str | None = None,
        session: AsyncSession | None = None,
    ) -> None:
        """Store an item outcome, inside `session` when given."""
        stmt = (
            update(BulkOperationItem)
            .where(BulkOperationItem.bulk_operation_item_id == item_id)
            .values(
                status=status,
                applied_total=applied_total,
                error_message=error_message,
                processed_at=utcnow(),
            )
        )
        if session is not None:
            await session.execute(stmt)
            return
        async with self.session_factory() as own, own.begin():
            await own.execute(stmt)

    async def finish(
        self,
        operation_id: UUID,
        status: str,
        applied_count: int,
        failed_count: int,
        error_message: str | None = None,
    ) -> None:
        async with self.session_factory() as session, session.begin():
            await session.execute(
                update(BulkOperation)
                .where(BulkOperation.bulk_operation_id == operation_id)
                .values(
                    status=status,
                    applied_count=applied_count,
                    failed_count=failed_count,
                    error_message=error_message,
                    completed_at=utcnow(),
                )
            )

    async def finish_if_pending(self, operation_id: UUID, status: str) -> bool:
        """Finish an operation that never started. False once execution owns it."""
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                update(BulkOperation)
                .where(
                    BulkOperation.bulk_operation_id == operation_id,
                    BulkOperation.status == "pending",
                )
                .values(status=status, applied_count=0, failed_count=0, completed_at=utcnow())
            )
            return result.rowcount == 1

    async def mark_rolled_back(self, operation_id: UUID) -> bool:
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                update(BulkOperation)
                .where(
                    BulkOperation.bulk_operation_id == operation_id,
                    BulkOperation.status.in_(("completed", "partially_completed", "cancelled")),
                )
                .values(status="rolled_back")
            )
            return result.rowcount == 1

    async def find_rollback_of(self, operation_id: UUID) -> BulkOperation | None:
        async with self.session_factory() as session:
            return await session.scalar(
                select(BulkOperation)
                .where(
                    BulkOperation.rollback_of == operation_id,
                    BulkOperation.status != "failed",
                )
                .limit(1)
            )
