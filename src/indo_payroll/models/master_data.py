"""Read-only organisational master data (departments, positions)."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from indo_payroll.models.base import Base


class Department(Base):
    """Department. Hierarchy is expressed by parent_id only."""

    __tablename__ = "department"

    department_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    parent_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("department.department_id", ondelete="SET NULL"),
        nullable=True,
    )


class Position(Base):
    """Job position."""

    __tablename__ = "position"

    position_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(String, nullable=False)
    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("department.department_id", ondelete="SET NULL"),
        nullable=True,
    )
