"""Read-only master data: department hierarchy and positions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from indo_payroll.errors import NotFoundError, ValidationError
from indo_payroll.models import Department, Position


@dataclass(frozen=True)
class DepartmentNode:
    department_id: UUID
    name: str
    parent_id: UUID | None


class DepartmentIndex:
    """Flat department hierarchy keyed by id.

    Nodes hold only their parent id; children are derived once at
    construction. A parent reference cycle is rejected up front so every
    walk terminates.
    """

    def __init__(self, nodes: Iterable[DepartmentNode]):
        self._nodes: dict[UUID, DepartmentNode] = {n.department_id: n for n in nodes}
        self._children: dict[UUID, list[UUID]] = {dept_id: [] for dept_id in self._nodes}
        for node in self._nodes.values():
            if node.parent_id is not None and node.parent_id in self._children:
                self._children[node.parent_id].append(node.department_id)
        cycle = self.find_cycle()
        if cycle:
            raise ValidationError(
                "Department hierarchy contains a cycle: " + " -> ".join(str(d) for d in cycle)
            )

    def __contains__(self, department_id: object) -> bool:
        return department_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, department_id: UUID) -> DepartmentNode:
        try:
            return self._nodes[department_id]
        except KeyError:
            raise NotFoundError("Department", department_id) from None

    def find_cycle(self) -> list[UUID] | None:
        """Return one parent-reference cycle, or None if the hierarchy is a forest."""
        finished: set[UUID] = set()
        for start in self._nodes:
            path: list[UUID] = []
            on_path: set[UUID] = set()
            current: UUID | None = start
            while current is not None and current in self._nodes and current not in finished:
                if current in on_path:
                    return path[path.index(current):] + [current]
                on_path.add(current)
                path.append(current)
                current = self._nodes[current].parent_id
            finished.update(path)
        return None

    def ancestors(self, department_id: UUID) -> list[UUID]:
        """Parent chain from the immediate parent up to the root."""
        result: list[UUID] = []
        parent = self.get(department_id).parent_id
        while parent is not None and parent in self._nodes:
            result.append(parent)
            parent = self._nodes[parent].parent_id
        return result

    def descendants(self, department_id: UUID) -> list[UUID]:
        """Every department below `department_id` (breadth first)."""
        self.get(department_id)
        result: list[UUID] = []
        queue = list(self._children[department_id])
        while queue:
            current = queue.pop(0)
            result.append(current)
            queue.extend(self._children[current])
        return result

    def subtree(self, department_id: UUID, include_descendants: bool = True) -> set[UUID]:
        """The department itself plus, optionally, everything below it."""
        ids = {self.get(department_id).department_id}
        if include_descendants:
            ids.update(self.descendants(department_id))
        return ids


class MasterDataRepository:
    """Loads departments and positions. Never writes."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def load_department_index(self) -> DepartmentIndex:
        async with self.session_factory() as session:
            rows = (await session.execute(select(Department))).scalars().all()
        return DepartmentIndex(
            DepartmentNode(r.department_id, r.name, r.parent_id) for r in rows
        )

    async def list_positions(self, department_id: UUID | None = None) -> list[Position]:
        stmt = select(Position).order_by(Position.title)
        if department_id is not None:
            stmt = stmt.where(Position.department_id == department_id)
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())
