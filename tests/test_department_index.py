"""Tests for the department hierarchy index."""

from uuid import uuid4

import pytest

from indo_payroll.errors import NotFoundError, ValidationError
from indo_payroll.repositories.master_data import DepartmentIndex, DepartmentNode


@pytest.fixture
def tree():
    """head office -> finance -> (payroll, tax); head office -> ops"""
    ids = {name: uuid4() for name in ("head", "finance", "payroll", "tax", "ops")}
    nodes = [
        DepartmentNode(ids["head"], "Head Office", None),
        DepartmentNode(ids["finance"], "Finance", ids["head"]),
        DepartmentNode(ids["payroll"], "Payroll", ids["finance"]),
        DepartmentNode(ids["tax"], "Tax", ids["finance"]),
        DepartmentNode(ids["ops"], "Operations", ids["head"]),
    ]
    return ids, DepartmentIndex(nodes)


def test_ancestors(tree):
    ids, index = tree
    assert index.ancestors(ids["payroll"]) == [ids["finance"], ids["head"]]
    assert index.ancestors(ids["head"]) == []


def test_descendants(tree):
    ids, index = tree
    assert set(index.descendants(ids["finance"])) == {ids["payroll"], ids["tax"]}
    assert len(index.descendants(ids["head"])) == 4
    assert index.descendants(ids["tax"]) == []


def test_subtree(tree):
    ids, index = tree
    assert index.subtree(ids["finance"]) == {ids["finance"], ids["payroll"], ids["tax"]}
    assert index.subtree(ids["finance"], include_descendants=False) == {ids["finance"]}


def test_unknown_department(tree):
    _, index = tree
    with pytest.raises(NotFoundError):
        index.subtree(uuid4())


def test_dangling_parent_is_treated_as_root():
    orphan = uuid4()
    index = DepartmentIndex([DepartmentNode(orphan, "Orphan", uuid4())])
    assert index.ancestors(orphan) == []
    assert len(index) == 1


def test_cycle_rejected():
    a, b, c = uuid4(), uuid4(), uuid4()
    with pytest.raises(ValidationError, match="cycle"):
        DepartmentIndex(
            [
                DepartmentNode(a, "A", c),
                DepartmentNode(b, "B", a),
                DepartmentNode(c, "C", b),
            ]
        )


def test_self_parent_rejected():
    a = uuid4()
    with pytest.raises(ValidationError, match="cycle"):
        DepartmentIndex([DepartmentNode(a, "A", a)])


async def test_load_from_database(container, seed):
    root = await seed.department("Head Office")
    child = await seed.department("Finance", parent_id=root.department_id)

    index = await container.master_data.load_department_index()

    assert child.department_id in index
    assert index.subtree(root.department_id) == {root.department_id, child.department_id}
