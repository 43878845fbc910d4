"""
Tests for orgadmin.services.tree — assembling flat joined rows into the
nested organization tree and the flat per-company views.
"""

import logging

from orgadmin.services.tree import (
    build_organization_tree,
    collect_company_departments,
    flatten_company_structure,
)


def _row(company, branch, division, department, **flags):
    row = {
        "company_code": company,
        "company_name_th": f"{company} TH",
        "company_name_en": f"{company} EN",
        "tax_id": None,
        "company_active": True,
        "branch_code": branch,
        "branch_name": f"{branch} name" if branch else None,
        "is_headquarters": False if branch else None,
        "branch_active": True if branch else None,
        "division_code": division,
        "division_name": f"{division} name" if division else None,
        "division_active": True if division else None,
        "department_code": department,
        "department_name": f"{department} name" if department else None,
        "department_active": True if department else None,
    }
    row.update(flags)
    return row


MIXED_ROWS = [
    _row("A", "X", "Div1", "Dept1"),
    _row("A", "X", "Div1", "Dept2"),
    _row("A", None, "Div2", "Dept3"),
]


def test_branch_and_direct_divisions_are_separated():
    tree = build_organization_tree(MIXED_ROWS)

    assert len(tree) == 1
    company = tree[0]
    assert company["company_code"] == "A"

    assert [b["branch_code"] for b in company["branches"]] == ["X"]
    branch_divisions = company["branches"][0]["divisions"]
    assert [d["division_code"] for d in branch_divisions] == ["Div1"]
    assert [d["department_code"] for d in branch_divisions[0]["departments"]] == ["Dept1", "Dept2"]

    assert [d["division_code"] for d in company["divisions"]] == ["Div2"]
    assert [d["department_code"] for d in company["divisions"][0]["departments"]] == ["Dept3"]


def test_company_without_children():
    tree = build_organization_tree([_row("A", None, None, None)])
    assert tree == [
        {
            "company_code": "A",
            "company_name_th": "A TH",
            "company_name_en": "A EN",
            "tax_id": None,
            "is_active": True,
            "branches": [],
            "divisions": [],
        }
    ]


def test_active_only_drops_inactive_nodes_but_keeps_parents():
    rows = [
        _row("A", "X", "Div1", "Dept1"),
        _row("A", "X", "Div1", "Dept2", department_active=False),
        _row("A", "Y", "Div3", "Dept4", branch_active=False),
        _row("A", None, "Div2", "Dept3", division_active=False),
    ]
    tree = build_organization_tree(rows, active_only=True)

    company = tree[0]
    assert [b["branch_code"] for b in company["branches"]] == ["X"]
    assert [d["department_code"] for d in company["branches"][0]["divisions"][0]["departments"]] == ["Dept1"]
    assert company["divisions"] == []

    everything = build_organization_tree(rows, active_only=False)[0]
    assert [b["branch_code"] for b in everything["branches"]] == ["X", "Y"]
    assert everything["divisions"][0]["is_active"] is False


def test_inactive_company_disappears_with_active_only():
    rows = [_row("A", "X", "Div1", "Dept1", company_active=False), _row("B", None, None, None)]
    assert [c["company_code"] for c in build_organization_tree(rows, active_only=True)] == ["B"]


def test_assembly_is_deterministic():
    assert build_organization_tree(MIXED_ROWS) == build_organization_tree(MIXED_ROWS)
    assert build_organization_tree(MIXED_ROWS, active_only=True) == build_organization_tree(
        list(MIXED_ROWS), active_only=True
    )


def test_assembly_does_not_mutate_its_input():
    rows = [dict(r) for r in MIXED_ROWS]
    tree = build_organization_tree(rows)
    tree[0]["branches"][0]["divisions"][0]["departments"].clear()
    assert rows == MIXED_ROWS
    assert len(build_organization_tree(rows)[0]["branches"][0]["divisions"][0]["departments"]) == 2


def test_flags_accept_strings_and_integers():
    rows = [_row("A", "X", "Div1", "Dept1", branch_active="0", is_headquarters=1)]
    tree = build_organization_tree(rows)
    assert tree[0]["branches"][0]["is_active"] is False
    assert tree[0]["branches"][0]["is_headquarters"] is True


def test_inconsistent_flags_keep_first_value(caplog):
    rows = [
        _row("A", "X", "Div1", "Dept1"),
        _row("A", "X", "Div1", "Dept2", division_active=False),
    ]
    with caplog.at_level(logging.WARNING, logger="orgadmin.services.tree"):
        tree = build_organization_tree(rows)

    division = tree[0]["branches"][0]["divisions"][0]
    assert division["is_active"] is True
    assert [d["department_code"] for d in division["departments"]] == ["Dept1", "Dept2"]
    assert "Inconsistent is_active for division Div1" in caplog.text


def test_malformed_rows_are_skipped():
    rows = [None, "not a row", {"branch_code": "X"}, _row("A", None, None, None)]
    tree = build_organization_tree(rows)
    assert [c["company_code"] for c in tree] == ["A"]
    assert build_organization_tree(None) == []


def test_flatten_lists_headquarters_first():
    rows = [
        _row("A", "B1", "Div1", "Dept1"),
        _row("A", "B2", "Div2", "Dept2", is_headquarters=True),
        _row("A", None, "Div3", None),
    ]
    flat = flatten_company_structure(rows)

    assert flat["company"]["company_code"] == "A"
    assert "branches" not in flat["company"]
    assert [b["branch_code"] for b in flat["branches"]] == ["B2", "B1"]
    assert all("divisions" not in b for b in flat["branches"])
    assert {d["division_code"]: d["branch_code"] for d in flat["divisions"]} == {
        "Div1": "B1",
        "Div2": "B2",
        "Div3": None,
    }
    assert [(d["division_code"], d["department_code"]) for d in flat["departments"]] == [
        ("Div1", "Dept1"),
        ("Div2", "Dept2"),
    ]


def test_flatten_returns_none_without_active_company():
    assert flatten_company_structure([]) is None
    assert flatten_company_structure([_row("A", None, None, None, company_active=False)]) is None


def test_company_departments_order():
    rows = [
        _row("A", None, "Div9", "Direct1"),
        _row("A", "B1", "Div1", "Branch1"),
        _row("A", "HQ", "Div5", "Head1", is_headquarters=True),
    ]
    departments = collect_company_departments(rows)

    assert [d["department_code"] for d in departments] == ["Head1", "Branch1", "Direct1"]
    assert departments[0]["branch_code"] == "HQ"
    assert departments[0]["is_headquarters"] is True
    assert departments[2]["branch_code"] is None
    assert departments[2]["division_code"] == "Div9"
