"""
tree.py — Organization Tree Assembly

Purpose:
- Turn the flat rows of the multi-level LEFT JOIN (one row per
  company × branch × division × department combination, NULL where a level
  is absent) into the nested organization tree served by the API.
- Provide flat per-level views of one company built from the same rows.

Tree shape:
    {company_code, company_name_th, company_name_en, tax_id, is_active,
     branches: [{branch_code, branch_name, is_headquarters, is_active,
                 divisions: [{division_code, division_name, is_active,
                              departments: [{department_code, department_name, is_active}]}]}],
     divisions: [... divisions attached directly to the company ...]}

Rules:
- Nodes are created on first sight and keep first-seen order, so the same
  rows always assemble into the same tree.
- A division lands under its branch when the row carries a branch code,
  otherwise in the company's direct list. Never both.
- With active_only, an inactive node is not created from that row, and
  nothing below it on that row is attached. Parents stay.
- Flags are read per row. A row whose flag disagrees with an already built
  node is logged; the node keeps its first-seen value.
- Never raises. Malformed rows are logged and skipped.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from orgadmin.core.logging import get_logger

logger = get_logger(__name__)

_FALSE_STRINGS = {"0", "false", "no", ""}


def _as_bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def _check_flag(node: Dict[str, Any], flag: bool, entity: str, code: Any) -> None:
    if node["is_active"] != flag:
        logger.warning(
            "Inconsistent is_active for %s %s across rows (kept %s)",
            entity,
            code,
            node["is_active"],
        )


def _find_division(divisions: List[Dict[str, Any]], code: Any) -> Optional[Dict[str, Any]]:
    for division in divisions:
        if division["division_code"] == code:
            return division
    return None


def _attach_division(
    divisions: List[Dict[str, Any]],
    row: Mapping[str, Any],
    active_only: bool,
) -> None:
    code = row.get("division_code")
    if code is None:
        return

    active = _as_bool(row.get("division_active"))
    division = _find_division(divisions, code)
    if division is not None:
        _check_flag(division, active, "division", code)
    if active_only and not active:
        return

    if division is None:
        division = {
            "division_code": code,
            "division_name": row.get("division_name"),
            "is_active": active,
            "departments": [],
        }
        divisions.append(division)

    dept_code = row.get("department_code")
    if dept_code is None:
        return
    dept_active = _as_bool(row.get("department_active"))
    if active_only and not dept_active:
        return
    for existing in division["departments"]:
        if existing["department_code"] == dept_code:
            _check_flag(existing, dept_active, "department", dept_code)
            return
    division["departments"].append(
        {
            "department_code": dept_code,
            "department_name": row.get("department_name"),
            "is_active": dept_active,
        }
    )


def _add_row(companies: Dict[Any, Dict[str, Any]], row: Mapping[str, Any], active_only: bool) -> None:
    code = row.get("company_code")
    if code is None:
        logger.warning("Skipping organization row without company_code")
        return

    active = _as_bool(row.get("company_active"))
    company = companies.get(code)
    if company is not None:
        _check_flag(company, active, "company", code)
    if active_only and not active:
        return

    if company is None:
        company = {
            "company_code": code,
            "company_name_th": row.get("company_name_th"),
            "company_name_en": row.get("company_name_en"),
            "tax_id": row.get("tax_id"),
            "is_active": active,
            "_branches": {},
            "divisions": [],
        }
        companies[code] = company

    branch_code = row.get("branch_code")
    if branch_code is None:
        _attach_division(company["divisions"], row, active_only)
        return

    branch_active = _as_bool(row.get("branch_active"))
    branch = company["_branches"].get(branch_code)
    if branch is not None:
        _check_flag(branch, branch_active, "branch", branch_code)
    if active_only and not branch_active:
        return

    if branch is None:
        branch = {
            "branch_code": branch_code,
            "branch_name": row.get("branch_name"),
            "is_headquarters": _as_bool(row.get("is_headquarters"), default=False),
            "is_active": branch_active,
            "divisions": [],
        }
        company["_branches"][branch_code] = branch

    _attach_division(branch["divisions"], row, active_only)


def _finalize_division(division: Dict[str, Any]) -> Dict[str, Any]:
    return {**division, "departments": [dict(d) for d in division["departments"]]}


def _finalize(company: Dict[str, Any]) -> Dict[str, Any]:
    branches = [
        {**b, "divisions": [_finalize_division(d) for d in b["divisions"]]}
        for b in company["_branches"].values()
    ]
    return {
        "company_code": company["company_code"],
        "company_name_th": company["company_name_th"],
        "company_name_en": company["company_name_en"],
        "tax_id": company["tax_id"],
        "is_active": company["is_active"],
        "branches": branches,
        "divisions": [_finalize_division(d) for d in company["divisions"]],
    }


# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------

def build_organization_tree(
    rows: Iterable[Mapping[str, Any]],
    active_only: bool = False,
) -> List[Dict[str, Any]]:
    """Assemble flat joined rows into a list of company trees."""
    companies: Dict[Any, Dict[str, Any]] = {}
    for row in rows or []:
        if not isinstance(row, Mapping):
            logger.warning("Skipping non-mapping organization row: %r", row)
            continue
        try:
            _add_row(companies, row, active_only)
        except (TypeError, ValueError, AttributeError):
            logger.warning("Skipping malformed organization row: %r", row, exc_info=True)
    return [_finalize(c) for c in companies.values()]


def _company_fields(tree: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in tree.items() if k not in ("branches", "divisions")}


def _all_divisions(tree: Mapping[str, Any]):
    """(branch or None, division) pairs: direct divisions first, then by branch."""
    for division in tree["divisions"]:
        yield None, division
    for branch in tree["branches"]:
        for division in branch["divisions"]:
            yield branch, division


def flatten_company_structure(
    rows: Iterable[Mapping[str, Any]],
    active_only: bool = True,
) -> Optional[Dict[str, Any]]:
    """
    Per-level lists for the first company in `rows`:
    {company, branches, divisions, departments}, each de-duplicated by code.

    Branches list the headquarters first. Returns None when there is no
    (active) company in the rows.
    """
    trees = build_organization_tree(rows, active_only=active_only)
    if not trees:
        return None
    tree = trees[0]

    branches = [
        {k: v for k, v in b.items() if k != "divisions"} for b in tree["branches"]
    ]
    branches.sort(key=lambda b: (not b["is_headquarters"], b["branch_code"]))

    divisions: List[Dict[str, Any]] = []
    departments: List[Dict[str, Any]] = []
    for branch, division in _all_divisions(tree):
        divisions.append(
            {
                "division_code": division["division_code"],
                "division_name": division["division_name"],
                "branch_code": branch["branch_code"] if branch else None,
                "is_active": division["is_active"],
            }
        )
        for dept in division["departments"]:
            departments.append({**dept, "division_code": division["division_code"]})
    departments.sort(key=lambda d: (d["division_code"], d["department_code"]))

    return {
        "company": _company_fields(tree),
        "branches": branches,
        "divisions": divisions,
        "departments": departments,
    }


def collect_company_departments(
    rows: Iterable[Mapping[str, Any]],
    active_only: bool = True,
) -> List[Dict[str, Any]]:
    """
    Every department of the first company in `rows`, each carrying its
    division and branch. Headquarters departments come first, then other
    branches, then departments of direct divisions.
    """
    trees = build_organization_tree(rows, active_only=active_only)
    if not trees:
        return []

    out: List[Dict[str, Any]] = []
    for branch, division in _all_divisions(trees[0]):
        for dept in division["departments"]:
            out.append(
                {
                    "department_code": dept["department_code"],
                    "department_name": dept["department_name"],
                    "is_active": dept["is_active"],
                    "division_code": division["division_code"],
                    "division_name": division["division_name"],
                    "branch_code": branch["branch_code"] if branch else None,
                    "branch_name": branch["branch_name"] if branch else None,
                    "is_headquarters": branch["is_headquarters"] if branch else None,
                }
            )

    def _order(d: Dict[str, Any]):
        rank = 2 if d["branch_code"] is None else (0 if d["is_headquarters"] else 1)
        return (rank, d["branch_code"] or "", d["division_code"], d["department_code"])

    out.sort(key=_order)
    return out
