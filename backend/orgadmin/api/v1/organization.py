"""
Purpose:
- Read endpoints spanning the whole hierarchy:
    • GET /organization-tree                    → every company as a nested tree
    • GET /organization-tree/{code}             → one company's tree
    • GET /search?q=&type=&page=&limit=         → search across all levels
    • GET /hierarchy/{type}/{code}              → ancestor path of one entity
    • GET /statistics                           → dashboard counters
    • GET /flexible/company-departments?company= → company + all its departments
    • GET /flexible/company-full?company=        → company + every level, flat
    • GET /flexible/custom?company=&include=&skip=

Key Interactions:
- orgadmin.services.organization_service → queries + tree assembly.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from orgadmin.api.common import envelope, require_found, split_csv
from orgadmin.core.database import get_executor
from orgadmin.core.security import require_api_key
from orgadmin.db.executor import QueryExecutor
from orgadmin.repositories.branches import BranchRepository
from orgadmin.repositories.companies import CompanyRepository
from orgadmin.repositories.departments import DepartmentRepository
from orgadmin.repositories.divisions import DivisionRepository
from orgadmin.services.organization_service import OrganizationService

router = APIRouter(
    tags=["organization"],
    dependencies=[Depends(require_api_key)],
)


def _company_param(company: Optional[str]) -> str:
    if not company:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "MISSING_COMPANY_CODE", "message": "Query parameter 'company' is required"},
        )
    return company

# -----------------------------------------------------------------------------
# Tree
# -----------------------------------------------------------------------------

@router.get("/organization-tree")
def get_organization_tree(
    active_only: bool = True,
    executor: QueryExecutor = Depends(get_executor),
):
    tree = OrganizationService(executor).get_organization_tree(active_only=active_only)
    return envelope(tree, meta={"total_companies": len(tree)})


@router.get("/organization-tree/{company_code}")
def get_company_organization_tree(
    company_code: str,
    active_only: bool = True,
    executor: QueryExecutor = Depends(get_executor),
):
    tree = OrganizationService(executor).get_organization_tree(company_code, active_only=active_only)
    return envelope(require_found(tree[0] if tree else None, "Company", company_code))

# -----------------------------------------------------------------------------
# Search / hierarchy / statistics
# -----------------------------------------------------------------------------

@router.get("/search")
def search(
    q: str = Query(..., description="At least 2 characters"),
    type: Optional[str] = Query(None, description="companies, branches, divisions or departments"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    active_only: bool = True,
    executor: QueryExecutor = Depends(get_executor),
):
    try:
        result = OrganizationService(executor).search(q, type, page, limit, active_only)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return envelope(result["results"], pagination=result["pagination"], meta={"query": result["query"]})


@router.get("/hierarchy/{entity_type}/{code}")
def get_hierarchy(entity_type: str, code: str, executor: QueryExecutor = Depends(get_executor)):
    try:
        hierarchy = OrganizationService(executor).get_hierarchy(entity_type, code)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return envelope(require_found(hierarchy, entity_type, code))


@router.get("/statistics")
def get_statistics(executor: QueryExecutor = Depends(get_executor)):
    data = {
        "overview": OrganizationService(executor).get_organization_stats(),
        "companies": CompanyRepository(executor).get_statistics(),
        "branches": BranchRepository(executor).get_statistics(),
        "divisions": DivisionRepository(executor).get_statistics(),
        "departments": DepartmentRepository(executor).get_statistics(),
    }
    return envelope(data)

# -----------------------------------------------------------------------------
# Flexible views
# -----------------------------------------------------------------------------

@router.get("/flexible/company-departments")
def get_company_departments(
    company: Optional[str] = None,
    executor: QueryExecutor = Depends(get_executor),
):
    code = _company_param(company)
    result = require_found(
        OrganizationService(executor).get_company_with_departments(code), "Company", code
    )
    meta = {"included": ["company", "departments"], "total_departments": len(result["departments"])}
    return envelope(result, meta=meta)


@router.get("/flexible/company-full")
def get_company_full(
    company: Optional[str] = None,
    executor: QueryExecutor = Depends(get_executor),
):
    code = _company_param(company)
    result = require_found(OrganizationService(executor).get_company_full(code), "Company", code)
    meta = {
        "included": ["company", "branches", "divisions", "departments"],
        "total_branches": len(result["branches"]),
        "total_divisions": len(result["divisions"]),
        "total_departments": len(result["departments"]),
    }
    return envelope(result, meta=meta)


@router.get("/flexible/custom")
def get_custom(
    company: Optional[str] = None,
    include: Optional[str] = Query(None, description="Comma separated: branches,divisions,departments"),
    skip: Optional[str] = Query(None, description="Comma separated levels to leave out"),
    executor: QueryExecutor = Depends(get_executor),
):
    code = _company_param(company)
    result = OrganizationService(executor).get_custom_organization_data(
        code, include=split_csv(include), skip=split_csv(skip)
    )
    result = require_found(result, "Company", code)
    return envelope(result["data"], meta=result["meta"])
