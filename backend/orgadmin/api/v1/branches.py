"""
Purpose:
- CRUD endpoints for branches:
    • GET    /branches                    → paginated list
    • GET    /branches/{code}             → one branch
    • POST   /branches                    → create (optionally as headquarters)
    • PUT    /branches/{code}             → update
    • PATCH  /branches/{code}/status      → activate / deactivate
    • DELETE /branches/{code}             → delete (refused while divisions remain)
    • GET    /branches/{code}/divisions   → divisions under the branch

Setting is_headquarters=true clears the flag on every other branch of the
same company (see BranchRepository).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from orgadmin.api.common import StatusUpdate, actor, envelope, require_database, require_found
from orgadmin.core.database import get_executor
from orgadmin.core.security import require_api_key
from orgadmin.db.executor import QueryExecutor
from orgadmin.repositories.branches import BranchRepository
from orgadmin.repositories.divisions import DivisionRepository

router = APIRouter(
    prefix="/branches",
    tags=["branches"],
    dependencies=[Depends(require_api_key)],
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class BranchCreate(BaseModel):
    branch_code: str = Field(..., min_length=1, max_length=20)
    branch_name: str = Field(..., min_length=1, max_length=200)
    company_code: str = Field(..., min_length=1, max_length=20)
    is_headquarters: bool = False
    is_active: bool = True


class BranchUpdate(BaseModel):
    branch_name: Optional[str] = Field(None, min_length=1, max_length=200)
    is_headquarters: Optional[bool] = None
    is_active: Optional[bool] = None

# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.get("")
def list_branches(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    company_code: Optional[str] = None,
    is_active: Optional[bool] = None,
    is_headquarters: Optional[bool] = None,
    search: Optional[str] = None,
    executor: QueryExecutor = Depends(get_executor),
):
    filters = {
        "company_code": company_code,
        "is_active": is_active,
        "is_headquarters": is_headquarters,
        "search": search,
    }
    result = BranchRepository(executor).find_paginated(page, limit, filters)
    return envelope(result["data"], pagination=result["pagination"])


@router.get("/{branch_code}")
def get_branch(branch_code: str, executor: QueryExecutor = Depends(get_executor)):
    return envelope(require_found(BranchRepository(executor).find_by_code(branch_code), "Branch", branch_code))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_branch(
    payload: BranchCreate,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    require_database(executor)
    data = {**payload.model_dump(), "created_by": actor(api_key)}
    return envelope(BranchRepository(executor).create(data), message="Branch created")


@router.put("/{branch_code}")
def update_branch(
    branch_code: str,
    payload: BranchUpdate,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    data = {**payload.model_dump(exclude_unset=True), "updated_by": actor(api_key)}
    return envelope(BranchRepository(executor).update(branch_code, data), message="Branch updated")


@router.patch("/{branch_code}/status")
def update_branch_status(
    branch_code: str,
    payload: StatusUpdate,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    branch = BranchRepository(executor).update_status(branch_code, payload.is_active, actor(api_key))
    return envelope(branch, message="Branch status updated")


@router.delete("/{branch_code}")
def delete_branch(branch_code: str, executor: QueryExecutor = Depends(get_executor)):
    BranchRepository(executor).delete(branch_code)
    return envelope(None, message="Branch deleted")


@router.get("/{branch_code}/divisions")
def list_branch_divisions(branch_code: str, executor: QueryExecutor = Depends(get_executor)):
    require_found(BranchRepository(executor).find_by_code(branch_code), "Branch", branch_code)
    divisions = DivisionRepository(executor).find_by_branch(branch_code)
    return envelope(divisions, meta={"total": len(divisions)})
