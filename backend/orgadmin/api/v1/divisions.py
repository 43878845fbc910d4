"""
Purpose:
- CRUD endpoints for divisions plus re-parenting:
    • GET    /divisions                      → paginated list
    • GET    /divisions/{code}               → one division
    • POST   /divisions                      → create (branch optional)
    • PUT    /divisions/{code}               → update
    • PATCH  /divisions/{code}/status        → activate / deactivate
    • PATCH  /divisions/{code}/move          → move under another branch, or
                                               directly under the company
    • DELETE /divisions/{code}               → delete (refused while departments remain)
    • GET    /divisions/{code}/departments   → its departments
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from orgadmin.api.common import StatusUpdate, actor, envelope, require_database, require_found
from orgadmin.core.database import get_executor
from orgadmin.core.security import require_api_key
from orgadmin.db.executor import QueryExecutor
from orgadmin.repositories.departments import DepartmentRepository
from orgadmin.repositories.divisions import DivisionRepository

router = APIRouter(
    prefix="/divisions",
    tags=["divisions"],
    dependencies=[Depends(require_api_key)],
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class DivisionCreate(BaseModel):
    division_code: str = Field(..., min_length=1, max_length=20)
    division_name: str = Field(..., min_length=1, max_length=200)
    company_code: str = Field(..., min_length=1, max_length=20)
    branch_code: Optional[str] = Field(None, max_length=20)
    is_active: bool = True


class DivisionUpdate(BaseModel):
    division_name: Optional[str] = Field(None, min_length=1, max_length=200)
    branch_code: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = None


class DivisionMove(BaseModel):
    # null moves the division directly under its company
    branch_code: Optional[str] = Field(None, max_length=20)

# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.get("")
def list_divisions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    company_code: Optional[str] = None,
    branch_code: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    executor: QueryExecutor = Depends(get_executor),
):
    filters = {
        "company_code": company_code,
        "branch_code": branch_code,
        "is_active": is_active,
        "search": search,
    }
    result = DivisionRepository(executor).find_paginated(page, limit, filters)
    return envelope(result["data"], pagination=result["pagination"])


@router.get("/{division_code}")
def get_division(division_code: str, executor: QueryExecutor = Depends(get_executor)):
    division = DivisionRepository(executor).find_by_code(division_code)
    return envelope(require_found(division, "Division", division_code))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_division(
    payload: DivisionCreate,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    require_database(executor)
    data = {**payload.model_dump(), "created_by": actor(api_key)}
    return envelope(DivisionRepository(executor).create(data), message="Division created")


@router.put("/{division_code}")
def update_division(
    division_code: str,
    payload: DivisionUpdate,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    data = {**payload.model_dump(exclude_unset=True), "updated_by": actor(api_key)}
    return envelope(DivisionRepository(executor).update(division_code, data), message="Division updated")


@router.patch("/{division_code}/status")
def update_division_status(
    division_code: str,
    payload: StatusUpdate,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    division = DivisionRepository(executor).update_status(division_code, payload.is_active, actor(api_key))
    return envelope(division, message="Division status updated")


@router.patch("/{division_code}/move")
def move_division(
    division_code: str,
    payload: DivisionMove,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    division = DivisionRepository(executor).move_to_branch(division_code, payload.branch_code, actor(api_key))
    return envelope(division, message="Division moved")


@router.delete("/{division_code}")
def delete_division(division_code: str, executor: QueryExecutor = Depends(get_executor)):
    DivisionRepository(executor).delete(division_code)
    return envelope(None, message="Division deleted")


@router.get("/{division_code}/departments")
def list_division_departments(division_code: str, executor: QueryExecutor = Depends(get_executor)):
    require_found(DivisionRepository(executor).find_by_code(division_code), "Division", division_code)
    departments = DepartmentRepository(executor).find_by_division(division_code)
    return envelope(departments, meta={"total": len(departments)})
