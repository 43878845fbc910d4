"""
Purpose:
- CRUD endpoints for departments, the leaves of the hierarchy:
    • GET    /departments                  → paginated list
    • GET    /departments/{code}           → one department
    • POST   /departments                  → create
    • PUT    /departments/{code}           → update
    • PATCH  /departments/{code}/status    → activate / deactivate
    • PATCH  /departments/{code}/move      → move to another (active) division
    • DELETE /departments/{code}           → delete
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from orgadmin.api.common import StatusUpdate, actor, envelope, require_database, require_found
from orgadmin.core.database import get_executor
from orgadmin.core.security import require_api_key
from orgadmin.db.executor import QueryExecutor
from orgadmin.repositories.departments import DepartmentRepository

router = APIRouter(
    prefix="/departments",
    tags=["departments"],
    dependencies=[Depends(require_api_key)],
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class DepartmentCreate(BaseModel):
    department_code: str = Field(..., min_length=1, max_length=20)
    department_name: str = Field(..., min_length=1, max_length=200)
    division_code: str = Field(..., min_length=1, max_length=20)
    is_active: bool = True


class DepartmentUpdate(BaseModel):
    department_name: Optional[str] = Field(None, min_length=1, max_length=200)
    is_active: Optional[bool] = None


class DepartmentMove(BaseModel):
    division_code: str = Field(..., min_length=1, max_length=20)

# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.get("")
def list_departments(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    division_code: Optional[str] = None,
    company_code: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    executor: QueryExecutor = Depends(get_executor),
):
    filters = {
        "division_code": division_code,
        "company_code": company_code,
        "is_active": is_active,
        "search": search,
    }
    result = DepartmentRepository(executor).find_paginated(page, limit, filters)
    return envelope(result["data"], pagination=result["pagination"])


@router.get("/{department_code}")
def get_department(department_code: str, executor: QueryExecutor = Depends(get_executor)):
    department = DepartmentRepository(executor).find_by_code(department_code)
    return envelope(require_found(department, "Department", department_code))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_department(
    payload: DepartmentCreate,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    require_database(executor)
    data = {**payload.model_dump(), "created_by": actor(api_key)}
    return envelope(DepartmentRepository(executor).create(data), message="Department created")


@router.put("/{department_code}")
def update_department(
    department_code: str,
    payload: DepartmentUpdate,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    data = {**payload.model_dump(exclude_unset=True), "updated_by": actor(api_key)}
    return envelope(DepartmentRepository(executor).update(department_code, data), message="Department updated")


@router.patch("/{department_code}/status")
def update_department_status(
    department_code: str,
    payload: StatusUpdate,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    department = DepartmentRepository(executor).update_status(department_code, payload.is_active, actor(api_key))
    return envelope(department, message="Department status updated")


@router.patch("/{department_code}/move")
def move_department(
    department_code: str,
    payload: DepartmentMove,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    department = DepartmentRepository(executor).move_to_division(
        department_code, payload.division_code, actor(api_key)
    )
    return envelope(department, message="Department moved")


@router.delete("/{department_code}")
def delete_department(department_code: str, executor: QueryExecutor = Depends(get_executor)):
    DepartmentRepository(executor).delete(department_code)
    return envelope(None, message="Department deleted")
