"""
Purpose:
- Expose CRUD endpoints for companies, the root of the hierarchy:
    • GET    /companies                      → paginated list (search, is_active)
    • GET    /companies/{code}               → one company
    • POST   /companies                      → create
    • PUT    /companies/{code}               → update
    • PATCH  /companies/{code}/status        → activate / deactivate
    • DELETE /companies/{code}               → delete with all children
    • GET    /companies/{code}/branches      → its branches
    • GET    /companies/{code}/divisions     → its divisions

Role in System:
- The API layer holds no business logic. It maps request parameters to
  CompanyRepository calls and wraps results in the JSON envelope.

Data Flow:
Client → FastAPI Router → (this file) → CompanyRepository → QueryExecutor → response
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from orgadmin.api.common import StatusUpdate, actor, envelope, require_database, require_found
from orgadmin.core.database import get_executor
from orgadmin.core.security import require_api_key
from orgadmin.db.executor import QueryExecutor
from orgadmin.repositories.branches import BranchRepository
from orgadmin.repositories.companies import CompanyRepository
from orgadmin.repositories.divisions import DivisionRepository

router = APIRouter(
    prefix="/companies",
    tags=["companies"],
    dependencies=[Depends(require_api_key)],
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class CompanyCreate(BaseModel):
    company_code: str = Field(..., min_length=1, max_length=20)
    company_name_th: str = Field(..., min_length=1, max_length=200)
    company_name_en: Optional[str] = Field(None, max_length=200)
    tax_id: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=100)
    website: Optional[str] = Field(None, max_length=200)
    is_active: bool = True


class CompanyUpdate(BaseModel):
    company_name_th: Optional[str] = Field(None, min_length=1, max_length=200)
    company_name_en: Optional[str] = Field(None, max_length=200)
    tax_id: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=100)
    website: Optional[str] = Field(None, max_length=200)
    is_active: Optional[bool] = None

# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.get("")
def list_companies(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    executor: QueryExecutor = Depends(get_executor),
):
    result = CompanyRepository(executor).find_paginated(
        page, limit, {"search": search, "is_active": is_active}
    )
    return envelope(result["data"], pagination=result["pagination"])


@router.get("/{company_code}")
def get_company(company_code: str, executor: QueryExecutor = Depends(get_executor)):
    company = CompanyRepository(executor).find_by_code(company_code)
    return envelope(require_found(company, "Company", company_code))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_company(
    payload: CompanyCreate,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    require_database(executor)
    data = {**payload.model_dump(), "created_by": actor(api_key)}
    company = CompanyRepository(executor).create(data)
    return envelope(company, message="Company created")


@router.put("/{company_code}")
def update_company(
    company_code: str,
    payload: CompanyUpdate,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    data = {**payload.model_dump(exclude_unset=True), "updated_by": actor(api_key)}
    company = CompanyRepository(executor).update(company_code, data)
    return envelope(company, message="Company updated")


@router.patch("/{company_code}/status")
def update_company_status(
    company_code: str,
    payload: StatusUpdate,
    executor: QueryExecutor = Depends(get_executor),
    api_key: dict = Depends(require_api_key),
):
    company = CompanyRepository(executor).update_status(company_code, payload.is_active, actor(api_key))
    state = "activated" if payload.is_active else "deactivated"
    return envelope(company, message=f"Company {state}")


@router.delete("/{company_code}")
def delete_company(company_code: str, executor: QueryExecutor = Depends(get_executor)):
    CompanyRepository(executor).delete(company_code)
    return envelope(None, message="Company deleted")


@router.get("/{company_code}/branches")
def list_company_branches(company_code: str, executor: QueryExecutor = Depends(get_executor)):
    require_found(CompanyRepository(executor).find_by_code(company_code), "Company", company_code)
    branches = BranchRepository(executor).find_by_company(company_code)
    return envelope(branches, meta={"total": len(branches)})


@router.get("/{company_code}/divisions")
def list_company_divisions(company_code: str, executor: QueryExecutor = Depends(get_executor)):
    require_found(CompanyRepository(executor).find_by_code(company_code), "Company", company_code)
    divisions = DivisionRepository(executor).find_by_company(company_code)
    return envelope(divisions, meta={"total": len(divisions)})
