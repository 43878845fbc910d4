"""
Purpose:
- Administrator endpoints for issued API keys and their usage log:
    • GET    /api-keys                   → all keys + today's usage
    • GET    /api-keys/usage?days=       → request counts per endpoint
    • POST   /api-keys/logs/cleanup      → drop old log rows
    • GET    /api-keys/{id}              → one key + its usage
    • PUT    /api-keys/{id}              → update name/description/permissions/expiry
    • PATCH  /api-keys/{id}/toggle       → enable / disable
    • POST   /api-keys/{id}/regenerate   → new key material (raw key shown once)
    • DELETE /api-keys/{id}              → revoke permanently
    • GET    /api-keys/{id}/logs         → recent requests made with the key

All routes require the admin bearer token.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from orgadmin.api.common import envelope, require_found
from orgadmin.core.database import get_executor
from orgadmin.core.security import get_current_admin
from orgadmin.db.executor import QueryExecutor
from orgadmin.repositories.api_keys import ApiKeyRepository
from orgadmin.repositories.api_logs import ApiLogRepository

router = APIRouter(
    prefix="/api-keys",
    tags=["api-keys"],
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class ApiKeyUpdate(BaseModel):
    app_name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    permissions: Optional[List[str]] = None
    expires_date: Optional[datetime] = None
    is_active: Optional[bool] = None

# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.get("")
def list_api_keys(
    admin: dict = Depends(get_current_admin),
    executor: QueryExecutor = Depends(get_executor),
):
    keys = ApiKeyRepository(executor).find_all()
    return envelope(keys, meta={"total": len(keys), "today": ApiLogRepository(executor).get_today_stats()})


@router.get("/usage")
def get_usage(
    days: int = Query(7, ge=1, le=365),
    admin: dict = Depends(get_current_admin),
    executor: QueryExecutor = Depends(get_executor),
):
    return envelope(ApiLogRepository(executor).get_usage_by_endpoint(days), meta={"days": days})


@router.post("/logs/cleanup")
def cleanup_logs(
    days_to_keep: int = Query(90, ge=1),
    admin: dict = Depends(get_current_admin),
    executor: QueryExecutor = Depends(get_executor),
):
    removed = ApiLogRepository(executor).clean_old_logs(days_to_keep)
    return envelope({"removed": removed}, message=f"Removed {removed} log rows")


@router.get("/{api_key_id}")
def get_api_key(
    api_key_id: str,
    admin: dict = Depends(get_current_admin),
    executor: QueryExecutor = Depends(get_executor),
):
    record = require_found(ApiKeyRepository(executor).find_by_id(api_key_id), "API key", api_key_id)
    return envelope(record, meta={"usage": ApiLogRepository(executor).get_api_key_stats(api_key_id)})


@router.put("/{api_key_id}")
def update_api_key(
    api_key_id: str,
    payload: ApiKeyUpdate,
    admin: dict = Depends(get_current_admin),
    executor: QueryExecutor = Depends(get_executor),
):
    data = {**payload.model_dump(exclude_unset=True), "updated_by": admin["username"]}
    try:
        record = ApiKeyRepository(executor).update(api_key_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return envelope(record, message="API key updated")


@router.patch("/{api_key_id}/toggle")
def toggle_api_key(
    api_key_id: str,
    admin: dict = Depends(get_current_admin),
    executor: QueryExecutor = Depends(get_executor),
):
    record = ApiKeyRepository(executor).toggle_status(api_key_id, admin["username"])
    state = "enabled" if record and record["is_active"] else "disabled"
    return envelope(record, message=f"API key {state}")


@router.post("/{api_key_id}/regenerate")
def regenerate_api_key(
    api_key_id: str,
    admin: dict = Depends(get_current_admin),
    executor: QueryExecutor = Depends(get_executor),
):
    issued = ApiKeyRepository(executor).regenerate(api_key_id, admin["username"])
    return envelope(issued, message="Store this API key now; it will not be shown again")


@router.delete("/{api_key_id}")
def delete_api_key(
    api_key_id: str,
    admin: dict = Depends(get_current_admin),
    executor: QueryExecutor = Depends(get_executor),
):
    ApiKeyRepository(executor).delete(api_key_id)
    return envelope(None, message="API key deleted")


@router.get("/{api_key_id}/logs")
def get_api_key_logs(
    api_key_id: str,
    limit: int = Query(100, ge=1, le=1000),
    admin: dict = Depends(get_current_admin),
    executor: QueryExecutor = Depends(get_executor),
):
    require_found(ApiKeyRepository(executor).find_by_id(api_key_id), "API key", api_key_id)
    logs = ApiLogRepository(executor).get_recent(api_key_id, limit=limit)
    return envelope(logs, meta={"total": len(logs)})
