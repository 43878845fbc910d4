"""
Response envelope and small helpers shared by the v1 routers.

Every successful response is {success: true, data, pagination?, meta?, message?};
errors are rendered by the handlers in main.py as
{success: false, error: {code, message}}.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from pydantic import BaseModel

from orgadmin.db.executor import QueryExecutor


class StatusUpdate(BaseModel):
    is_active: bool


def envelope(
    data: Any = None,
    message: Optional[str] = None,
    pagination: Optional[Dict[str, Any]] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "data": data}
    if pagination is not None:
        body["pagination"] = pagination
    if meta is not None:
        body["meta"] = meta
    if message:
        body["message"] = message
    return body


def actor(api_key: Dict[str, Any]) -> str:
    """Audit name recorded in created_by / updated_by for API-key writes."""
    return f"api:{api_key.get('app_name', 'unknown')}"


def require_found(record: Optional[Dict[str, Any]], entity: str, code: str) -> Dict[str, Any]:
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found: {code}")
    return record


def require_database(executor: QueryExecutor) -> None:
    """Writes make no sense with the database switched off."""
    if not executor.enabled:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is disabled",
        )


def split_csv(value: Optional[str]) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]
