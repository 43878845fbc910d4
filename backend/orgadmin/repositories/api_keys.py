"""
api_keys.py — API Key Issuance and Verification

Purpose:
- Issue keys for external applications: `org_` + 48 hex characters.
- Persist only the SHA-256 hash of a key; the raw value is returned once,
  at issue/regenerate time, and cannot be recovered afterwards.
- Resolve an incoming raw key to its record (active and unexpired only).

Permissions are a comma separated subset of read, write, delete.
"""

from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from orgadmin.core.config import settings
from orgadmin.core.exceptions import RecordNotFoundError
from orgadmin.core.logging import get_logger
from orgadmin.db.executor import QueryExecutor
from orgadmin.repositories.base import normalize_row

logger = get_logger(__name__)

API_PERMISSIONS = ("read", "write", "delete")

_SELECT_SQL = """
    SELECT api_key_id, api_key_hash, key_prefix, app_name, description, permissions,
           is_active, expires_date, last_used_date,
           created_date, created_by, updated_date, updated_by
    FROM API_Keys
"""


def hash_api_key(raw_key: str) -> str:
    """SHA-256 hex digest of a raw key, the only form stored."""
    return hashlib.sha256(raw_key.encode()).hexdigest()


def new_raw_key() -> str:
    return f"{settings.API_KEY_PREFIX}{secrets.token_hex(24)}"


def normalize_permissions(value: Union[str, Iterable[str], None]) -> List[str]:
    """
    "read, write" / ["write", "read"] → ["read", "write"] (canonical order).

    Unknown names raise ValueError; an empty value means read-only.
    """
    if value is None:
        return ["read"]
    if isinstance(value, str):
        items = [p.strip().lower() for p in value.split(",")]
    else:
        items = [str(p).strip().lower() for p in value]
    items = [p for p in items if p]
    unknown = sorted(set(items) - set(API_PERMISSIONS))
    if unknown:
        raise ValueError(f"Unknown permission(s): {', '.join(unknown)}")
    if not items:
        return ["read"]
    return [p for p in API_PERMISSIONS if p in items]


def _as_datetime(value: Any) -> Optional[datetime]:
    # The embedded backend hands DATETIME columns back as text.
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _public(row: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    out = normalize_row(row)
    out.pop("api_key_hash", None)
    out["permissions"] = normalize_permissions(out.get("permissions"))
    return out


class ApiKeyRepository:
    def __init__(self, executor: QueryExecutor):
        self.executor = executor

    # ------------------------------------------------------------------ #
    def generate(
        self,
        app_name: str,
        permissions: Union[str, Iterable[str], None] = "read",
        description: Optional[str] = None,
        expires_date: Optional[datetime] = None,
        created_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a key. Returns {"api_key": <raw key>, "record": <stored record>}.
        """
        raw_key = new_raw_key()
        api_key_id = str(uuid.uuid4())
        self.executor.execute(
            """
            INSERT INTO API_Keys (
                api_key_id, api_key_hash, key_prefix, app_name, description,
                permissions, is_active, expires_date, created_date, created_by
            ) VALUES (
                @api_key_id, @api_key_hash, @key_prefix, @app_name, @description,
                @permissions, 1, @expires_date, GETDATE(), @created_by
            )
            """,
            {
                "api_key_id": api_key_id,
                "api_key_hash": hash_api_key(raw_key),
                "key_prefix": raw_key[:12],
                "app_name": app_name,
                "description": description,
                "permissions": ",".join(normalize_permissions(permissions)),
                "expires_date": expires_date,
                "created_by": created_by,
            },
        )
        logger.info("Issued API key %s for %s", api_key_id, app_name)
        return {"api_key": raw_key, "record": self.find_by_id(api_key_id)}

    def verify(self, raw_key: Optional[str]) -> Optional[Dict[str, Any]]:
        """Record for an active, unexpired key; None otherwise. Touches last_used_date."""
        if not raw_key:
            return None
        row = self.executor.fetch_one(
            f"{_SELECT_SQL} WHERE api_key_hash = @api_key_hash",
            {"api_key_hash": hash_api_key(raw_key)},
        )
        if row is None:
            return None

        record = _public(row)
        if not record["is_active"]:
            logger.warning("Rejected inactive API key %s", record["api_key_id"])
            return None
        expires = _as_datetime(record.get("expires_date"))
        if expires is not None and expires < datetime.now():
            logger.warning("Rejected expired API key %s", record["api_key_id"])
            return None

        self.executor.execute(
            "UPDATE API_Keys SET last_used_date = GETDATE() WHERE api_key_id = @api_key_id",
            {"api_key_id": record["api_key_id"]},
        )
        return record

    # ------------------------------------------------------------------ #
    def find_all(self) -> List[Dict[str, Any]]:
        rows = self.executor.execute(f"{_SELECT_SQL} ORDER BY created_date DESC").rows
        return [_public(r) for r in rows]

    def find_by_id(self, api_key_id: str) -> Optional[Dict[str, Any]]:
        row = self.executor.fetch_one(
            f"{_SELECT_SQL} WHERE api_key_id = @api_key_id",
            {"api_key_id": api_key_id},
        )
        return _public(row)

    def update(self, api_key_id: str, data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        params: Dict[str, Any] = {"api_key_id": api_key_id, "updated_by": data.get("updated_by")}
        assignments = []
        for column in ("app_name", "description", "expires_date", "is_active"):
            if column in data:
                assignments.append(f"{column} = @{column}")
                params[column] = data[column]
        if "permissions" in data:
            assignments.append("permissions = @permissions")
            params["permissions"] = ",".join(normalize_permissions(data["permissions"]))
        assignments += ["updated_date = GETDATE()", "updated_by = @updated_by"]

        result = self.executor.execute(
            f"UPDATE API_Keys SET {', '.join(assignments)} WHERE api_key_id = @api_key_id",
            params,
        )
        if result.affected == 0:
            raise RecordNotFoundError("API key", api_key_id)
        return self.find_by_id(api_key_id)

    def toggle_status(self, api_key_id: str, updated_by: Optional[str] = None) -> Optional[Dict[str, Any]]:
        result = self.executor.execute(
            """
            UPDATE API_Keys
            SET is_active = CASE WHEN is_active = 1 THEN 0 ELSE 1 END,
                updated_date = GETDATE(),
                updated_by = @updated_by
            WHERE api_key_id = @api_key_id
            """,
            {"api_key_id": api_key_id, "updated_by": updated_by},
        )
        if result.affected == 0:
            raise RecordNotFoundError("API key", api_key_id)
        record = self.find_by_id(api_key_id)
        logger.info("API key %s active=%s", api_key_id, record and record["is_active"])
        return record

    def regenerate(self, api_key_id: str, updated_by: Optional[str] = None) -> Dict[str, Any]:
        """Replace the key material; the old raw key stops working immediately."""
        raw_key = new_raw_key()
        result = self.executor.execute(
            """
            UPDATE API_Keys
            SET api_key_hash = @api_key_hash,
                key_prefix = @key_prefix,
                updated_date = GETDATE(),
                updated_by = @updated_by
            WHERE api_key_id = @api_key_id
            """,
            {
                "api_key_hash": hash_api_key(raw_key),
                "key_prefix": raw_key[:12],
                "updated_by": updated_by,
                "api_key_id": api_key_id,
            },
        )
        if result.affected == 0:
            raise RecordNotFoundError("API key", api_key_id)
        logger.info("Regenerated API key %s", api_key_id)
        return {"api_key": raw_key, "record": self.find_by_id(api_key_id)}

    def delete(self, api_key_id: str) -> bool:
        result = self.executor.execute(
            "DELETE FROM API_Keys WHERE api_key_id = @api_key_id",
            {"api_key_id": api_key_id},
        )
        if result.affected == 0:
            raise RecordNotFoundError("API key", api_key_id)
        logger.info("Deleted API key %s", api_key_id)
        return True
