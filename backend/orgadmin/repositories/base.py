"""
Shared plumbing for the hierarchy repositories.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from orgadmin.core.cache import cache_clear
from orgadmin.core.exceptions import DuplicateRecordError, RecordNotFoundError
from orgadmin.core.logging import get_logger
from orgadmin.db.dialect import Page
from orgadmin.db.executor import QueryExecutor

logger = get_logger(__name__)

# Flag columns come back as 0/1 from SQLite and as bool from SQL Server.
BOOLEAN_COLUMNS = frozenset(
    {
        "is_active",
        "is_headquarters",
        "company_active",
        "branch_active",
        "division_active",
        "department_active",
    }
)

STATS_CACHE_NAMESPACE = "org"


def normalize_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    out = dict(row)
    for key in BOOLEAN_COLUMNS.intersection(out):
        if out[key] is not None:
            out[key] = bool(out[key])
    return out


def normalize_rows(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [normalize_row(r) for r in rows]


def build_pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def like_pattern(term: str) -> str:
    return f"%{term.strip()}%"


class BaseRepository:
    """
    Common finders for a table keyed by a business code.

    Subclasses provide the SELECT/FROM text, the main table alias, the key
    column and `_filter_clause()` for their fixed filter set.
    """

    entity = "Record"
    table = ""
    key_column = ""
    alias = ""
    select_sql = ""
    from_sql = ""
    order_by = ""
    insert_columns: Tuple[str, ...] = ()
    update_columns: Tuple[str, ...] = ()

    def __init__(self, executor: QueryExecutor):
        self.executor = executor

    # ------------------------------------------------------------------ #
    def _filter_clause(self, filters: Mapping[str, Any]) -> Tuple[str, Dict[str, Any]]:
        return "", {}

    def _invalidate_stats(self) -> None:
        cache_clear(STATS_CACHE_NAMESPACE)

    # ------------------------------------------------------------------ #
    def find_all(self, filters: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        where, params = self._filter_clause(filters or {})
        query = f"{self.select_sql} {self.from_sql} WHERE 1=1{where} ORDER BY {self.order_by}"
        return normalize_rows(self.executor.execute(query, params).rows)

    def find_by_code(self, code: str) -> Optional[Dict[str, Any]]:
        query = f"{self.select_sql} {self.from_sql} WHERE {self.alias}.{self.key_column} = @code"
        row = self.executor.fetch_one(query, {"code": code})
        return normalize_row(row) if row else None

    def find_paginated(
        self,
        page: int = 1,
        limit: int = 20,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        One page of rows plus {page, limit, total, pages}.

        The total comes from a separate COUNT query with the same predicate.
        Pages below 1 are read (and reported) as page 1.
        """
        page = max(int(page), 1)
        where, params = self._filter_clause(filters or {})
        total = self.executor.scalar(
            f"SELECT COUNT(*) AS total {self.from_sql} WHERE 1=1{where}",
            params,
        )
        result = self.executor.execute(
            f"{self.select_sql} {self.from_sql} WHERE 1=1{where} ORDER BY {self.order_by}",
            params,
            page=Page.from_page_number(page, limit),
        )
        return {
            "data": normalize_rows(result.rows),
            "pagination": build_pagination(page, limit, int(total)),
        }

    def exists(self, code: str) -> bool:
        count = self.executor.scalar(
            f"SELECT COUNT(*) AS total FROM {self.table} WHERE {self.key_column} = @code",
            {"code": code},
        )
        return int(count) > 0

    # ------------------------------------------------------------------ #
    # Writers
    # ------------------------------------------------------------------ #
    def _insert(self, data: Mapping[str, Any], executor: Optional[QueryExecutor] = None) -> None:
        executor = executor or self.executor
        columns = [c for c in self.insert_columns if c in data]
        names = ", ".join(columns + ["created_date", "created_by"])
        values = ", ".join([f"@{c}" for c in columns] + ["GETDATE()", "@created_by"])
        params = {c: data[c] for c in columns}
        params["created_by"] = data.get("created_by")
        executor.execute(f"INSERT INTO {self.table} ({names}) VALUES ({values})", params)

    def _update(
        self,
        code: str,
        data: Mapping[str, Any],
        executor: Optional[QueryExecutor] = None,
    ) -> None:
        executor = executor or self.executor
        columns = [c for c in self.update_columns if c in data]
        assignments = [f"{c} = @{c}" for c in columns]
        assignments += ["updated_date = GETDATE()", "updated_by = @updated_by"]
        params = {c: data[c] for c in columns}
        params.update(code=code, updated_by=data.get("updated_by"))
        result = executor.execute(
            f"UPDATE {self.table} SET {', '.join(assignments)} WHERE {self.key_column} = @code",
            params,
        )
        if result.affected == 0:
            raise RecordNotFoundError(self.entity, code)

    def create(self, data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Insert a new record; returns it as read back (None when the database is off)."""
        code = data[self.key_column]
        if self.exists(code):
            raise DuplicateRecordError(self.entity, code)
        self._insert(data)
        self._invalidate_stats()
        logger.info("Created %s %s", self.entity, code)
        return self.find_by_code(code)

    def update(self, code: str, data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        self._update(code, data)
        self._invalidate_stats()
        return self.find_by_code(code)

    def update_status(
        self,
        code: str,
        is_active: bool,
        updated_by: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        return self.update(code, {"is_active": is_active, "updated_by": updated_by})

    def delete(self, code: str) -> bool:
        result = self.executor.execute(
            f"DELETE FROM {self.table} WHERE {self.key_column} = @code",
            {"code": code},
        )
        if result.affected == 0:
            raise RecordNotFoundError(self.entity, code)
        self._invalidate_stats()
        logger.info("Deleted %s %s", self.entity, code)
        return True
