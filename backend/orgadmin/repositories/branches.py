"""
branches.py — Data Access for Branches

Purpose:
- CRUD over the Branches table.
- Keep "at most one headquarters per company" true under concurrent writers.

Headquarters rule:
- Marking a branch as headquarters and clearing every sibling happens in one
  conditional UPDATE, inside the same transaction as the insert/update that
  triggered it, while holding a per-company lock. Two requests racing to set
  different headquarters for one company are serialized; the later one wins.
- A company's lock lives as long as the company; CompanyRepository.delete
  drops it.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple

from orgadmin.core.exceptions import DuplicateRecordError, HierarchyError, RecordNotFoundError
from orgadmin.core.logging import get_logger
from orgadmin.db.executor import QueryExecutor
from orgadmin.repositories.base import BaseRepository, like_pattern

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# Per-company headquarters locks
# -----------------------------------------------------------------------------

_hq_locks: Dict[str, threading.Lock] = {}
_hq_locks_guard = threading.Lock()


def headquarters_lock(company_code: str) -> threading.Lock:
    with _hq_locks_guard:
        return _hq_locks.setdefault(company_code, threading.Lock())


def release_headquarters_lock(company_code: str) -> None:
    """Forget a deleted company's lock; a holder keeps its own reference."""
    with _hq_locks_guard:
        _hq_locks.pop(company_code, None)


_CLAIM_HEADQUARTERS_SQL = """
    UPDATE Branches
    SET is_headquarters = CASE WHEN branch_code = @branch_code THEN 1 ELSE 0 END,
        updated_date = GETDATE(),
        updated_by = @updated_by
    WHERE company_code = @company_code
      AND (is_headquarters = 1 OR branch_code = @branch_code)
"""


class BranchRepository(BaseRepository):
    entity = "Branch"
    table = "Branches"
    key_column = "branch_code"
    alias = "b"
    select_sql = """
        SELECT b.branch_code, b.branch_name, b.company_code,
               b.is_headquarters, b.is_active,
               b.created_date, b.created_by, b.updated_date, b.updated_by,
               c.company_name_th, c.company_name_en,
               (SELECT COUNT(*) FROM Divisions d WHERE d.branch_code = b.branch_code) AS division_count
    """
    from_sql = "FROM Branches b INNER JOIN Companies c ON b.company_code = c.company_code"
    order_by = "b.company_code, b.branch_code"
    insert_columns = ("branch_code", "branch_name", "company_code", "is_headquarters", "is_active")
    update_columns = ("branch_name", "is_headquarters", "is_active")

    def _filter_clause(self, filters: Mapping[str, Any]) -> Tuple[str, Dict[str, Any]]:
        where = ""
        params: Dict[str, Any] = {}
        if filters.get("company_code"):
            where += " AND b.company_code = @company_code"
            params["company_code"] = filters["company_code"]
        if filters.get("is_active") is not None:
            where += " AND b.is_active = @is_active"
            params["is_active"] = bool(filters["is_active"])
        if filters.get("is_headquarters") is not None:
            where += " AND b.is_headquarters = @is_headquarters"
            params["is_headquarters"] = bool(filters["is_headquarters"])
        if filters.get("search"):
            where += " AND (b.branch_name LIKE @search OR b.branch_code LIKE @search)"
            params["search"] = like_pattern(filters["search"])
        return where, params

    # ------------------------------------------------------------------ #
    def _claim_headquarters(
        self,
        executor: QueryExecutor,
        company_code: str,
        branch_code: str,
        updated_by: Optional[str],
    ) -> None:
        executor.execute(
            _CLAIM_HEADQUARTERS_SQL,
            {"branch_code": branch_code, "company_code": company_code, "updated_by": updated_by},
        )
        logger.info("Branch %s is now headquarters of %s", branch_code, company_code)

    def create(self, data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        if not self.executor.enabled:
            return None

        code = data["branch_code"]
        company_code = data["company_code"]
        if self.exists(code):
            raise DuplicateRecordError(self.entity, code)
        if not self.executor.scalar(
            "SELECT COUNT(*) AS total FROM Companies WHERE company_code = @company_code",
            {"company_code": company_code},
        ):
            raise HierarchyError(f"Company {company_code} does not exist")

        if data.get("is_headquarters"):
            row = {**data, "is_headquarters": False}
            with headquarters_lock(company_code):
                with self.executor.transaction() as tx:
                    self._insert(row, tx)
                    self._claim_headquarters(tx, company_code, code, data.get("created_by"))
        else:
            self._insert({**data, "is_headquarters": False})

        self._invalidate_stats()
        logger.info("Created branch %s under %s", code, company_code)
        return self.find_by_code(code)

    def update(self, code: str, data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        existing = self.find_by_code(code)
        if existing is None:
            raise RecordNotFoundError(self.entity, code)

        company_code = existing["company_code"]
        if data.get("is_headquarters"):
            with headquarters_lock(company_code):
                with self.executor.transaction() as tx:
                    self._update(code, data, tx)
                    self._claim_headquarters(tx, company_code, code, data.get("updated_by"))
        else:
            self._update(code, data)

        self._invalidate_stats()
        return self.find_by_code(code)

    def delete(self, code: str) -> bool:
        divisions = self.executor.scalar(
            "SELECT COUNT(*) AS total FROM Divisions WHERE branch_code = @code",
            {"code": code},
        )
        if int(divisions) > 0:
            raise HierarchyError(f"Branch {code} still has {int(divisions)} division(s)")
        return super().delete(code)

    # ------------------------------------------------------------------ #
    def find_by_company(self, company_code: str) -> List[Dict[str, Any]]:
        return self.find_all({"company_code": company_code})

    def company_has_branches(self, company_code: str) -> bool:
        count = self.executor.scalar(
            "SELECT COUNT(*) AS total FROM Branches WHERE company_code = @company_code",
            {"company_code": company_code},
        )
        return int(count) > 0

    def get_statistics(self, company_code: Optional[str] = None) -> Dict[str, int]:
        query = """
            SELECT COUNT(*) AS total_branches,
                   COALESCE(SUM(CASE WHEN is_active = 1 THEN 1 ELSE 0 END), 0) AS active_branches,
                   COALESCE(SUM(CASE WHEN is_active = 0 THEN 1 ELSE 0 END), 0) AS inactive_branches,
                   COALESCE(SUM(CASE WHEN is_headquarters = 1 THEN 1 ELSE 0 END), 0) AS headquarters_count
            FROM Branches
        """
        params: Dict[str, Any] = {}
        if company_code:
            query += " WHERE company_code = @company_code"
            params["company_code"] = company_code

        row = self.executor.fetch_one(query, params) or {}
        keys = ("total_branches", "active_branches", "inactive_branches", "headquarters_count")
        return {k: int(row.get(k) or 0) for k in keys}
