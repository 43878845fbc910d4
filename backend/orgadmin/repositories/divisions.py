"""
divisions.py — Data Access for Divisions

A division sits directly under its company (branch_code NULL) or under one
of that company's branches. Every write that sets branch_code checks that
the branch belongs to the division's company.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from orgadmin.core.exceptions import DuplicateRecordError, HierarchyError, RecordNotFoundError
from orgadmin.core.logging import get_logger
from orgadmin.repositories.base import BaseRepository, like_pattern

logger = get_logger(__name__)


class DivisionRepository(BaseRepository):
    entity = "Division"
    table = "Divisions"
    key_column = "division_code"
    alias = "d"
    select_sql = """
        SELECT d.division_code, d.division_name, d.company_code, d.branch_code,
               d.is_active, d.created_date, d.created_by, d.updated_date, d.updated_by,
               c.company_name_th, c.company_name_en, b.branch_name,
               (SELECT COUNT(*) FROM Departments dp WHERE dp.division_code = d.division_code) AS department_count
    """
    from_sql = (
        "FROM Divisions d "
        "INNER JOIN Companies c ON d.company_code = c.company_code "
        "LEFT JOIN Branches b ON d.branch_code = b.branch_code"
    )
    order_by = "d.company_code, d.division_code"
    insert_columns = ("division_code", "division_name", "company_code", "branch_code", "is_active")
    update_columns = ("division_name", "branch_code", "is_active")

    def _filter_clause(self, filters: Mapping[str, Any]) -> Tuple[str, Dict[str, Any]]:
        where = ""
        params: Dict[str, Any] = {}
        if filters.get("company_code"):
            where += " AND d.company_code = @company_code"
            params["company_code"] = filters["company_code"]
        if filters.get("branch_code"):
            where += " AND d.branch_code = @branch_code"
            params["branch_code"] = filters["branch_code"]
        if filters.get("is_active") is not None:
            where += " AND d.is_active = @is_active"
            params["is_active"] = bool(filters["is_active"])
        if filters.get("search"):
            where += " AND (d.division_name LIKE @search OR d.division_code LIKE @search)"
            params["search"] = like_pattern(filters["search"])
        return where, params

    # ------------------------------------------------------------------ #
    def _check_branch(self, company_code: str, branch_code: Optional[str]) -> None:
        """A division's branch, when it has one, must exist under the same company."""
        if not branch_code:
            return
        row = self.executor.fetch_one(
            "SELECT company_code FROM Branches WHERE branch_code = @branch_code",
            {"branch_code": branch_code},
        )
        if row is None:
            raise HierarchyError(f"Branch {branch_code} does not exist")
        if row["company_code"] != company_code:
            raise HierarchyError(
                f"Branch {branch_code} belongs to {row['company_code']}, not {company_code}"
            )

    def create(self, data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        if not self.executor.enabled:
            return None

        code = data["division_code"]
        company_code = data["company_code"]
        if self.exists(code):
            raise DuplicateRecordError(self.entity, code)
        if not self.executor.scalar(
            "SELECT COUNT(*) AS total FROM Companies WHERE company_code = @company_code",
            {"company_code": company_code},
        ):
            raise HierarchyError(f"Company {company_code} does not exist")
        self._check_branch(company_code, data.get("branch_code"))

        self._insert(data)
        self._invalidate_stats()
        logger.info("Created division %s under %s", code, data.get("branch_code") or company_code)
        return self.find_by_code(code)

    def update(self, code: str, data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        if "branch_code" in data:
            existing = self.find_by_code(code)
            if existing is None:
                raise RecordNotFoundError(self.entity, code)
            self._check_branch(existing["company_code"], data["branch_code"])
        return super().update(code, data)

    def delete(self, code: str) -> bool:
        departments = self.executor.scalar(
            "SELECT COUNT(*) AS total FROM Departments WHERE division_code = @code",
            {"code": code},
        )
        if int(departments) > 0:
            raise HierarchyError(f"Division {code} still has {int(departments)} department(s)")
        return super().delete(code)

    # ------------------------------------------------------------------ #
    def find_by_company(self, company_code: str) -> List[Dict[str, Any]]:
        return self.find_all({"company_code": company_code})

    def find_by_branch(self, branch_code: str) -> List[Dict[str, Any]]:
        return self.find_all({"branch_code": branch_code})

    def move_to_branch(
        self,
        code: str,
        branch_code: Optional[str],
        updated_by: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Re-parent a division; `branch_code=None` makes it a direct company division."""
        existing = self.find_by_code(code)
        if existing is None:
            raise RecordNotFoundError(self.entity, code)
        self._check_branch(existing["company_code"], branch_code)

        self._update(code, {"branch_code": branch_code, "updated_by": updated_by})
        self._invalidate_stats()
        logger.info(
            "Moved division %s from %s to %s",
            code,
            existing.get("branch_code") or "(company)",
            branch_code or "(company)",
        )
        return self.find_by_code(code)

    def get_statistics(self, filters: Optional[Mapping[str, Any]] = None) -> Dict[str, int]:
        filters = filters or {}
        query = """
            SELECT COUNT(*) AS total_divisions,
                   COALESCE(SUM(CASE WHEN is_active = 1 THEN 1 ELSE 0 END), 0) AS active_divisions,
                   COALESCE(SUM(CASE WHEN is_active = 0 THEN 1 ELSE 0 END), 0) AS inactive_divisions,
                   COUNT(DISTINCT company_code) AS companies_count,
                   COUNT(DISTINCT branch_code) AS branches_count
            FROM Divisions
            WHERE 1=1
        """
        params: Dict[str, Any] = {}
        if filters.get("company_code"):
            query += " AND company_code = @company_code"
            params["company_code"] = filters["company_code"]
        if filters.get("branch_code"):
            query += " AND branch_code = @branch_code"
            params["branch_code"] = filters["branch_code"]

        row = self.executor.fetch_one(query, params) or {}
        keys = (
            "total_divisions",
            "active_divisions",
            "inactive_divisions",
            "companies_count",
            "branches_count",
        )
        return {k: int(row.get(k) or 0) for k in keys}
