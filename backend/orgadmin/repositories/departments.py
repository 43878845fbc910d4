"""
departments.py — Data Access for Departments

Departments hang off a division; their company (and branch, if any) is
derived through that division.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from orgadmin.core.exceptions import DuplicateRecordError, HierarchyError, RecordNotFoundError
from orgadmin.core.logging import get_logger
from orgadmin.repositories.base import BaseRepository, like_pattern

logger = get_logger(__name__)


class DepartmentRepository(BaseRepository):
    entity = "Department"
    table = "Departments"
    key_column = "department_code"
    alias = "dp"
    select_sql = """
        SELECT dp.department_code, dp.department_name, dp.division_code,
               dp.is_active, dp.created_date, dp.created_by,
               dp.updated_date, dp.updated_by,
               d.division_name, d.company_code, d.branch_code,
               c.company_name_th, c.company_name_en, b.branch_name
    """
    from_sql = (
        "FROM Departments dp "
        "INNER JOIN Divisions d ON dp.division_code = d.division_code "
        "INNER JOIN Companies c ON d.company_code = c.company_code "
        "LEFT JOIN Branches b ON d.branch_code = b.branch_code"
    )
    order_by = "d.company_code, dp.division_code, dp.department_code"
    insert_columns = ("department_code", "department_name", "division_code", "is_active")
    update_columns = ("department_name", "is_active")

    def _filter_clause(self, filters: Mapping[str, Any]) -> Tuple[str, Dict[str, Any]]:
        where = ""
        params: Dict[str, Any] = {}
        if filters.get("division_code"):
            where += " AND dp.division_code = @division_code"
            params["division_code"] = filters["division_code"]
        if filters.get("company_code"):
            where += " AND d.company_code = @company_code"
            params["company_code"] = filters["company_code"]
        if filters.get("branch_code"):
            where += " AND d.branch_code = @branch_code"
            params["branch_code"] = filters["branch_code"]
        if filters.get("is_active") is not None:
            where += " AND dp.is_active = @is_active"
            params["is_active"] = bool(filters["is_active"])
        if filters.get("search"):
            where += " AND (dp.department_name LIKE @search OR dp.department_code LIKE @search)"
            params["search"] = like_pattern(filters["search"])
        return where, params

    # ------------------------------------------------------------------ #
    def _division_is_active(self, division_code: str) -> Optional[bool]:
        """None when the division does not exist."""
        row = self.executor.fetch_one(
            "SELECT is_active FROM Divisions WHERE division_code = @division_code",
            {"division_code": division_code},
        )
        if row is None:
            return None
        return bool(row["is_active"])

    def create(self, data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        if not self.executor.enabled:
            return None

        code = data["department_code"]
        if self.exists(code):
            raise DuplicateRecordError(self.entity, code)
        if self._division_is_active(data["division_code"]) is None:
            raise HierarchyError(f"Division {data['division_code']} does not exist")

        self._insert(data)
        self._invalidate_stats()
        logger.info("Created department %s under %s", code, data["division_code"])
        return self.find_by_code(code)

    def find_by_division(self, division_code: str) -> List[Dict[str, Any]]:
        return self.find_all({"division_code": division_code})

    def move_to_division(
        self,
        code: str,
        division_code: str,
        updated_by: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Re-parent a department. The target division must exist and be active."""
        if not self._division_is_active(division_code):
            raise HierarchyError(f"Target division {division_code} not found or inactive")

        result = self.executor.execute(
            """
            UPDATE Departments
            SET division_code = @division_code,
                updated_date = GETDATE(),
                updated_by = @updated_by
            WHERE department_code = @code
            """,
            {"division_code": division_code, "updated_by": updated_by, "code": code},
        )
        if result.affected == 0:
            raise RecordNotFoundError(self.entity, code)

        self._invalidate_stats()
        logger.info("Moved department %s to division %s", code, division_code)
        return self.find_by_code(code)

    def get_statistics(self, filters: Optional[Mapping[str, Any]] = None) -> Dict[str, int]:
        filters = filters or {}
        query = """
            SELECT COUNT(*) AS total_departments,
                   COALESCE(SUM(CASE WHEN dp.is_active = 1 THEN 1 ELSE 0 END), 0) AS active_departments,
                   COALESCE(SUM(CASE WHEN dp.is_active = 0 THEN 1 ELSE 0 END), 0) AS inactive_departments,
                   COUNT(DISTINCT dp.division_code) AS divisions_count
            FROM Departments dp
            INNER JOIN Divisions d ON dp.division_code = d.division_code
            WHERE 1=1
        """
        params: Dict[str, Any] = {}
        for column in ("division_code", "company_code", "branch_code"):
            if filters.get(column):
                prefix = "dp" if column == "division_code" else "d"
                query += f" AND {prefix}.{column} = @{column}"
                params[column] = filters[column]

        row = self.executor.fetch_one(query, params) or {}
        keys = ("total_departments", "active_departments", "inactive_departments", "divisions_count")
        return {k: int(row.get(k) or 0) for k in keys}
