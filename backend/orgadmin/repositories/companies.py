"""
companies.py — Data Access for Companies

Purpose:
- CRUD over the Companies table through the QueryExecutor.
- Cascade delete: a company takes its departments, divisions and branches
  with it, in one transaction.
- Dashboard counters (total / active / inactive).
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Tuple

from orgadmin.core.exceptions import RecordNotFoundError
from orgadmin.core.logging import get_logger
from orgadmin.repositories.base import BaseRepository, like_pattern
from orgadmin.repositories.branches import release_headquarters_lock

logger = get_logger(__name__)


class CompanyRepository(BaseRepository):
    entity = "Company"
    table = "Companies"
    key_column = "company_code"
    alias = "c"
    select_sql = """
        SELECT c.company_code, c.company_name_th, c.company_name_en, c.tax_id,
               c.address, c.phone, c.email, c.website, c.is_active,
               c.created_date, c.created_by, c.updated_date, c.updated_by,
               (SELECT COUNT(*) FROM Branches b WHERE b.company_code = c.company_code) AS branch_count,
               (SELECT COUNT(*) FROM Divisions d WHERE d.company_code = c.company_code) AS division_count
    """
    from_sql = "FROM Companies c"
    order_by = "c.company_code"
    insert_columns = (
        "company_code",
        "company_name_th",
        "company_name_en",
        "tax_id",
        "address",
        "phone",
        "email",
        "website",
        "is_active",
    )
    update_columns = insert_columns[1:]

    def _filter_clause(self, filters: Mapping[str, Any]) -> Tuple[str, Dict[str, Any]]:
        where = ""
        params: Dict[str, Any] = {}
        if filters.get("is_active") is not None:
            where += " AND c.is_active = @is_active"
            params["is_active"] = bool(filters["is_active"])
        if filters.get("search"):
            where += (
                " AND (c.company_code LIKE @search"
                " OR c.company_name_th LIKE @search"
                " OR c.company_name_en LIKE @search)"
            )
            params["search"] = like_pattern(filters["search"])
        return where, params

    def delete(self, code: str) -> bool:
        """
        Hard delete, children first.

        Departments → Divisions → Branches → Company, all inside one
        transaction; any failure rolls the whole cascade back.
        """
        params = {"code": code}
        with self.executor.transaction() as tx:
            tx.execute(
                """
                DELETE FROM Departments
                WHERE division_code IN (
                    SELECT division_code FROM Divisions WHERE company_code = @code
                )
                """,
                params,
            )
            tx.execute("DELETE FROM Divisions WHERE company_code = @code", params)
            tx.execute("DELETE FROM Branches WHERE company_code = @code", params)
            result = tx.execute("DELETE FROM Companies WHERE company_code = @code", params)
            if result.affected == 0:
                raise RecordNotFoundError(self.entity, code)

        release_headquarters_lock(code)
        self._invalidate_stats()
        logger.info("Deleted company %s with its branches, divisions and departments", code)
        return True

    def get_statistics(self) -> Dict[str, int]:
        row = self.executor.fetch_one(
            """
            SELECT COUNT(*) AS total_companies,
                   COALESCE(SUM(CASE WHEN is_active = 1 THEN 1 ELSE 0 END), 0) AS active_companies,
                   COALESCE(SUM(CASE WHEN is_active = 0 THEN 1 ELSE 0 END), 0) AS inactive_companies
            FROM Companies
            """
        ) or {}
        return {
            "total_companies": int(row.get("total_companies") or 0),
            "active_companies": int(row.get("active_companies") or 0),
            "inactive_companies": int(row.get("inactive_companies") or 0),
        }
