"""
organization_service.py — Cross-Level Organization Queries

Purpose:
- Serve the read endpoints that span the whole hierarchy:
    * organization tree (all companies or one)
    * flat per-company views (company-full, company-departments, custom)
    * global search across the four levels
    * ancestor path of a single entity
    * dashboard statistics (cached)
- Entity CRUD stays in repositories/*; this module only reads.

Data Flow:
    OrganizationService → QueryExecutor (flat joined rows) → services/tree.py
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from orgadmin.core.cache import cache_get, cache_set, make_key
from orgadmin.core.config import settings
from orgadmin.core.logging import get_logger
from orgadmin.db.dialect import Page
from orgadmin.db.executor import QueryExecutor
from orgadmin.repositories.base import STATS_CACHE_NAMESPACE, build_pagination, normalize_rows
from orgadmin.services.tree import (
    build_organization_tree,
    collect_company_departments,
    flatten_company_structure,
)

logger = get_logger(__name__)

LEVELS = ("branches", "divisions", "departments")
ENTITY_TYPES = ("company", "branch", "division", "department")
SEARCH_TYPES = ("companies", "branches", "divisions", "departments")
MIN_SEARCH_LENGTH = 2
MAX_SEARCH_LIMIT = 100

# -----------------------------------------------------------------------------
# Tree rows
# -----------------------------------------------------------------------------

# Branch path first, then divisions attached directly to the company.
# The second half pads the branch columns with typed NULLs.
_TREE_SQL = """
    SELECT c.company_code AS company_code, c.company_name_th, c.company_name_en, c.tax_id,
           c.is_active AS company_active,
           b.branch_code AS branch_code, b.branch_name, b.is_headquarters, b.is_active AS branch_active,
           d.division_code AS division_code, d.division_name, d.is_active AS division_active,
           dp.department_code AS department_code, dp.department_name, dp.is_active AS department_active
    FROM Companies c
    LEFT JOIN Branches b ON b.company_code = c.company_code
    LEFT JOIN Divisions d ON d.branch_code = b.branch_code
    LEFT JOIN Departments dp ON dp.division_code = d.division_code
    WHERE 1=1{company_filter}
    UNION ALL
    SELECT c.company_code, c.company_name_th, c.company_name_en, c.tax_id,
           c.is_active AS company_active,
           CAST(NULL AS NVARCHAR(20)) AS branch_code,
           CAST(NULL AS NVARCHAR(200)) AS branch_name,
           CAST(NULL AS BIT) AS is_headquarters,
           CAST(NULL AS BIT) AS branch_active,
           d.division_code, d.division_name, d.is_active AS division_active,
           dp.department_code, dp.department_name, dp.is_active AS department_active
    FROM Companies c
    INNER JOIN Divisions d ON d.company_code = c.company_code AND d.branch_code IS NULL
    LEFT JOIN Departments dp ON dp.division_code = d.division_code
    WHERE 1=1{company_filter}
    ORDER BY company_code, branch_code, division_code, department_code
"""

# -----------------------------------------------------------------------------
# Search sources: type → (label, select, from, match predicate, active predicate,
#                         code column, name column)
# -----------------------------------------------------------------------------

_SEARCH_SOURCES: Dict[str, Dict[str, str]] = {
    "companies": {
        "type": "company",
        "select": """
            SELECT 'company' AS type, c.company_code AS code,
                   c.company_name_th AS name_th, c.company_name_en AS name_en,
                   c.is_active, c.company_code AS parent_company,
                   NULL AS parent_branch, NULL AS parent_division
        """,
        "from": "FROM Companies c",
        "match": (
            "(c.company_code LIKE @term OR c.company_name_th LIKE @term"
            " OR c.company_name_en LIKE @term OR c.tax_id LIKE @term)"
        ),
        "active": " AND c.is_active = 1",
        "code": "c.company_code",
        "name": "c.company_name_th",
    },
    "branches": {
        "type": "branch",
        "select": """
            SELECT 'branch' AS type, b.branch_code AS code,
                   b.branch_name AS name_th, NULL AS name_en,
                   b.is_active, b.company_code AS parent_company,
                   NULL AS parent_branch, NULL AS parent_division
        """,
        "from": "FROM Branches b INNER JOIN Companies c ON b.company_code = c.company_code",
        "match": "(b.branch_code LIKE @term OR b.branch_name LIKE @term OR c.company_name_th LIKE @term)",
        "active": " AND b.is_active = 1 AND c.is_active = 1",
        "code": "b.branch_code",
        "name": "b.branch_name",
    },
    "divisions": {
        "type": "division",
        "select": """
            SELECT 'division' AS type, d.division_code AS code,
                   d.division_name AS name_th, NULL AS name_en,
                   d.is_active, d.company_code AS parent_company,
                   d.branch_code AS parent_branch, NULL AS parent_division
        """,
        "from": (
            "FROM Divisions d INNER JOIN Companies c ON d.company_code = c.company_code "
            "LEFT JOIN Branches b ON d.branch_code = b.branch_code"
        ),
        "match": (
            "(d.division_code LIKE @term OR d.division_name LIKE @term"
            " OR c.company_name_th LIKE @term OR b.branch_name LIKE @term)"
        ),
        "active": (
            " AND d.is_active = 1 AND c.is_active = 1"
            " AND (b.is_active = 1 OR b.branch_code IS NULL)"
        ),
        "code": "d.division_code",
        "name": "d.division_name",
    },
    "departments": {
        "type": "department",
        "select": """
            SELECT 'department' AS type, dp.department_code AS code,
                   dp.department_name AS name_th, NULL AS name_en,
                   dp.is_active, d.company_code AS parent_company,
                   d.branch_code AS parent_branch, dp.division_code AS parent_division
        """,
        "from": (
            "FROM Departments dp INNER JOIN Divisions d ON dp.division_code = d.division_code "
            "INNER JOIN Companies c ON d.company_code = c.company_code "
            "LEFT JOIN Branches b ON d.branch_code = b.branch_code"
        ),
        "match": (
            "(dp.department_code LIKE @term OR dp.department_name LIKE @term"
            " OR d.division_name LIKE @term OR c.company_name_th LIKE @term"
            " OR b.branch_name LIKE @term)"
        ),
        "active": (
            " AND dp.is_active = 1 AND d.is_active = 1 AND c.is_active = 1"
            " AND (b.is_active = 1 OR b.branch_code IS NULL)"
        ),
        "code": "dp.department_code",
        "name": "dp.department_name",
    },
}

_TYPE_PRIORITY = {"company": 1, "branch": 2, "division": 3, "department": 4}


def _match_rank_sql(source: Dict[str, str]) -> str:
    """1 exact code, 2 code prefix, 3 name prefix, 4 substring anywhere."""
    return (
        f"CASE WHEN {source['code']} = @exact THEN 1"
        f" WHEN {source['code']} LIKE @prefix THEN 2"
        f" WHEN {source['name']} LIKE @prefix THEN 3 ELSE 4 END"
    )

# -----------------------------------------------------------------------------
# Hierarchy lookups: one row with every ancestor of the entity
# -----------------------------------------------------------------------------

_HIERARCHY_SQL = {
    "company": """
        SELECT c.company_code, c.company_name_th, c.is_active AS company_active
        FROM Companies c
        WHERE c.company_code = @code
    """,
    "branch": """
        SELECT c.company_code, c.company_name_th, c.is_active AS company_active,
               b.branch_code, b.branch_name, b.is_active AS branch_active
        FROM Branches b
        INNER JOIN Companies c ON b.company_code = c.company_code
        WHERE b.branch_code = @code
    """,
    "division": """
        SELECT c.company_code, c.company_name_th, c.is_active AS company_active,
               b.branch_code, b.branch_name, b.is_active AS branch_active,
               d.division_code, d.division_name, d.is_active AS division_active
        FROM Divisions d
        INNER JOIN Companies c ON d.company_code = c.company_code
        LEFT JOIN Branches b ON d.branch_code = b.branch_code
        WHERE d.division_code = @code
    """,
    "department": """
        SELECT c.company_code, c.company_name_th, c.is_active AS company_active,
               b.branch_code, b.branch_name, b.is_active AS branch_active,
               d.division_code, d.division_name, d.is_active AS division_active,
               dp.department_code, dp.department_name, dp.is_active AS department_active
        FROM Departments dp
        INNER JOIN Divisions d ON dp.division_code = d.division_code
        INNER JOIN Companies c ON d.company_code = c.company_code
        LEFT JOIN Branches b ON d.branch_code = b.branch_code
        WHERE dp.department_code = @code
    """,
}

_PATH_LEVELS = (
    ("company", "company_code", "company_name_th", "company_active"),
    ("branch", "branch_code", "branch_name", "branch_active"),
    ("division", "division_code", "division_name", "division_active"),
    ("department", "department_code", "department_name", "department_active"),
)


def normalize_entity_type(entity_type: str) -> str:
    """"branches" / "Branch" → "branch". Unknown types raise ValueError."""
    value = (entity_type or "").strip().lower()
    if value.endswith("ies"):
        value = value[:-3] + "y"
    elif value.endswith("es") and value[:-2] in ENTITY_TYPES:
        value = value[:-2]
    elif value.endswith("s"):
        value = value[:-1]
    if value not in ENTITY_TYPES:
        raise ValueError(f"Unknown entity type: {entity_type}")
    return value


class OrganizationService:
    def __init__(self, executor: QueryExecutor):
        self.executor = executor

    # ------------------------------------------------------------------ #
    # Tree
    # ------------------------------------------------------------------ #
    def _tree_rows(self, company_code: Optional[str] = None) -> List[Dict[str, Any]]:
        company_filter = " AND c.company_code = @company_code" if company_code else ""
        params = {"company_code": company_code} if company_code else {}
        query = _TREE_SQL.format(company_filter=company_filter)
        return self.executor.execute(query, params).rows

    def get_organization_tree(
        self,
        company_code: Optional[str] = None,
        active_only: bool = True,
    ) -> List[Dict[str, Any]]:
        rows = self._tree_rows(company_code)
        tree = build_organization_tree(rows, active_only=active_only)
        logger.debug("Assembled organization tree: %d rows → %d companies", len(rows), len(tree))
        return tree

    def get_company_full(self, company_code: str) -> Optional[Dict[str, Any]]:
        """Active company with its active branches, divisions and departments as flat lists."""
        return flatten_company_structure(self._tree_rows(company_code), active_only=True)

    def get_company_with_departments(self, company_code: str) -> Optional[Dict[str, Any]]:
        rows = self._tree_rows(company_code)
        structure = flatten_company_structure(rows, active_only=True)
        if structure is None:
            return None
        return {
            "company": structure["company"],
            "departments": collect_company_departments(rows, active_only=True),
        }

    def get_custom_organization_data(
        self,
        company_code: str,
        include: Optional[Iterable[str]] = None,
        skip: Optional[Iterable[str]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Company plus any of branches / divisions / departments.

        An empty `include` means every level; `skip` always wins.
        Returns {"data": {...}, "meta": {"included": [...]}} or None.
        """
        structure = self.get_company_full(company_code)
        if structure is None:
            return None

        include_set = {i.strip() for i in include or [] if i and i.strip()}
        skip_set = {s.strip() for s in skip or [] if s and s.strip()}

        data: Dict[str, Any] = {"company": structure["company"]}
        meta: Dict[str, Any] = {"included": ["company"]}
        for level in LEVELS:
            if level in skip_set:
                continue
            if include_set and level not in include_set:
                continue
            data[level] = structure[level]
            meta["included"].append(level)
            meta[f"total_{level}"] = len(structure[level])
        return {"data": data, "meta": meta}

    # ------------------------------------------------------------------ #
    # Statistics
    # ------------------------------------------------------------------ #
    def get_organization_stats(self) -> Dict[str, int]:
        key = make_key(STATS_CACHE_NAMESPACE, "stats:overall")
        cached = cache_get(key)
        if cached is not None:
            return cached

        row = self.executor.fetch_one(
            """
            SELECT
                (SELECT COUNT(*) FROM Companies WHERE is_active = 1) AS total_companies,
                (SELECT COUNT(*) FROM Branches WHERE is_active = 1) AS total_branches,
                (SELECT COUNT(*) FROM Divisions WHERE is_active = 1) AS total_divisions,
                (SELECT COUNT(*) FROM Departments WHERE is_active = 1) AS total_departments,
                (SELECT COUNT(*) FROM Branches WHERE is_headquarters = 1 AND is_active = 1) AS headquarters_count
            """
        ) or {}
        keys = (
            "total_companies",
            "total_branches",
            "total_divisions",
            "total_departments",
            "headquarters_count",
        )
        stats = {k: int(row.get(k) or 0) for k in keys}
        cache_set(key, stats, ttl=settings.STATS_CACHE_TTL_SECONDS)
        return stats

    # ------------------------------------------------------------------ #
    # Search
    # ------------------------------------------------------------------ #
    def search(
        self,
        q: str,
        type: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        active_only: bool = True,
    ) -> Dict[str, Any]:
        """
        Substring search over codes and names at every level.

        Ranking: match rank (exact code, code prefix, name prefix, anywhere),
        then company > branch > division > department, then code. Each level
        is cut in SQL on the same (rank, code) order the merge sorts by, so
        the first page*limit rows per level are enough to fill any page.
        The total counts every match.
        """
        term = (q or "").strip()
        if len(term) < MIN_SEARCH_LENGTH:
            raise ValueError(f"Search query must be at least {MIN_SEARCH_LENGTH} characters")
        if type and type not in SEARCH_TYPES:
            raise ValueError(f"Unknown search type: {type}")

        limit = min(max(int(limit), 1), MAX_SEARCH_LIMIT)
        page = max(int(page), 1)
        params = {"term": f"%{term}%", "exact": term, "prefix": f"{term}%"}

        results: List[Dict[str, Any]] = []
        total = 0
        for source_type in ([type] if type else SEARCH_TYPES):
            source = _SEARCH_SOURCES[source_type]
            where = f"WHERE {source['match']}{source['active'] if active_only else ''}"
            total += int(
                self.executor.scalar(f"SELECT COUNT(*) AS total {source['from']} {where}", params)
            )
            rank = _match_rank_sql(source)
            rows = self.executor.execute(
                f"{source['select']}, {rank} AS match_rank {source['from']} {where}"
                f" ORDER BY {rank}, {source['code']}",
                params,
                page=Page(limit=page * limit),
            ).rows
            results.extend(normalize_rows(rows))

        results.sort(
            key=lambda r: (int(r["match_rank"]), _TYPE_PRIORITY.get(r["type"], 5), r["code"])
        )
        start = (page - 1) * limit
        window = results[start:start + limit]
        for row in window:
            row.pop("match_rank", None)
        return {
            "query": term,
            "results": window,
            "pagination": build_pagination(page, limit, total),
        }

    # ------------------------------------------------------------------ #
    # Hierarchy
    # ------------------------------------------------------------------ #
    def get_hierarchy(self, entity_type: str, code: str) -> Optional[Dict[str, Any]]:
        """
        Ancestor path of one entity, company first:
        {"type", "code", "path": [{"type", "code", "name", "is_active"}, ...]}.
        """
        kind = normalize_entity_type(entity_type)
        row = self.executor.fetch_one(_HIERARCHY_SQL[kind], {"code": code})
        if row is None:
            return None

        path = []
        for level, code_key, name_key, active_key in _PATH_LEVELS:
            if code_key not in row:
                break
            if row[code_key] is None:
                # Direct division: no branch between company and division.
                continue
            path.append(
                {
                    "type": level,
                    "code": row[code_key],
                    "name": row[name_key],
                    "is_active": bool(row[active_key]),
                }
            )
        return {"type": kind, "code": code, "path": path}
