"""
api_logs.py — API Request Log

Purpose:
- Record one row per API-key authenticated request.
- Usage summaries for the key administration endpoints.

Timestamps on this table are written from the application clock and date
windows are computed the same way, so filtering never depends on whether the
database clock is local time or UTC.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Optional

from orgadmin.core.cache import cache_get, cache_set, make_key
from orgadmin.core.logging import get_logger
from orgadmin.db.dialect import Page
from orgadmin.db.executor import QueryExecutor

logger = get_logger(__name__)

TODAY_STATS_TTL_SECONDS = 300

_LOG_COLUMNS = (
    "api_key_id",
    "endpoint",
    "method",
    "request_body",
    "response_status",
    "response_time_ms",
    "ip_address",
    "user_agent",
    "error_message",
)


def _number(value: Any, cast=int) -> Any:
    return cast(value) if value is not None else cast(0)


class ApiLogRepository:
    def __init__(self, executor: QueryExecutor):
        self.executor = executor

    def log_request(self, **entry: Any) -> None:
        """
        Insert one log row. Failures are logged and swallowed: a broken log
        table must never fail the request being logged.
        """
        params = {c: entry.get(c) for c in _LOG_COLUMNS}
        params["created_date"] = datetime.now()
        names = ", ".join(_LOG_COLUMNS + ("created_date",))
        values = ", ".join(f"@{c}" for c in _LOG_COLUMNS + ("created_date",))
        try:
            self.executor.execute(f"INSERT INTO API_Logs ({names}) VALUES ({values})", params)
        except Exception:
            logger.error("Error logging API request to %s", params.get("endpoint"), exc_info=True)

    # ------------------------------------------------------------------ #
    def get_today_stats(self) -> Dict[str, Any]:
        key = make_key("api", "stats:today")
        cached = cache_get(key)
        if cached is not None:
            return cached

        row = self.executor.fetch_one(
            """
            SELECT COUNT(*) AS today_calls,
                   COUNT(DISTINCT api_key_id) AS unique_keys,
                   AVG(response_time_ms) AS avg_response_time,
                   COALESCE(SUM(CASE WHEN response_status >= 400 THEN 1 ELSE 0 END), 0) AS error_count
            FROM API_Logs
            WHERE created_date >= @since
            """,
            {"since": datetime.combine(datetime.now().date(), time.min)},
        ) or {}
        stats = {
            "today_calls": _number(row.get("today_calls")),
            "unique_keys": _number(row.get("unique_keys")),
            "avg_response_time": round(_number(row.get("avg_response_time"), float), 1),
            "error_count": _number(row.get("error_count")),
        }
        cache_set(key, stats, ttl=TODAY_STATS_TTL_SECONDS)
        return stats

    def get_usage_by_endpoint(self, days: int = 7) -> List[Dict[str, Any]]:
        rows = self.executor.execute(
            """
            SELECT endpoint, method,
                   COUNT(*) AS request_count,
                   AVG(response_time_ms) AS avg_response_time,
                   SUM(CASE WHEN response_status >= 200 AND response_status < 300 THEN 1 ELSE 0 END) AS success_count,
                   SUM(CASE WHEN response_status >= 400 THEN 1 ELSE 0 END) AS error_count
            FROM API_Logs
            WHERE created_date >= @since
            GROUP BY endpoint, method
            ORDER BY request_count DESC
            """,
            {"since": datetime.now() - timedelta(days=days)},
        ).rows
        return [
            {
                "endpoint": r["endpoint"],
                "method": r["method"],
                "request_count": _number(r["request_count"]),
                "avg_response_time": round(_number(r["avg_response_time"], float), 1),
                "success_count": _number(r["success_count"]),
                "error_count": _number(r["error_count"]),
            }
            for r in rows
        ]

    def get_api_key_stats(self, api_key_id: str) -> Optional[Dict[str, Any]]:
        row = self.executor.fetch_one(
            """
            SELECT ak.app_name, ak.permissions,
                   COUNT(al.log_id) AS total_requests,
                   AVG(al.response_time_ms) AS avg_response_time,
                   SUM(CASE WHEN al.response_status >= 200 AND al.response_status < 300 THEN 1 ELSE 0 END) AS success_count,
                   SUM(CASE WHEN al.response_status >= 400 THEN 1 ELSE 0 END) AS error_count,
                   MAX(al.created_date) AS last_used
            FROM API_Keys ak
            LEFT JOIN API_Logs al ON ak.api_key_id = al.api_key_id
            WHERE ak.api_key_id = @api_key_id
            GROUP BY ak.app_name, ak.permissions
            """,
            {"api_key_id": api_key_id},
        )
        if row is None:
            return None
        return {
            "app_name": row["app_name"],
            "permissions": row["permissions"],
            "total_requests": _number(row["total_requests"]),
            "avg_response_time": round(_number(row["avg_response_time"], float), 1),
            "success_count": _number(row["success_count"]),
            "error_count": _number(row["error_count"]),
            "last_used": row["last_used"],
        }

    def get_recent(self, api_key_id: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        query = """
            SELECT log_id, api_key_id, endpoint, method, response_status,
                   response_time_ms, ip_address, user_agent, error_message, created_date
            FROM API_Logs
            WHERE 1=1
        """
        params: Dict[str, Any] = {}
        if api_key_id:
            query += " AND api_key_id = @api_key_id"
            params["api_key_id"] = api_key_id
        query += " ORDER BY created_date DESC, log_id DESC"
        return self.executor.execute(query, params, page=Page(limit=limit)).rows

    def clean_old_logs(self, days_to_keep: int = 90) -> int:
        result = self.executor.execute(
            "DELETE FROM API_Logs WHERE created_date < @cutoff",
            {"cutoff": datetime.now() - timedelta(days=days_to_keep)},
        )
        logger.info("Removed %d API log rows older than %d days", result.affected, days_to_keep)
        return result.affected
