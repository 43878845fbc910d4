"""
executor.py — Single Query Entry Point Over Any Backend

Purpose:
- `QueryExecutor.execute(query, params, positional, page)` is the only way
  repositories and services talk to the database.
- Queries are always written in the relational-server dialect with `@name`
  placeholders; the injected backend decides how they actually run.
- `transaction()` groups several statements under begin/commit/rollback.

Failure policy:
- Single shot. Driver errors are logged and re-raised unchanged; retries and
  user-facing fallbacks are the caller's decision.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence

from sqlalchemy.engine import Connection

from orgadmin.core.logging import get_logger
from orgadmin.db.backends import Backend, QueryResult
from orgadmin.db.dialect import Page, paginate

logger = get_logger(__name__)


class QueryExecutor:
    def __init__(self, backend: Backend, connection: Optional[Connection] = None):
        self.backend = backend
        self._connection = connection

    @property
    def backend_name(self) -> str:
        return self.backend.name

    @property
    def enabled(self) -> bool:
        return self.backend.enabled

    @property
    def in_transaction(self) -> bool:
        return self._connection is not None

    def execute(
        self,
        query: str,
        params: Optional[Mapping[str, Any]] = None,
        positional: Optional[Sequence[Any]] = None,
        page: Optional[Page] = None,
    ) -> QueryResult:
        """
        Run one statement and return a normalized QueryResult.

        - params: named values for the statement's `@name` placeholders
        - positional: explicit ordered values; bypasses name lookup
        - page: structured LIMIT/OFFSET appended in the backend's dialect
        """
        if not self.backend.enabled:
            logger.debug("Skipping database query (database disabled)")
            return QueryResult(rows=[], rows_affected=[0])

        if page is not None:
            if positional is not None:
                raise ValueError("page cannot be combined with explicit positional parameters")
            query, page_params = paginate(query, page, self.backend.dialect)
            params = {**(params or {}), **page_params}

        try:
            if self._connection is not None:
                return self.backend.run(self._connection, query, params, positional)
            with self.backend.begin() as connection:
                return self.backend.run(connection, query, params, positional)
        except Exception:
            logger.error(
                "Query execution failed on %s backend: %s",
                self.backend.name,
                " ".join(query.split())[:500],
                exc_info=True,
            )
            raise

    def fetch_one(
        self,
        query: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        return self.execute(query, params).first

    def scalar(self, query: str, params: Optional[Mapping[str, Any]] = None, default: Any = 0) -> Any:
        """First column of the first row, or `default` when there is none."""
        row = self.fetch_one(query, params)
        if not row:
            return default
        value = next(iter(row.values()))
        return default if value is None else value

    @contextmanager
    def transaction(self) -> Iterator["QueryExecutor"]:
        """
        Yield an executor whose statements share one connection and commit
        together. Nested calls reuse the outer transaction.
        """
        if not self.backend.enabled or self._connection is not None:
            yield self
            return

        try:
            with self.backend.begin() as connection:
                yield QueryExecutor(self.backend, connection)
        except Exception:
            logger.error("Transaction rolled back on %s backend", self.backend.name)
            raise

    def create_schema(self) -> None:
        self.backend.create_schema()

    def ping(self) -> None:
        self.backend.ping()

    def close(self) -> None:
        self.backend.dispose()
