"""
backends.py — Storage Backends Behind the Query Executor

Purpose:
- Provide the three interchangeable storage strategies the executor can be
  constructed with:
    * ServerBackend:   pooled SQLAlchemy engine on SQL Server (pymssql).
                        `@name` placeholders are bound by name, no translation.
    * EmbeddedBackend: single process-wide SQLite handle. Statements are
                        rewritten by db/dialect.translate() and bound positionally.
    * DisabledBackend: no driver at all; every call yields an empty result.
- Normalize every driver result into a QueryResult.

Key Characteristics:
- Synchronous SQLAlchemy engines; FastAPI runs the sync handlers on its
  thread pool.
- Driver errors are never caught here.
- The backend is chosen once at start-up (see core/database.py) and injected.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.pool import StaticPool

from orgadmin.core.logging import get_logger
from orgadmin.db.dialect import (
    DIALECT_EMBEDDED,
    DIALECT_SERVER,
    to_named_binds,
    translate,
)
from orgadmin.models import Base

logger = get_logger(__name__)

_READ_PREFIXES = ("SELECT", "WITH")


@dataclass
class QueryResult:
    """
    Backend-independent result shape.

    - rows: list of row dicts (reads)
    - rows_affected: one count per statement, like the server driver reports
    - last_insert_id: rowid of the last insert (embedded backend only)
    """

    rows: List[Dict[str, Any]] = field(default_factory=list)
    rows_affected: List[int] = field(default_factory=lambda: [0])
    last_insert_id: Optional[Any] = None

    @property
    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None

    @property
    def affected(self) -> int:
        return self.rows_affected[0] if self.rows_affected else 0


def is_read_statement(query: str) -> bool:
    return query.lstrip().upper().startswith(_READ_PREFIXES)


class Backend(ABC):
    name: str = ""
    dialect: str = ""
    enabled: bool = True

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine

    @abstractmethod
    def run(
        self,
        connection: Connection,
        query: str,
        params: Optional[Mapping[str, Any]] = None,
        positional: Optional[Sequence[Any]] = None,
    ) -> QueryResult:
        """Execute one statement on an open connection."""

    @contextmanager
    def begin(self) -> Iterator[Connection]:
        """Connection inside begin/commit/rollback."""
        with self.engine.begin() as connection:
            yield connection

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def ping(self) -> None:
        with self.begin() as connection:
            connection.execute(text("SELECT 1"))

    def dispose(self) -> None:
        if self.engine is not None:
            self.engine.dispose()


# -----------------------------------------------------------------------------
# Relational server
# -----------------------------------------------------------------------------

class ServerBackend(Backend):
    name = "mssql"
    dialect = DIALECT_SERVER

    @classmethod
    def from_settings(cls, settings) -> "ServerBackend":
        url = URL.create(
            "mssql+pymssql",
            username=settings.DB_USER or None,
            password=settings.DB_PASSWORD or None,
            host=settings.DB_SERVER,
            port=settings.DB_PORT,
            database=settings.DB_DATABASE or None,
        )
        connect_args: Dict[str, Any] = {"login_timeout": settings.DB_POOL_TIMEOUT_SECONDS}
        engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_size=max(settings.DB_POOL_MIN, 1),
            max_overflow=max(settings.DB_POOL_MAX - max(settings.DB_POOL_MIN, 1), 0),
            pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
            pool_recycle=settings.DB_IDLE_TIMEOUT_SECONDS,
            connect_args=connect_args,
        )
        logger.info(
            "Configured SQL Server pool: server=%s port=%s database=%s user=%s",
            settings.DB_SERVER,
            settings.DB_PORT,
            settings.DB_DATABASE,
            settings.DB_USER,
        )
        return cls(engine)

    def run(self, connection, query, params=None, positional=None) -> QueryResult:
        if positional is not None:
            # Statement already uses the driver's native markers.
            result = connection.exec_driver_sql(query, tuple(positional))
        else:
            result = connection.execute(text(to_named_binds(query)), dict(params or {}))

        if result.returns_rows:
            rows = [dict(row) for row in result.mappings()]
            return QueryResult(rows=rows, rows_affected=[len(rows)])
        return QueryResult(rows=[], rows_affected=[result.rowcount])


# -----------------------------------------------------------------------------
# Embedded file database
# -----------------------------------------------------------------------------

def _adapt_value(value: Any) -> Any:
    # Same textual layout SQLite's datetime('now') produces.
    if isinstance(value, datetime):
        return value.isoformat(sep=" ", timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    return value


class EmbeddedBackend(Backend):
    """
    One SQLite handle shared by the whole process.

    Access to the handle is serialized with a re-entrant lock so a
    transaction opened by one request is never interleaved with another
    request's statements.
    """

    name = "sqlite"
    dialect = DIALECT_EMBEDDED

    def __init__(self, path: str = ":memory:"):
        if path == ":memory:":
            url = "sqlite://"
        else:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite:///{path}"
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        event.listen(engine, "connect", _enable_foreign_keys)
        super().__init__(engine)
        self.path = path
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings) -> "EmbeddedBackend":
        logger.info("Using SQLite database at %s", settings.SQLITE_PATH)
        return cls(settings.SQLITE_PATH)

    @contextmanager
    def begin(self) -> Iterator[Connection]:
        with self._lock:
            with self.engine.begin() as connection:
                yield connection

    def run(self, connection, query, params=None, positional=None) -> QueryResult:
        statement = translate(query, params, positional)
        logger.debug(
            "Executing SQLite query: %s | params=%s",
            " ".join(statement.sql.split()),
            statement.params,
        )
        result = connection.exec_driver_sql(
            statement.sql,
            tuple(_adapt_value(v) for v in statement.params),
        )

        if is_read_statement(query):
            rows = [dict(row) for row in result.mappings()]
            return QueryResult(rows=rows, rows_affected=[len(rows)])
        return QueryResult(
            rows=[],
            rows_affected=[result.rowcount],
            last_insert_id=result.lastrowid,
        )


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# -----------------------------------------------------------------------------
# Disabled
# -----------------------------------------------------------------------------

class DisabledBackend(Backend):
    """Skips all database work; no driver is ever imported or touched."""

    name = "disabled"
    dialect = DIALECT_SERVER
    enabled = False

    def __init__(self):
        super().__init__(engine=None)

    @contextmanager
    def begin(self) -> Iterator[None]:
        yield None

    def run(self, connection, query, params=None, positional=None) -> QueryResult:
        return QueryResult(rows=[], rows_affected=[0])

    def create_schema(self) -> None:
        logger.info("Database disabled; schema creation skipped")

    def ping(self) -> None:
        return None
