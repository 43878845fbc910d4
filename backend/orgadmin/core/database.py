"""
database.py — Storage Backend Wiring

Purpose:
- Build the storage backend selected by configuration, exactly once.
- Wrap it in the QueryExecutor every repository receives.
- Expose a FastAPI dependency `get_executor()` that hands route handlers the
  process-wide executor stored on `app.state`.

Key Characteristics:
- Backend choice (see core/config.py): mssql → ServerBackend,
  sqlite → EmbeddedBackend, USE_DATABASE=false → DisabledBackend.
- Connection or schema failures at start-up are logged and the app keeps
  running in a degraded state; /health reports the database as unavailable.

This module does NOT:
- Define table models (see orgadmin/models/*).
- Perform any queries beyond the start-up schema check.
"""

from fastapi import HTTPException, Request, status

from orgadmin.core.config import BACKEND_DISABLED, BACKEND_MSSQL, Settings
from orgadmin.core.logging import get_logger
from orgadmin.db.backends import Backend, DisabledBackend, EmbeddedBackend, ServerBackend
from orgadmin.db.executor import QueryExecutor

logger = get_logger(__name__)

DATABASE_CONNECTED = "connected"
DATABASE_DISABLED = "disabled"
DATABASE_UNAVAILABLE = "unavailable"

# -----------------------------------------------------------------------------
# Backend construction
# -----------------------------------------------------------------------------

def build_backend(settings: Settings) -> Backend:
    backend_name = settings.database_backend
    if backend_name == BACKEND_DISABLED:
        logger.warning("USE_DATABASE is false; all queries will return empty results")
        return DisabledBackend()
    if backend_name == BACKEND_MSSQL:
        return ServerBackend.from_settings(settings)
    return EmbeddedBackend.from_settings(settings)


def init_executor(executor: QueryExecutor) -> str:
    """
    Create missing tables and report the resulting database status.

    Never raises: a failed start-up leaves the executor in place so the
    process can still serve /health and diagnostics.
    """
    if not executor.enabled:
        return DATABASE_DISABLED
    try:
        executor.create_schema()
        executor.ping()
    except Exception:
        logger.error(
            "Database initialization failed on %s backend; continuing in degraded mode",
            executor.backend_name,
            exc_info=True,
        )
        return DATABASE_UNAVAILABLE
    logger.info("Database ready (%s backend)", executor.backend_name)
    return DATABASE_CONNECTED


def create_executor(settings: Settings) -> QueryExecutor:
    return QueryExecutor(build_backend(settings))

# -----------------------------------------------------------------------------
# FastAPI Dependency
# -----------------------------------------------------------------------------

def get_executor(request: Request) -> QueryExecutor:
    """
    FastAPI dependency: the executor built at start-up.

    Usage in API endpoint:
        def endpoint(executor: QueryExecutor = Depends(get_executor)):
            CompanyRepository(executor).find_all()
    """
    executor = getattr(request.app.state, "executor", None)
    if executor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not initialized",
        )
    return executor
