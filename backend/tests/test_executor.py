"""
Tests for the query executor over the embedded and disabled backends, and
for the start-up wiring in orgadmin.core.database.
"""

import pytest
from sqlalchemy.exc import OperationalError

from orgadmin.core.config import BACKEND_DISABLED, BACKEND_MSSQL, BACKEND_SQLITE, Settings
from orgadmin.core.database import (
    DATABASE_CONNECTED,
    DATABASE_DISABLED,
    DATABASE_UNAVAILABLE,
    build_backend,
    init_executor,
)
from orgadmin.db.backends import DisabledBackend, EmbeddedBackend
from orgadmin.db.dialect import Page
from orgadmin.db.executor import QueryExecutor

INSERT_COMPANY = """
    INSERT INTO Companies (company_code, company_name_th, is_active, created_date, created_by)
    VALUES (@code, @name, 1, GETDATE(), 'test')
"""


def _insert_companies(executor, count):
    for i in range(1, count + 1):
        executor.execute(INSERT_COMPANY, {"code": f"C{i}", "name": f"Company {i}"})


# -----------------------------------------------------------------------------
# Disabled backend
# -----------------------------------------------------------------------------

def test_disabled_executor_returns_empty_results():
    executor = QueryExecutor(DisabledBackend())
    result = executor.execute("SELECT * FROM Companies WHERE company_code = @code", {"code": "ACME"})

    assert executor.enabled is False
    assert executor.backend.engine is None
    assert result.rows == []
    assert result.rows_affected == [0]
    assert executor.fetch_one("SELECT 1") is None
    assert executor.scalar("SELECT COUNT(*) FROM Companies") == 0


def test_disabled_transaction_yields_same_executor():
    executor = QueryExecutor(DisabledBackend())
    with executor.transaction() as tx:
        assert tx is executor
        assert tx.execute("DELETE FROM Companies").affected == 0


# -----------------------------------------------------------------------------
# Embedded backend
# -----------------------------------------------------------------------------

def test_insert_then_select(executor):
    result = executor.execute(INSERT_COMPANY, {"code": "ACME", "name": "Acme"})
    assert result.affected == 1

    row = executor.fetch_one("SELECT company_code, company_name_th FROM Companies WHERE company_code = @code", {"code": "ACME"})
    assert row == {"company_code": "ACME", "company_name_th": "Acme"}


def test_update_reports_rows_affected(executor):
    _insert_companies(executor, 3)
    result = executor.execute("UPDATE Companies SET is_active = 0 WHERE company_code <> @code", {"code": "C1"})
    assert result.rows_affected == [2]


def test_structured_page(executor):
    _insert_companies(executor, 5)
    result = executor.execute(
        "SELECT company_code FROM Companies ORDER BY company_code",
        page=Page(limit=2, offset=2),
    )
    assert [r["company_code"] for r in result.rows] == ["C3", "C4"]


def test_page_cannot_be_combined_with_positional(executor):
    with pytest.raises(ValueError):
        executor.execute("SELECT * FROM Companies ORDER BY company_code", positional=[], page=Page(1))


def test_scalar_default_when_no_rows(executor):
    assert executor.scalar("SELECT company_code FROM Companies WHERE 1 = 0", default="none") == "none"


def test_transaction_rolls_back_on_error(executor):
    with pytest.raises(RuntimeError):
        with executor.transaction() as tx:
            tx.execute(INSERT_COMPANY, {"code": "ACME", "name": "Acme"})
            raise RuntimeError("boom")

    assert executor.scalar("SELECT COUNT(*) AS total FROM Companies") == 0


def test_nested_transaction_reuses_outer(executor):
    with executor.transaction() as tx:
        with tx.transaction() as inner:
            assert inner is tx
            inner.execute(INSERT_COMPANY, {"code": "ACME", "name": "Acme"})

    assert executor.scalar("SELECT COUNT(*) AS total FROM Companies") == 1


def test_driver_errors_propagate(executor):
    with pytest.raises(OperationalError):
        executor.execute("SELECT * FROM NoSuchTable")


# -----------------------------------------------------------------------------
# Start-up wiring
# -----------------------------------------------------------------------------

def test_backend_resolution_from_settings():
    assert Settings(USE_DATABASE=False).database_backend == BACKEND_DISABLED
    assert Settings(DB_TYPE=None, DB_SERVER="").database_backend == BACKEND_SQLITE
    assert Settings(DB_TYPE=None, DB_SERVER="sql.internal").database_backend == BACKEND_MSSQL
    assert Settings(DB_TYPE="SQLite", DB_SERVER="sql.internal").database_backend == BACKEND_SQLITE


def test_unsupported_db_type_is_rejected():
    with pytest.raises(ValueError):
        Settings(DB_TYPE="oracle")


def test_build_backend():
    assert isinstance(build_backend(Settings(USE_DATABASE=False)), DisabledBackend)

    backend = build_backend(Settings(USE_DATABASE=True, DB_TYPE="sqlite", SQLITE_PATH=":memory:"))
    assert isinstance(backend, EmbeddedBackend)
    backend.dispose()


def test_init_executor_statuses(executor, monkeypatch):
    assert init_executor(QueryExecutor(DisabledBackend())) == DATABASE_DISABLED
    assert init_executor(executor) == DATABASE_CONNECTED

    def fail():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(executor, "ping", fail)
    assert init_executor(executor) == DATABASE_UNAVAILABLE
