"""
Tests for orgadmin.db.dialect: placeholder binding, syntax rewriting and
pagination in both dialects.
"""

import pytest

from orgadmin.core.exceptions import DialectTranslationError
from orgadmin.db.dialect import (
    DIALECT_EMBEDDED,
    DIALECT_SERVER,
    Page,
    paginate,
    placeholder_names,
    rewrite_syntax,
    to_named_binds,
    translate,
)


def test_offset_fetch_becomes_limit_offset_with_swapped_values():
    stmt = translate(
        "SELECT * FROM Companies WHERE is_active = @active ORDER BY company_code "
        "OFFSET @offset ROWS FETCH NEXT @limit ROWS ONLY",
        {"active": 1, "offset": 40, "limit": 20},
    )
    assert "LIMIT ? OFFSET ?" in stmt.sql
    assert "FETCH" not in stmt.sql
    assert stmt.params == [1, 20, 40]


def test_explicit_positional_list_is_reordered():
    stmt = translate(
        "SELECT * FROM Branches WHERE company_code = @c ORDER BY branch_code "
        "OFFSET @o ROWS FETCH NEXT @l ROWS ONLY",
        positional=["ACME", 0, 50],
    )
    assert stmt.sql.endswith("LIMIT ? OFFSET ?")
    assert stmt.params == ["ACME", 50, 0]


def test_literal_page_numbers_are_rewritten_in_place():
    stmt = translate("SELECT * FROM Divisions ORDER BY division_code OFFSET 0 ROWS FETCH NEXT 25 ROWS ONLY")
    assert stmt.sql.endswith("LIMIT 25 OFFSET 0")
    assert stmt.params == []


@pytest.mark.parametrize(
    "query",
    [
        "SELECT * FROM Divisions ORDER BY division_code OFFSET @o ROWS",
        "SELECT * FROM Divisions ORDER BY division_code FETCH NEXT @l ROWS ONLY",
    ],
)
def test_single_paging_clause_is_left_alone(query):
    stmt = translate(query, {"o": 10, "l": 5})
    assert "LIMIT" not in stmt.sql
    assert stmt.params in ([10], [5])


def test_repeated_placeholder_binds_once_per_occurrence():
    stmt = translate(
        "SELECT * FROM Companies WHERE company_code LIKE @term OR company_name_th LIKE @term "
        "OR company_name_en LIKE @term AND is_active = @active",
        {"term": "%ac%", "active": 1},
    )
    assert stmt.sql.count("?") == 4
    assert stmt.params == ["%ac%", "%ac%", "%ac%", 1]


def test_missing_parameter_raises():
    with pytest.raises(DialectTranslationError):
        translate("SELECT * FROM Companies WHERE company_code = @code", {})


def test_text_inside_string_literals_is_untouched():
    stmt = translate("SELECT 'GETDATE() @name [x]' AS label, GETDATE() AS now WHERE a = @a", {"a": 1})
    assert "'GETDATE() @name [x]'" in stmt.sql
    assert "datetime('now') AS now" in stmt.sql
    assert stmt.params == [1]


def test_ddl_types_and_identity_columns():
    sql = rewrite_syntax(
        "CREATE TABLE [Logs] (id INT IDENTITY(1,1) PRIMARY KEY, "
        "name NVARCHAR(100), note VARCHAR(MAX), flag BIT, at DATETIME)"
    )
    assert sql == (
        "CREATE TABLE Logs (id INTEGER PRIMARY KEY AUTOINCREMENT, "
        "name TEXT, note TEXT, flag INTEGER, at TEXT)"
    )


def test_cast_to_server_types():
    sql = rewrite_syntax("SELECT CAST(NULL AS NVARCHAR(20)) AS branch_code, CAST(NULL AS BIT) AS flag")
    assert sql == "SELECT CAST(NULL AS TEXT) AS branch_code, CAST(NULL AS INTEGER) AS flag"


def test_placeholder_scan_skips_system_variables_and_emails():
    names = placeholder_names("SELECT @@ROWCOUNT, @a, 'x@y.com', owner@corp, @b, @a")
    assert names == ["a", "b", "a"]


def test_named_binds_for_the_server_driver():
    assert to_named_binds("a = @a AND b = '@b'") == "a = :a AND b = '@b'"


def test_page_from_page_number():
    assert Page.from_page_number(3, 20) == Page(limit=20, offset=40)
    assert Page.from_page_number(0, 20).offset == 0


def test_paginate_compiles_per_dialect():
    server_sql, values = paginate("SELECT * FROM Companies ORDER BY company_code;", Page(10, 30), DIALECT_SERVER)
    assert server_sql.endswith("ORDER BY company_code OFFSET @_page_offset ROWS FETCH NEXT @_page_limit ROWS ONLY")

    embedded_sql, same_values = paginate("SELECT * FROM Companies ORDER BY company_code", Page(10, 30), DIALECT_EMBEDDED)
    assert embedded_sql.endswith("ORDER BY company_code LIMIT @_page_limit OFFSET @_page_offset")
    assert values == same_values == {"_page_limit": 10, "_page_offset": 30}

    # Either form ends up with the same SQLite statement and bound values.
    assert translate(server_sql, values).params == translate(embedded_sql, values).params == [10, 30]


def test_paginate_rejects_unknown_dialect():
    with pytest.raises(ValueError):
        paginate("SELECT 1", Page(1), "oracle")
