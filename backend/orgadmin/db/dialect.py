"""
dialect.py — SQL Dialect Translation (relational server → embedded SQLite)

Purpose:
- Every statement in the codebase is written once, in the relational-server
  (SQL Server) dialect, with `@name` placeholders.
- When the embedded backend is active, `translate()` rewrites the statement
  for SQLite and produces the positional parameter list SQLite expects.
- Pagination can also be attached as a structured `Page` clause and compiled
  per dialect by `paginate()`, so callers never depend on clause reordering.

Supported grammar (anything else passes through untouched):
- `@name` placeholders
- GETDATE()
- INT IDENTITY(seed, step) PRIMARY KEY / IDENTITY(seed, step)
- [bracketed] identifiers
- CHAR / NCHAR / VARCHAR / NVARCHAR [(n | MAX)] types
- BIT, DATETIME, DATETIME2 types
- OFFSET a ROWS FETCH NEXT b ROWS ONLY

Text inside single-quoted string literals is never rewritten.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from orgadmin.core.exceptions import DialectTranslationError

DIALECT_SERVER = "mssql"
DIALECT_EMBEDDED = "sqlite"

PAGE_LIMIT_PARAM = "_page_limit"
PAGE_OFFSET_PARAM = "_page_offset"

# Splits a statement into code and quoted-literal segments; odd indices are literals.
_LITERAL_SPLIT_RE = re.compile(r"('(?:[^']|'')*')")

# `@name`, but not `@@SYSVAR` and not the `@` inside an e-mail-like token.
_PLACEHOLDER_RE = re.compile(r"(?<![@\w])@([A-Za-z_]\w*)")

_PAGINATION_RE = re.compile(
    r"\bOFFSET\s+(\?|\d+)\s+ROWS?\s+FETCH\s+(?:NEXT|FIRST)\s+(\?|\d+)\s+ROWS?\s+ONLY\b",
    re.IGNORECASE,
)

# Applied in order to every code segment.
_SYNTAX_RULES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\bGETDATE\s*\(\s*\)", re.IGNORECASE), "datetime('now')"),
    (
        re.compile(
            r"\bINT(?:EGER)?\s+IDENTITY\s*\(\s*\d+\s*,\s*\d+\s*\)\s+PRIMARY\s+KEY\b",
            re.IGNORECASE,
        ),
        "INTEGER PRIMARY KEY AUTOINCREMENT",
    ),
    (re.compile(r"\bIDENTITY\s*\(\s*\d+\s*,\s*\d+\s*\)", re.IGNORECASE), "AUTOINCREMENT"),
    (re.compile(r"\[([^\[\]]+)\]"), r"\1"),
    (
        re.compile(r"\bN?(?:VAR)?CHAR\b(?:\s*\(\s*(?:\d+|MAX)\s*\))?", re.IGNORECASE),
        "TEXT",
    ),
    (re.compile(r"\bBIT\b", re.IGNORECASE), "INTEGER"),
    (
        re.compile(r"\bDATETIME2(?:\s*\(\s*\d+\s*\))?|\bDATETIME\b(?!\s*\()", re.IGNORECASE),
        "TEXT",
    ),
]


@dataclass(frozen=True)
class Page:
    """Structured LIMIT/OFFSET clause."""

    limit: int
    offset: int = 0

    @classmethod
    def from_page_number(cls, page: int, limit: int) -> "Page":
        page = max(int(page), 1)
        return cls(limit=int(limit), offset=(page - 1) * int(limit))


@dataclass
class TranslatedStatement:
    sql: str
    params: List[Any] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _split_literals(query: str) -> List[str]:
    return _LITERAL_SPLIT_RE.split(query)


def _map_code_segments(query: str, fn: Callable[[str], str]) -> str:
    segments = _split_literals(query)
    for i in range(0, len(segments), 2):
        segments[i] = fn(segments[i])
    return "".join(segments)


def placeholder_names(query: str) -> List[str]:
    """Names of every `@name` token, in scan order, duplicates included."""
    names: List[str] = []
    segments = _split_literals(query)
    for i in range(0, len(segments), 2):
        names.extend(_PLACEHOLDER_RE.findall(segments[i]))
    return names


def to_named_binds(query: str) -> str:
    """`@name` → `:name`, the bind syntax SQLAlchemy `text()` understands."""
    return _map_code_segments(query, lambda code: _PLACEHOLDER_RE.sub(r":\1", code))


# -----------------------------------------------------------------------------
# Translation steps
# -----------------------------------------------------------------------------

def bind_positional(
    query: str,
    params: Optional[Mapping[str, Any]] = None,
    positional: Optional[Sequence[Any]] = None,
) -> TranslatedStatement:
    """
    Replace every `@name` with `?`.

    Without an explicit `positional` list, each occurrence contributes its
    value from `params` in left-to-right order, so a name used k times binds
    k values. With `positional`, the list is taken as-is.
    """
    params = params or {}
    values: List[Any] = []

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if positional is None:
            if name not in params:
                raise DialectTranslationError(f"No value supplied for parameter @{name}")
            values.append(params[name])
        return "?"

    sql = _map_code_segments(query, lambda code: _PLACEHOLDER_RE.sub(_replace, code))
    if positional is not None:
        values = list(positional)
    return TranslatedStatement(sql=sql, params=values)


def rewrite_syntax(query: str) -> str:
    """Function names, identity columns, brackets and type names."""

    def _apply(code: str) -> str:
        for pattern, replacement in _SYNTAX_RULES:
            code = pattern.sub(replacement, code)
        return code

    return _map_code_segments(query, _apply)


def rewrite_pagination(query: str, params: Sequence[Any]) -> TranslatedStatement:
    """
    OFFSET a ROWS FETCH NEXT b ROWS ONLY → LIMIT b OFFSET a.

    When both operands are `?` the two bound values trade places as well.
    For the usual statement shape, where the page clause closes the query,
    that is a swap of the last two parameters.
    """
    values = list(params)
    segments = _split_literals(query)
    seen_markers = 0

    for i in range(0, len(segments), 2):
        code = segments[i]
        out: List[str] = []
        cursor = 0
        for match in _PAGINATION_RE.finditer(code):
            before = code[cursor:match.start()]
            out.append(before)
            seen_markers += before.count("?")
            offset_tok, limit_tok = match.group(1), match.group(2)
            out.append(f"LIMIT {limit_tok} OFFSET {offset_tok}")
            if offset_tok == "?" and limit_tok == "?":
                first, second = seen_markers, seen_markers + 1
                if second < len(values):
                    values[first], values[second] = values[second], values[first]
            seen_markers += (offset_tok == "?") + (limit_tok == "?")
            cursor = match.end()
        rest = code[cursor:]
        out.append(rest)
        seen_markers += rest.count("?")
        segments[i] = "".join(out)

    return TranslatedStatement(sql="".join(segments), params=values)


def translate(
    query: str,
    params: Optional[Mapping[str, Any]] = None,
    positional: Optional[Sequence[Any]] = None,
) -> TranslatedStatement:
    """
    Rewrite one relational-server statement for the embedded database.

    Returns the SQLite statement and its final positional parameter list.
    """
    bound = bind_positional(query, params, positional)
    sql = rewrite_syntax(bound.sql)
    return rewrite_pagination(sql, bound.params)


# -----------------------------------------------------------------------------
# Structured pagination
# -----------------------------------------------------------------------------

def paginate(query: str, page: Page, dialect: str) -> Tuple[str, Dict[str, Any]]:
    """
    Append `page` to an ORDER BY-terminated statement in `dialect`'s own syntax.

    The clause uses named placeholders; their values are returned alongside
    so they can be merged into the statement's parameter map.
    """
    values = {PAGE_LIMIT_PARAM: page.limit, PAGE_OFFSET_PARAM: page.offset}
    body = query.rstrip().rstrip(";")
    if dialect == DIALECT_SERVER:
        clause = f"OFFSET @{PAGE_OFFSET_PARAM} ROWS FETCH NEXT @{PAGE_LIMIT_PARAM} ROWS ONLY"
    elif dialect == DIALECT_EMBEDDED:
        clause = f"LIMIT @{PAGE_LIMIT_PARAM} OFFSET @{PAGE_OFFSET_PARAM}"
    else:
        raise ValueError(f"Unknown dialect: {dialect}")
    return f"{body} {clause}", values
