"""Table schema extraction from CREATE TABLE statements.

Responsibilities:
- Parse a single CREATE TABLE statement into a TableInfo (columns, primary
  key, foreign keys) for display purposes
- Recognise SQLite's internal sequence table, which callers skip

This is pattern matching over the statement text, not a SQL parser. It covers
the subset of DDL used by teaching databases:
- quoted or bare table/column names ("x", `x`, [x], 'x', x)
- column definitions with an inline PRIMARY KEY marker
- table-level PRIMARY KEY(...), FOREIGN KEY(...) REFERENCES t(...),
  UNIQUE(...) and CHECK(...) constraints, optionally named via CONSTRAINT
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

# SQLite bookkeeping table for AUTOINCREMENT columns
INTERNAL_SEQUENCE_TABLE = "sqlite_sequence"

# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class ColInfo:
    """A table column: name plus declared type and modifiers."""

    name: str
    type: str


@dataclass(frozen=True)
class ForeignKeyPart:
    """Target of a foreign key column."""

    foreign_table: str
    foreign_col: str


@dataclass
class TableInfo:
    """Structure of one table."""

    name: str
    cols: list[ColInfo] = field(default_factory=list)
    primary_key: list[str] = field(default_factory=list)
    foreign_keys: dict[str, list[ForeignKeyPart]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "cols": [{"name": c.name, "type": c.type} for c in self.cols],
            "primary_key": list(self.primary_key),
            "foreign_keys": {
                col: [
                    {"foreign_table": p.foreign_table, "foreign_col": p.foreign_col}
                    for p in parts
                ]
                for col, parts in self.foreign_keys.items()
            },
        }


Schema = list[TableInfo]


class SchemaExtractionError(Exception):
    """Raised when a CREATE TABLE statement cannot be extracted."""

    def __init__(self, details: str):
        self.details = details
        super().__init__(details)


# =============================================================================
# PATTERNS
# =============================================================================

_IDENT = r'(?:"(?:[^"]|"")+"|`[^`]+`|\[[^\]]+\]|\'(?:[^\']|\'\')+\'|[\w$]+)'

_CREATE_TABLE_RE = re.compile(
    r"^\s*CREATE\s+(?:TEMP(?:ORARY)?\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?"
    rf"(?:{_IDENT}\s*\.\s*)?({_IDENT})\s*\((.*)\)[^)]*$",
    re.IGNORECASE | re.DOTALL,
)
_CONSTRAINT_NAME_RE = re.compile(rf"^CONSTRAINT\s+{_IDENT}\s*", re.IGNORECASE)
_PRIMARY_KEY_RE = re.compile(
    r"^PRIMARY\s+KEY\s*\((.+)\)\s*(?:ON\s+CONFLICT\s+\w+)?$",
    re.IGNORECASE | re.DOTALL,
)
_FOREIGN_KEY_RE = re.compile(
    rf"^FOREIGN\s+KEY\s*\((.+?)\)\s*REFERENCES\s+({_IDENT})\s*\((.+?)\)",
    re.IGNORECASE | re.DOTALL,
)
_TABLE_CONSTRAINT_RE = re.compile(r"^(?:UNIQUE|CHECK)\s*\(", re.IGNORECASE)
_PRIMARY_KEY_CLAUSE_RE = re.compile(r"^PRIMARY\s+KEY\b", re.IGNORECASE)
_FOREIGN_KEY_CLAUSE_RE = re.compile(r"^FOREIGN\s+KEY\b", re.IGNORECASE)
_COLUMN_RE = re.compile(rf"^({_IDENT})(?:\s+(.*))?$", re.DOTALL)
_INLINE_PRIMARY_KEY_RE = re.compile(r"\bPRIMARY\s+KEY\b", re.IGNORECASE)
_LEADING_IDENT_RE = re.compile(rf"^\s*({_IDENT})")


# =============================================================================
# TEXT HELPERS
# =============================================================================


def unquote_identifier(token: str) -> str:
    """Remove SQL identifier quoting ("x", `x`, [x], 'x')."""
    if len(token) >= 2:
        first, last = token[0], token[-1]
        if first == '"' and last == '"':
            return token[1:-1].replace('""', '"')
        if first == "'" and last == "'":
            return token[1:-1].replace("''", "'")
        if first == "`" and last == "`":
            return token[1:-1]
        if first == "[" and last == "]":
            return token[1:-1]
    return token


def _normalize_ws(text: str) -> str:
    return " ".join(text.split())


def _strip_comments(sql: str) -> str:
    """Remove -- and /* */ comments outside of quoted text."""
    out: list[str] = []
    i = 0
    quote: str | None = None
    while i < len(sql):
        ch = sql[i]
        if quote is not None:
            out.append(ch)
            if ch == quote:
                quote = None
            i += 1
        elif ch in ("'", '"', "`", "["):
            quote = "]" if ch == "[" else ch
            out.append(ch)
            i += 1
        elif sql.startswith("--", i):
            end = sql.find("\n", i)
            i = len(sql) if end == -1 else end
        elif sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = len(sql) if end == -1 else end + 2
            out.append(" ")
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _split_top_level(body: str) -> list[str]:
    """Split on commas that are not nested in parentheses or quotes."""
    chunks: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None
    for ch in body:
        if quote is not None:
            if ch == quote:
                quote = None
        elif ch in ("'", '"', "`"):
            quote = ch
        elif ch == "[":
            quote = "]"
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "," and depth == 0:
            chunks.append("".join(current))
            current = []
            continue
        current.append(ch)
    chunks.append("".join(current))
    return chunks


def _column_list(text: str) -> list[str] | None:
    """Parse "a, b COLLATE nocase, c DESC" into ["a", "b", "c"]."""
    names = []
    for part in text.split(","):
        match = _LEADING_IDENT_RE.match(part)
        if match is None:
            return None
        names.append(unquote_identifier(match.group(1)))
    return names


# =============================================================================
# EXTRACTION
# =============================================================================


def extract_table_info(create_table_statement: str) -> TableInfo | None:
    """Extract the structure of a table from its CREATE TABLE statement.

    Args:
        create_table_statement: One CREATE TABLE statement

    Returns:
        TableInfo for ordinary tables, None for SQLite's internal sequence
        table (to be ignored by the caller).

    Raises:
        SchemaExtractionError: If the statement or any of its column/constraint
            definitions cannot be parsed. No partial TableInfo is returned.
    """
    match = _CREATE_TABLE_RE.match(_strip_comments(create_table_statement))
    if match is None:
        raise SchemaExtractionError("Could not parse SQL CREATE TABLE statement")

    name = unquote_identifier(match.group(1))

    if name == INTERNAL_SEQUENCE_TABLE:
        return None

    chunks = [c.strip() for c in _split_top_level(match.group(2))]

    table = TableInfo(name=name)

    for chunk in chunks:
        if not chunk:
            raise SchemaExtractionError(f"Empty definition in table '{name}'")

        chunk = _CONSTRAINT_NAME_RE.sub("", chunk, count=1)

        # 1. Table-level primary key
        if _PRIMARY_KEY_CLAUSE_RE.match(chunk):
            _add_primary_key(table, chunk)

        # 2. Table-level foreign key
        elif _FOREIGN_KEY_CLAUSE_RE.match(chunk):
            _add_foreign_key(table, chunk)

        # 3. Other table constraints carry no displayed structure
        elif _TABLE_CONSTRAINT_RE.match(chunk):
            continue

        # 4. Ordinary column
        else:
            _add_column(table, chunk)

    return table


def _add_primary_key(table: TableInfo, chunk: str) -> None:
    match = _PRIMARY_KEY_RE.match(chunk)
    cols = _column_list(match.group(1)) if match else None
    if not cols:
        raise SchemaExtractionError(
            f"Could not parse PRIMARY KEY constraint in table '{table.name}': {_normalize_ws(chunk)}"
        )
    for col in cols:
        if col not in table.primary_key:
            table.primary_key.append(col)


def _add_foreign_key(table: TableInfo, chunk: str) -> None:
    match = _FOREIGN_KEY_RE.match(chunk)
    if match is None:
        raise SchemaExtractionError(
            f"Could not parse FOREIGN KEY constraint in table '{table.name}': {_normalize_ws(chunk)}"
        )

    local_cols = _column_list(match.group(1))
    foreign_cols = _column_list(match.group(3))
    if not local_cols or not foreign_cols or len(local_cols) != len(foreign_cols):
        raise SchemaExtractionError(
            f"Mismatched FOREIGN KEY columns in table '{table.name}': {_normalize_ws(chunk)}"
        )

    foreign_table = unquote_identifier(match.group(2))
    for col, foreign_col in zip(local_cols, foreign_cols):
        table.foreign_keys.setdefault(col, []).append(
            ForeignKeyPart(foreign_table=foreign_table, foreign_col=foreign_col)
        )


def _add_column(table: TableInfo, chunk: str) -> None:
    match = _COLUMN_RE.match(chunk)
    if match is None:
        raise SchemaExtractionError(
            f"Could not parse column definition in table '{table.name}': {_normalize_ws(chunk)}"
        )

    col_name = unquote_identifier(match.group(1))
    modifiers = _normalize_ws(match.group(2) or "")

    if _INLINE_PRIMARY_KEY_RE.search(modifiers):
        modifiers = _normalize_ws(_INLINE_PRIMARY_KEY_RE.sub(" ", modifiers))
        if col_name not in table.primary_key:
            table.primary_key.append(col_name)

    table.cols.append(ColInfo(name=col_name, type=modifiers))
