"""Embedded SQLite database handle.

Wraps one in-memory SQLite database built either from an initial SQL script
or from a binary snapshot. Initialization is lazy and happens on first use;
`resolve()` forces it and reports the outcome.

Statement execution never raises for SQL errors: failures are returned as
SqlError values so callers can show them next to successful results.
"""

from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

import structlog

from sqlgame.core.schema import Schema, SchemaExtractionError, extract_table_info

logger = structlog.get_logger(__name__)

SCHEMA_QUERY = "SELECT sql FROM sqlite_master WHERE type='table'"
SANITY_QUERY = "SELECT name FROM sqlite_master"

_COMMENT_RE = re.compile(r"--[^\n]*|/\*.*?\*/", re.DOTALL)


# =============================================================================
# DATABASE SOURCES
# =============================================================================


@dataclass(frozen=True)
class InitialSqlScript:
    """Database built by running a script against an empty database."""

    sql: str
    type: Literal["initial-sql-script"] = "initial-sql-script"


@dataclass(frozen=True)
class SqliteSnapshot:
    """Database loaded from a serialized SQLite file."""

    data: bytes
    type: Literal["sqlite-db"] = "sqlite-db"


DbData = InitialSqlScript | SqliteSnapshot


# =============================================================================
# RESULT TYPES
# =============================================================================


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ResultSet:
    """Rows returned by a single statement."""

    columns: list[str]
    rows: list[tuple[Any, ...]]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "columns": list(self.columns),
            "rows": [
                [v.hex() if isinstance(v, bytes) else v for v in row] for row in self.rows
            ],
        }


@dataclass(frozen=True)
class SqlSuccess:
    """Successful execution; one ResultSet per row-returning statement."""

    sql: str
    result_sets: list[ResultSet]
    timestamp: str = field(default_factory=_now)
    kind: Literal["success"] = "success"

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind,
            "sql": self.sql,
            "timestamp": self.timestamp,
            "result_sets": [rs.to_dict() for rs in self.result_sets],
        }


@dataclass(frozen=True)
class SqlError:
    """Failed execution with the engine's error message."""

    sql: str
    message: str
    timestamp: str = field(default_factory=_now)
    kind: Literal["error"] = "error"

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind,
            "sql": self.sql,
            "timestamp": self.timestamp,
            "message": self.message,
        }


SqlResult = SqlSuccess | SqlError


# =============================================================================
# ERRORS
# =============================================================================


class InitDbError(Exception):
    """Raised when a database cannot be initialized."""

    kind = "init-db"

    def __init__(self, details: str):
        self.details = details
        super().__init__(details)


class InitScriptError(InitDbError):
    """The initial SQL script failed."""

    kind = "run-init-script"


class SnapshotError(InitDbError):
    """The snapshot could not be read or failed its sanity query."""

    kind = "read-sqlite-db"


class SchemaError(Exception):
    """Raised when the schema of a database cannot be extracted.

    The database itself stays usable.
    """

    def __init__(self, details: str):
        self.details = details
        super().__init__(details)


# =============================================================================
# SCRIPT SPLITTING
# =============================================================================


def _is_blank(statement: str) -> bool:
    return not _COMMENT_RE.sub("", statement).strip(" ;\t\r\n")


def split_statements(script: str) -> list[str]:
    """Split an SQL script into complete statements.

    Semicolons inside string literals, comments and trigger bodies do not
    split, because completeness is decided by SQLite itself. A trailing
    incomplete statement is kept so that executing it reports the error.
    """
    statements: list[str] = []
    buffer = ""
    for piece in script.split(";"):
        buffer += piece + ";"
        if sqlite3.complete_statement(buffer):
            if not _is_blank(buffer):
                statements.append(buffer.strip())
            buffer = ""

    if not _is_blank(buffer):
        statements.append(buffer.strip().removesuffix(";"))

    return statements


# =============================================================================
# DATABASE HANDLE
# =============================================================================


class SqlDatabase:
    """Lazily initialized in-memory SQLite database.

    Args:
        db_data: Initial SQL script or binary snapshot
        name: Label used in log events
    """

    def __init__(self, db_data: DbData, name: str = "db"):
        self.db_data = db_data
        self.name = name
        self._conn: sqlite3.Connection | None = None
        self._init_error: InitDbError | None = None
        self._initialized = False

    async def resolve(self) -> None:
        """Initialize the database if not done yet.

        Raises:
            InitScriptError: If the initial SQL script fails
            SnapshotError: If the snapshot is unreadable
        """
        await self._get_connection()

    async def exec(self, sql: str) -> SqlResult:
        """Execute an SQL script statement by statement.

        Args:
            sql: One or more SQL statements

        Returns:
            SqlSuccess with one ResultSet per row-returning statement, or
            SqlError with the message of the first failing statement.
            Statements before the failing one keep their effect.

        Raises:
            InitDbError: Only if the database itself could not be initialized
        """
        conn = await self._get_connection()

        result_sets: list[ResultSet] = []
        try:
            for statement in split_statements(sql):
                cursor = conn.execute(statement)
                if cursor.description is not None:
                    columns = [d[0] for d in cursor.description]
                    rows = [tuple(row) for row in cursor.fetchall()]
                    result_sets.append(ResultSet(columns=columns, rows=rows))
        except (sqlite3.Error, sqlite3.Warning, ValueError, UnicodeEncodeError) as e:
            logger.debug("sql_error", db=self.name, sql_length=len(sql), error=str(e))
            return SqlError(sql=sql, message=str(e))

        return SqlSuccess(sql=sql, result_sets=result_sets)

    async def query_schema(self) -> Schema:
        """Extract the structure of every user table.

        Returns:
            TableInfo per table, in catalog order. SQLite's internal
            sequence table is skipped.

        Raises:
            SchemaError: If any table cannot be extracted. All failures are
                reported together; no partial schema is returned.
            InitDbError: If the database itself could not be initialized
        """
        result = await self.exec(SCHEMA_QUERY)

        if not isinstance(result, SqlSuccess) or len(result.result_sets) != 1:
            raise SchemaError("Could not retrieve table definitions")

        tables: Schema = []
        failures: list[str] = []

        for row in result.result_sets[0].rows:
            if len(row) != 1 or not isinstance(row[0], str):
                failures.append("Could not retrieve table definition")
                continue
            try:
                table = extract_table_info(row[0])
            except SchemaExtractionError as e:
                failures.append(e.details)
                continue
            if table is not None:
                tables.append(table)

        if failures:
            logger.warning("schema_extraction_failed", db=self.name, failures=len(failures))
            raise SchemaError("Failed during extraction: " + ". ".join(failures))

        return tables

    async def export(self) -> bytes:
        """Serialize the current database into SQLite file bytes."""
        conn = await self._get_connection()
        return conn.serialize()

    def close(self) -> None:
        """Release the underlying connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    async def _get_connection(self) -> sqlite3.Connection:
        if not self._initialized:
            self._initialized = True
            try:
                self._conn = self._open()
            except InitDbError as e:
                self._init_error = e
                logger.warning("db_init_failed", db=self.name, kind=e.kind, details=e.details)

        if self._init_error is not None:
            raise self._init_error

        if self._conn is None:
            raise InitDbError(f"Database '{self.name}' has been closed")

        return self._conn

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(":memory:", isolation_level=None, check_same_thread=False)

        if isinstance(self.db_data, InitialSqlScript):
            try:
                conn.executescript(self.db_data.sql)
            except (sqlite3.Error, sqlite3.Warning, ValueError, UnicodeEncodeError) as e:
                conn.close()
                raise InitScriptError(str(e)) from e
        else:
            try:
                conn.deserialize(self.db_data.data)
                conn.execute(SANITY_QUERY).fetchall()
            except (sqlite3.Error, OverflowError, ValueError) as e:
                conn.close()
                raise SnapshotError(str(e)) from e

        logger.debug("db_initialized", db=self.name, source=self.db_data.type)
        return conn
