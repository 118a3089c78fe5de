"""Database module for the embedded SQLite engine.

Provides:
- Lazily initialized in-memory databases (from script or snapshot)
- Non-raising statement execution with tagged results
- Schema extraction over the SQLite catalog
"""

from sqlgame.db.database import (
    DbData,
    InitDbError,
    InitialSqlScript,
    InitScriptError,
    ResultSet,
    SchemaError,
    SnapshotError,
    SqlDatabase,
    SqlError,
    SqliteSnapshot,
    SqlResult,
    SqlSuccess,
)

__all__ = [
    "DbData",
    "InitDbError",
    "InitialSqlScript",
    "InitScriptError",
    "ResultSet",
    "SchemaError",
    "SnapshotError",
    "SqlDatabase",
    "SqlError",
    "SqliteSnapshot",
    "SqlResult",
    "SqlSuccess",
]
