"""Database browser: free-form SQL against a single database.

Status:
- pending until the database has been loaded
- active/failed once loading settled
- back to pending when a new source is set (the database is rebuilt)

The schema is extracted once per database and cached. Schema extraction
failures never fail the browser, the database itself still works. Changes
made by queries (e.g. ALTER TABLE) are not reflected in the cached schema.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass

import httpx
import structlog

from sqlgame.core.lifecycle import Lifecycle, Status
from sqlgame.core.schema import Schema
from sqlgame.db.database import (
    InitDbError,
    InitialSqlScript,
    SqlDatabase,
    SqliteSnapshot,
    SqlResult,
)
from sqlgame.utils.sources import FetchError, Source, materialize_bytes, materialize_text

logger = structlog.get_logger(__name__)

_instance_ids = itertools.count()


@dataclass(frozen=True)
class ScriptDbSource:
    """Database built from an SQL script."""

    source: Source


@dataclass(frozen=True)
class SnapshotDbSource:
    """Database loaded from an SQLite file."""

    source: Source


DbSource = ScriptDbSource | SnapshotDbSource
LoadDbError = FetchError | InitDbError


class DbBrowser:
    """Model behind a database browser tab."""

    def __init__(
        self,
        name: str,
        source: DbSource,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.id = f"db-browser-{next(_instance_ids)}"
        self.name = name
        self._http_client = http_client
        self._lifecycle: Lifecycle[LoadDbError] = Lifecycle(self.id)
        self._source = source
        self._db: asyncio.Task[SqlDatabase] | None = None
        self._schema: Schema | None = None

    def get_status(self) -> Status:
        return self._lifecycle.status

    def set_source(self, source: DbSource) -> None:
        """Replace the database; status goes back to pending."""
        if self._db is not None and self._db.done() and self._db.exception() is None:
            self._db.result().close()
        self._source = source
        self._db = None
        self._schema = None
        self._lifecycle.reset()
        logger.info("browser_source_changed", browser=self.id)

    async def resolve(self) -> Status:
        """Load the database and return the settled status."""
        try:
            await self._get_db()
        except (FetchError, InitDbError) as e:
            logger.debug("browser_resolve_failed", browser=self.id, error=str(e))
        return self._lifecycle.status

    async def exec(self, sql: str) -> SqlResult:
        """Run SQL against the database.

        Raises:
            FetchError: If the database source cannot be fetched
            InitDbError: If the database cannot be initialized
        """
        db = await self._get_db()
        return await db.exec(sql)

    async def get_schema(self) -> Schema:
        """Cached table structure of the database.

        Raises:
            SchemaError: If a table cannot be extracted (status unaffected)
            FetchError: If the database source cannot be fetched
            InitDbError: If the database cannot be initialized
        """
        db = await self._get_db()
        if self._schema is None:
            self._schema = await db.query_schema()
        return self._schema

    async def export(self) -> bytes:
        """Current database as SQLite file bytes."""
        db = await self._get_db()
        return await db.export()

    async def _get_db(self) -> SqlDatabase:
        if self._db is None:
            self._db = asyncio.ensure_future(self._load(self._source))

        try:
            db = await self._db
        except (FetchError, InitDbError) as e:
            self._lifecycle.resolved_fail(e)
            raise

        self._lifecycle.resolved_ok()
        return db

    async def _load(self, source: DbSource) -> SqlDatabase:
        if isinstance(source, ScriptDbSource):
            sql = await materialize_text(source.source, self._http_client)
            db = SqlDatabase(InitialSqlScript(sql=sql), name=self.id)
        else:
            data = await materialize_bytes(source.source, self._http_client)
            db = SqlDatabase(SqliteSnapshot(data=data), name=self.id)

        await db.resolve()
        return db
