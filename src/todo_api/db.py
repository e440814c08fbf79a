from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import psycopg
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from .models import TodoEntity
from .repositories import Repository, StorageError, merge_patch
from .schemas import TodoCreate, TodoUpdate
from .settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "todos"
    id: str = "id"
    task: str = "task"
    description: str = "description"
    completed: str = "completed"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


_COLS = _Cols()

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {_COLS.table} (
    {_COLS.id} SERIAL PRIMARY KEY,
    {_COLS.task} VARCHAR(255) NOT NULL,
    {_COLS.description} TEXT DEFAULT '',
    {_COLS.completed} BOOLEAN DEFAULT FALSE,
    {_COLS.created_at} TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
    {_COLS.updated_at} TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
)
"""


def build_conninfo(settings: Settings) -> str:
    """Return a libpq connection string for the configured database."""
    return make_conninfo(
        host=settings.db_host,
        port=settings.db_port,
        user=settings.db_user,
        password=settings.db_password,
        dbname=settings.db_name,
        connect_timeout=max(int(settings.db_pool_timeout), 1),
    )


def row_to_entity(row: Dict[str, Any]) -> TodoEntity:
    return {
        "id": int(row[_COLS.id]),
        "task": str(row[_COLS.task]),
        "description": row[_COLS.description] if row[_COLS.description] is not None else "",
        "completed": bool(row[_COLS.completed]),
        "created_at": row[_COLS.created_at],
        "updated_at": row[_COLS.updated_at],
    }


class PostgresRepository(Repository):
    """
    PostgreSQL repository on top of a psycopg async connection pool.

    Every psycopg failure, pool timeouts included, surfaces as StorageError.
    When ``db_init_schema`` is on, the todos table is created on the first
    connection that succeeds, so a database that comes up after the startup
    wait still gets its schema.
    """

    name = "postgres"

    def __init__(self, settings: Settings, pool_factory: Callable[..., Any] = AsyncConnectionPool) -> None:
        self._conninfo = build_conninfo(settings)
        self._min_size = settings.db_pool_min_size
        self._max_size = max(settings.db_pool_max_size, settings.db_pool_min_size, 1)
        self._timeout = settings.db_pool_timeout
        self._init_schema = settings.db_init_schema
        self._pool_factory = pool_factory
        self._pool: Optional[AsyncConnectionPool] = None
        self._schema_ready = False
        self._schema_lock: Optional[asyncio.Lock] = None

    async def open(self) -> None:
        if self._pool is not None:
            return
        self._schema_lock = asyncio.Lock()
        self._pool = self._pool_factory(
            self._conninfo,
            min_size=self._min_size,
            max_size=self._max_size,
            timeout=self._timeout,
            open=False,
        )
        # Don't block on the first connections; the startup probe waits instead.
        await self._pool.open(wait=False)

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None

    async def _create_schema(self, conn: psycopg.AsyncConnection) -> None:
        assert self._schema_lock is not None
        async with self._schema_lock:
            if self._schema_ready:
                return
            await conn.execute(SCHEMA_SQL)
            await conn.commit()
            self._schema_ready = True
        logger.info("Ensured table %r exists", _COLS.table)

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[psycopg.AsyncConnection]:
        if self._pool is None:
            raise StorageError("connection pool is not open")
        try:
            async with self._pool.connection() as conn:
                if self._init_schema and not self._schema_ready:
                    await self._create_schema(conn)
                yield conn
        except psycopg.Error as exc:
            raise StorageError(str(exc) or exc.__class__.__name__) from exc

    @asynccontextmanager
    async def _cursor(self) -> AsyncIterator[psycopg.AsyncCursor]:
        async with self._connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                yield cur

    async def ensure_schema(self) -> None:
        async with self._connection() as conn:
            await self._create_schema(conn)

    async def ping(self) -> None:
        async with self._cursor() as cur:
            await cur.execute("SELECT 1")
            await cur.fetchone()

    async def list(self) -> List[TodoEntity]:
        async with self._cursor() as cur:
            await cur.execute(f"SELECT * FROM {_COLS.table} ORDER BY {_COLS.id} ASC")
            rows = await cur.fetchall()
        return [row_to_entity(r) for r in rows]

    async def get(self, todo_id: int) -> Optional[TodoEntity]:
        async with self._cursor() as cur:
            await cur.execute(f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = %s", (todo_id,))
            row = await cur.fetchone()
        return row_to_entity(row) if row else None

    async def create(self, data: TodoCreate) -> TodoEntity:
        async with self._cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.task}, {_COLS.description}, {_COLS.completed})
                VALUES (%s, %s, %s)
                RETURNING *
                """,
                (data.task, data.description or "", False),
            )
            row = await cur.fetchone()
        if row is None:
            raise StorageError("insert returned no row")
        return row_to_entity(row)

    async def update(self, todo_id: int, data: TodoUpdate) -> Optional[TodoEntity]:
        # Read, merge and write under a row lock so concurrent patches don't
        # overwrite each other's fields.
        async with self._connection() as conn:
            async with conn.transaction():
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(
                        f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = %s FOR UPDATE",
                        (todo_id,),
                    )
                    row = await cur.fetchone()
                    if row is None:
                        return None
                    merged = merge_patch(row_to_entity(row), data)
                    await cur.execute(
                        f"""
                        UPDATE {_COLS.table}
                        SET {_COLS.task} = %s, {_COLS.description} = %s, {_COLS.completed} = %s,
                            {_COLS.updated_at} = %s
                        WHERE {_COLS.id} = %s
                        RETURNING *
                        """,
                        (
                            merged["task"],
                            merged["description"],
                            merged["completed"],
                            merged["updated_at"],
                            todo_id,
                        ),
                    )
                    row = await cur.fetchone()
        return row_to_entity(row) if row else None

    async def delete(self, todo_id: int) -> Optional[TodoEntity]:
        async with self._cursor() as cur:
            await cur.execute(
                f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = %s RETURNING *", (todo_id,)
            )
            row = await cur.fetchone()
        return row_to_entity(row) if row else None
