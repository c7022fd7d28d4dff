"""PostgreSQL implementation of the metadata and message stores.

One ``PostgresStore`` serves both interfaces: the model/version tables are
read to resolve engine names, and the ``messages`` table records every
processed request with its raw input buffers (``BYTEA``) and formatted
results (``TEXT[]``).

Connection management
- A shared asyncpg pool is created on demand and reused across calls
- All database work runs inside ``_connection()``, which maps driver errors
  onto the storage error hierarchy
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional

import asyncpg
import structlog
from asyncpg import Connection, Pool

from .base import (
    Message,
    MessageStore,
    MetadataStore,
    StorageConnectionError,
    StorageNotFoundError,
    StorageQueryError,
)

logger = structlog.get_logger("storage.postgres")

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id BIGSERIAL PRIMARY KEY,
        username VARCHAR(255) NOT NULL UNIQUE,
        password VARCHAR(255) NOT NULL,
        email VARCHAR(255) NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS models (
        id BIGSERIAL PRIMARY KEY,
        name VARCHAR(255) NOT NULL UNIQUE,
        user_id BIGINT NOT NULL REFERENCES users(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS versions (
        id BIGSERIAL PRIMARY KEY,
        number INTEGER NOT NULL,
        model_id BIGINT NOT NULL REFERENCES models(id) ON DELETE CASCADE,
        UNIQUE(model_id, number)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id BIGSERIAL PRIMARY KEY,
        user_id BIGINT NOT NULL,
        model_id BIGINT NOT NULL,
        version_id BIGINT NOT NULL,
        input1 BYTEA NOT NULL,
        input2 BYTEA NOT NULL,
        results TEXT[] NOT NULL,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_user_model ON messages(user_id, model_id, created_at);",
]


class PostgresStore(MetadataStore, MessageStore):
    """asyncpg-backed metadata and message store."""

    def __init__(
        self,
        dsn: str,
        pool_size: int = 10,
        command_timeout: int = 30,
    ):
        """Configure the store.

        Parameters
        - dsn: PostgreSQL DSN including database and credentials
        - pool_size: Max size of asyncpg connection pool
        - command_timeout: Seconds to allow per DB command
        """
        self.dsn = dsn
        self.pool_size = pool_size
        self.command_timeout = command_timeout
        self._pool: Optional[Pool] = None

    async def _get_pool(self) -> Pool:
        """Get or create connection pool.

        Lazily initializes an asyncpg pool so callers don't pay startup cost
        unless/until they make a call that requires the database.
        """
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=1,
                    max_size=self.pool_size,
                    command_timeout=self.command_timeout,
                )
                logger.info("Created PostgreSQL connection pool", pool_size=self.pool_size)
            except Exception as e:
                logger.error("Failed to create PostgreSQL connection pool", error=str(e))
                raise StorageConnectionError(f"Failed to create connection pool: {e}") from e

        return self._pool

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Connection]:
        """Acquire a pooled connection; driver failures become ``StorageError``.

        Covers acquisition as well as everything run on the connection inside
        the ``async with`` block.
        """
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                yield conn
        except asyncpg.PostgresError as e:
            logger.error("Query execution failed", error=str(e))
            raise StorageQueryError(f"Query failed: {e}") from e
        # Before OSError: on 3.11+ asyncio.TimeoutError is a subclass of it.
        except asyncio.TimeoutError as e:
            logger.error("Database command timed out", command_timeout=self.command_timeout)
            raise StorageQueryError(f"Query timed out after {self.command_timeout}s") from e
        except (OSError, asyncpg.InterfaceError) as e:
            logger.error("Database connection lost", error=str(e))
            raise StorageConnectionError(f"Connection failed: {e}") from e

    async def _execute_query(
        self,
        query: str,
        *args: Any,
        fetch: bool = False,
        fetch_one: bool = False
    ) -> Any:
        """Execute a query with error handling.

        The ``fetch``/``fetch_one`` flags control how results are retrieved.
        """
        async with self._connection() as conn:
            if fetch_one:
                return await conn.fetchrow(query, *args)
            if fetch:
                return await conn.fetch(query, *args)
            return await conn.execute(query, *args)

    async def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        for statement in SCHEMA_STATEMENTS:
            await self._execute_query(statement)
        logger.info("Database schema ensured")

    async def resolve_model_name(self, model_id: int) -> str:
        row = await self._execute_query(
            "SELECT name FROM models WHERE id = $1",
            model_id,
            fetch_one=True,
        )
        if row is None:
            raise StorageNotFoundError(f"model {model_id} not found")
        return row["name"]

    async def resolve_version_number(self, version_id: int) -> int:
        row = await self._execute_query(
            "SELECT number FROM versions WHERE id = $1",
            version_id,
            fetch_one=True,
        )
        if row is None:
            raise StorageNotFoundError(f"version {version_id} not found")
        return row["number"]

    async def delete_model(self, model_id: int) -> bool:
        async with self._connection() as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM messages WHERE model_id = $1", model_id)
                await conn.execute("DELETE FROM versions WHERE model_id = $1", model_id)
                status = await conn.execute("DELETE FROM models WHERE id = $1", model_id)

        deleted = status.endswith(" 1")
        logger.info("Deleted model metadata", model_id=model_id, deleted=deleted)
        return deleted

    async def save_message(self, message: Message) -> Message:
        row = await self._execute_query(
            """
                INSERT INTO messages (user_id, model_id, version_id, input1, input2, results, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING id
            """,
            message.user_id,
            message.model_id,
            message.version_id,
            message.input0,
            message.input1,
            list(message.results),
            message.created_at,
            fetch_one=True,
        )
        if row is None:
            raise StorageQueryError("Insert returned no row")

        logger.debug(
            "Stored message",
            message_id=row["id"],
            user_id=message.user_id,
            model_id=message.model_id
        )
        return message.with_id(row["id"])

    async def query_messages(self, user_id: int, model_id: int) -> List[Message]:
        rows = await self._execute_query(
            """
                SELECT id, user_id, model_id, version_id, input1, input2, results, created_at
                FROM messages
                WHERE user_id = $1 AND model_id = $2
                ORDER BY created_at ASC, id ASC
            """,
            user_id,
            model_id,
            fetch=True,
        )
        return [
            Message(
                id=row["id"],
                user_id=row["user_id"],
                model_id=row["model_id"],
                version_id=row["version_id"],
                input0=bytes(row["input1"]),
                input1=bytes(row["input2"]),
                results=list(row["results"] or []),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    async def health_check(self) -> bool:
        try:
            result = await self._execute_query("SELECT 1", fetch_one=True)
            return result is not None
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Closed PostgreSQL connection pool")
