"""Source store connection and query management using aiomysql."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Optional

import aiomysql
from structlog import BoundLogger

from archival.config import SourceDatabaseConfig
from archival.exceptions import DatabaseError
from utils.logging import get_logger


class SourceDatabase:
    """Manages the MySQL source store connections and operations.

    Placeholders use the driver's ``%s`` style; parameters are passed as
    positional arguments, mirroring the archive manager's call shape.
    """

    def __init__(
        self,
        config: SourceDatabaseConfig,
        logger: Optional[BoundLogger] = None,
    ) -> None:
        self.config = config
        self.pool_size = config.pool_size
        self.logger = logger or get_logger("source_database")
        self.pool: Optional[aiomysql.Pool] = None

    async def connect(self) -> None:
        """Create connection pool.

        Raises:
            DatabaseError: If the password is unavailable or the pool cannot be created
        """
        try:
            password = self.config.get_password()
        except ValueError as e:
            raise DatabaseError(str(e), context={"database": self.config.name}) from e

        try:
            self.logger.debug(
                "Creating source connection pool",
                database=self.config.name,
                host=self.config.host,
                pool_size=self.pool_size,
            )
            self.pool = await aiomysql.create_pool(
                host=self.config.host,
                port=self.config.port,
                user=self.config.user,
                password=password,
                db=self.config.name,
                minsize=1,
                maxsize=self.pool_size,
                autocommit=True,
                charset="utf8mb4",
            )

            version = await self.fetchval("SELECT VERSION()")
            self.logger.debug(
                "Source database connection established",
                database=self.config.name,
                version=version or "unknown",
            )
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(
                f"Failed to create connection pool: {e}",
                context={"database": self.config.name, "host": self.config.host},
            ) from e

    async def disconnect(self) -> None:
        """Close connection pool."""
        if self.pool:
            self.logger.debug("Closing source connection pool", database=self.config.name)
            self.pool.close()
            await self.pool.wait_closed()
            self.pool = None

    @asynccontextmanager
    async def acquire_connection(self) -> AsyncGenerator[aiomysql.Connection, None]:
        """Acquire a connection from the pool.

        Raises:
            DatabaseError: If pool is not initialized
        """
        if not self.pool:
            raise DatabaseError(
                "Connection pool not initialized. Call connect() first.",
                context={"database": self.config.name},
            )

        conn = await self.pool.acquire()
        try:
            yield conn
        finally:
            self.pool.release(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[aiomysql.Cursor, None]:
        """Run statements in one transaction; commit on normal exit, roll back on error.

        Yields:
            Cursor bound to the transaction's connection
        """
        async with self.acquire_connection() as conn:
            await conn.begin()
            try:
                async with conn.cursor() as cursor:
                    yield cursor
            except BaseException:
                await conn.rollback()
                raise
            else:
                await conn.commit()

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        """Execute a query and return all rows as dictionaries.

        Raises:
            DatabaseError: If execution fails
        """
        try:
            async with self.acquire_connection() as conn:
                async with conn.cursor(aiomysql.DictCursor) as cursor:
                    await cursor.execute(query, args or None)
                    return list(await cursor.fetchall())
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(
                f"Query execution failed: {e}",
                context={"database": self.config.name, "query": query[:100]},
            ) from e

    async def fetch_rows(self, query: str, *args: Any) -> list[tuple[Any, ...]]:
        """Execute a query and return all rows as positional tuples.

        Raises:
            DatabaseError: If execution fails
        """
        try:
            async with self.acquire_connection() as conn:
                async with conn.cursor() as cursor:
                    await cursor.execute(query, args or None)
                    return list(await cursor.fetchall())
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(
                f"Query execution failed: {e}",
                context={"database": self.config.name, "query": query[:100]},
            ) from e

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Execute a query and return the first column of the first row.

        Raises:
            DatabaseError: If execution fails
        """
        rows = await self.fetch_rows(query, *args)
        if not rows:
            return None
        return rows[0][0]
