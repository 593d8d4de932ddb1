"""Archive store connection and query management using asyncpg."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Optional

import asyncpg
from structlog import BoundLogger

from archival.config import ArchiveDatabaseConfig
from archival.exceptions import DatabaseError
from utils import safe_identifier
from utils.logging import get_logger


class ArchiveDatabase:
    """Manages the PostgreSQL archive store connections and operations."""

    def __init__(
        self,
        config: ArchiveDatabaseConfig,
        logger: Optional[BoundLogger] = None,
    ) -> None:
        """Initialize archive database manager.

        Args:
            config: Archive database configuration
            logger: Optional logger instance
        """
        self.config = config
        self.pool_size = config.pool_size
        self.logger = logger or get_logger("archive_database")
        self.pool: Optional[asyncpg.Pool] = None
        self._dsn: Optional[str] = None

    @property
    def schema_name(self) -> str:
        return self.config.schema_name

    @property
    def dsn(self) -> str:
        """Get database connection DSN."""
        if self._dsn is None:
            try:
                password = self.config.get_password()
            except ValueError as e:
                raise DatabaseError(
                    str(e),
                    context={"database": self.config.name},
                ) from e

            self._dsn = (
                f"postgresql://{self.config.user}:{password}@"
                f"{self.config.host}:{self.config.port}/{self.config.name}"
            )
        return self._dsn

    async def connect(self) -> None:
        """Create connection pool."""
        try:
            self.logger.debug(
                "Creating archive connection pool",
                database=self.config.name,
                host=self.config.host,
                pool_size=self.pool_size,
            )

            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=1,
                max_size=self.pool_size,
                command_timeout=300,
                server_settings={
                    "application_name": "table_archival",
                },
            )

            async with self.pool.acquire() as conn:
                version = await conn.fetchval("SELECT version()")
                self.logger.debug(
                    "Archive database connection established",
                    database=self.config.name,
                    version=version.split(",")[0] if version else "unknown",
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
            self.logger.debug("Closing archive connection pool", database=self.config.name)
            await self.pool.close()
            self.pool = None

    async def ensure_schema(self) -> None:
        """Create the archive schema if it doesn't exist."""
        await self.execute(f"CREATE SCHEMA IF NOT EXISTS {safe_identifier(self.schema_name)}")

    @asynccontextmanager
    async def acquire_connection(self) -> AsyncGenerator[asyncpg.Connection, None]:
        """Acquire a connection from the pool.

        Yields:
            Database connection

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
            await self.pool.release(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[asyncpg.Connection, None]:
        """Start a transaction; it commits on normal exit and rolls back on error.

        Yields:
            Database connection in transaction

        Raises:
            DatabaseError: If pool is not initialized
        """
        async with self.acquire_connection() as conn:
            async with conn.transaction():
                yield conn

    async def _run(self, method: str, query: str, args: tuple[Any, ...]) -> Any:
        try:
            async with self.acquire_connection() as conn:
                return await getattr(conn, method)(query, *args)
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(
                f"Query execution failed: {e}",
                context={"database": self.config.name, "query": query[:100]},
            ) from e

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement and return its command tag (e.g. 'DELETE 42').

        Raises:
            DatabaseError: If execution fails
        """
        return await self._run("execute", query, args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        return await self._run("fetch", query, args)

    async def fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
        return await self._run("fetchrow", query, args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        return await self._run("fetchval", query, args)


def affected_rows(status: Optional[str]) -> int:
    """Row count from a PostgreSQL command tag such as 'DELETE 42'."""
    if not status:
        return 0
    last = status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else 0
