"""Paged move of aging rows from the source store into the archive store."""

import asyncio
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Optional

from structlog import BoundLogger

from archival.database import ArchiveDatabase
from archival.exceptions import (
    ArchivalInterrupted,
    ConfigurationError,
    DatabaseError,
    TransactionError,
)
from archival.models import TIMESTAMP_COLUMN, TableSchema
from archival.row_buffer import RowLayout, TypedRow
from archival.source_database import SourceDatabase
from archival.type_mapping import ArchiveType
from utils import mysql_identifier, safe_identifier
from utils.logging import get_logger

PAGE_SIZE = 1000


class BatchMover:
    """Moves rows older than a cutoff, one page per archive transaction.

    Pages are selected with a (timestamp, primary key) cursor under the
    original cutoff, so rows deleted by earlier pages never shift later
    pages. Each page is inserted into the archive inside one transaction
    and only then deleted from the source by primary key. Archive inserts
    ignore rows whose key already exists, which makes re-running a window
    after a crash between the two steps safe.
    """

    def __init__(
        self,
        source_db: SourceDatabase,
        archive_db: ArchiveDatabase,
        mapping: Optional[dict[str, ArchiveType]] = None,
        page_size: int = PAGE_SIZE,
        logger: Optional[BoundLogger] = None,
    ) -> None:
        self.source_db = source_db
        self.archive_db = archive_db
        self.mapping = mapping
        self.page_size = page_size
        self.logger = logger or get_logger("batch_mover")

    def _timestamp_column(self, schema: TableSchema) -> str:
        column = schema.find_column(TIMESTAMP_COLUMN)
        if column is None:
            raise ConfigurationError(
                f"Table does not have {TIMESTAMP_COLUMN} column",
                context={"table": schema.table_name},
            )
        return column.column_name

    async def count_eligible(
        self,
        table_name: str,
        cutoff: datetime,
        timestamp_column: str = TIMESTAMP_COLUMN,
    ) -> int:
        """Count source rows strictly older than the cutoff."""
        query = (
            f"SELECT COUNT(*) FROM {mysql_identifier(table_name)} "
            f"WHERE {mysql_identifier(timestamp_column)} < %s"
        )
        count = await self.source_db.fetchval(query, cutoff)
        return int(count or 0)

    def _select_sql(self, table_name: str, layout: RowLayout, with_cursor: bool) -> str:
        schema = layout.schema
        columns = ", ".join(mysql_identifier(name) for name in schema.column_names)
        timestamp = mysql_identifier(schema.columns[layout.timestamp_position].column_name)
        order = [timestamp] + [
            mysql_identifier(schema.columns[p].column_name) for p in layout.primary_key_positions
        ]

        where = f"{timestamp} < %s"
        if with_cursor:
            placeholders = ", ".join(["%s"] * len(order))
            where += f" AND ({', '.join(order)}) > ({placeholders})"

        return (
            f"SELECT {columns} FROM {mysql_identifier(table_name)} "
            f"WHERE {where} ORDER BY {', '.join(order)} LIMIT %s"
        )

    def _insert_sql(self, table_name: str, schema: TableSchema) -> str:
        columns = ", ".join(safe_identifier(name) for name in schema.column_names)
        placeholders = ", ".join(f"${i + 1}" for i in range(len(schema.columns)))
        table = f"{safe_identifier(self.archive_db.schema_name)}.{safe_identifier(table_name)}"
        return (
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) ON CONFLICT DO NOTHING"
        )

    def _delete_sql(self, table_name: str, layout: RowLayout, row_count: int) -> str:
        schema = layout.schema
        keys = [mysql_identifier(schema.columns[p].column_name) for p in layout.primary_key_positions]
        if len(keys) == 1:
            target = keys[0]
            values = ", ".join(["%s"] * row_count)
        else:
            target = f"({', '.join(keys)})"
            group = f"({', '.join(['%s'] * len(keys))})"
            values = ", ".join([group] * row_count)
        return f"DELETE FROM {mysql_identifier(table_name)} WHERE {target} IN ({values})"

    async def _archive_page(self, insert_sql: str, rows: Sequence[TypedRow]) -> None:
        async with self.archive_db.transaction() as conn:
            await conn.executemany(insert_sql, [row.as_parameters() for row in rows])

    async def _delete_page(
        self, table_name: str, layout: RowLayout, rows: Sequence[TypedRow]
    ) -> int:
        params: list[Any] = []
        for row in rows:
            params.extend(layout.key(row))

        async with self.source_db.transaction() as cursor:
            await cursor.execute(self._delete_sql(table_name, layout, len(rows)), params)
            return cursor.rowcount

    async def move_older_than(
        self,
        table_name: str,
        schema: TableSchema,
        cutoff: datetime,
        stop_event: Optional[asyncio.Event] = None,
    ) -> int:
        """Move every source row older than the cutoff into the archive table.

        Args:
            table_name: Source (and archive) table name
            schema: Discovered source schema; its column order is the insert order
            cutoff: Rows with a timestamp strictly before this are moved
            stop_event: Checked before each page; when set the move stops

        Returns:
            Number of rows moved (archived and deleted from the source)

        Raises:
            ConfigurationError: If the table has no primary key or timestamp column
            TransactionError: If a page fails; carries the count of committed pages
            ArchivalInterrupted: If the stop event was set between pages
        """
        if not schema.primary_key_columns:
            raise ConfigurationError(
                "Table has no primary key; moved rows cannot be deleted from the source",
                context={"table": table_name},
            )

        timestamp_column = self._timestamp_column(schema)
        layout = RowLayout(schema, self.mapping, timestamp_column)

        eligible = await self.count_eligible(table_name, cutoff, timestamp_column)
        self.logger.info(
            "Records eligible for archival",
            table=table_name,
            cutoff=cutoff.isoformat(),
            count=eligible,
        )
        if eligible == 0:
            return 0

        first_page_sql = self._select_sql(table_name, layout, with_cursor=False)
        next_page_sql = self._select_sql(table_name, layout, with_cursor=True)
        insert_sql = self._insert_sql(table_name, schema)

        moved = 0
        page_number = 0
        last_cursor: Optional[tuple[Any, ...]] = None

        while True:
            if stop_event is not None and stop_event.is_set():
                raise ArchivalInterrupted(
                    records_moved=moved,
                    context={"table": table_name, "pages": page_number},
                )

            page_number += 1
            try:
                if last_cursor is None:
                    raw_rows = await self.source_db.fetch_rows(
                        first_page_sql, cutoff, self.page_size
                    )
                else:
                    raw_rows = await self.source_db.fetch_rows(
                        next_page_sql, cutoff, *last_cursor, self.page_size
                    )

                if not raw_rows:
                    break

                rows = [layout.decode(raw) for raw in raw_rows]
                await self._archive_page(insert_sql, rows)
                deleted = await self._delete_page(table_name, layout, rows)
            except Exception as e:
                message = e.message if isinstance(e, DatabaseError) else str(e)
                raise TransactionError(
                    f"Page {page_number} failed: {message}",
                    records_moved=moved,
                    context={"table": table_name, "page": page_number},
                ) from e

            if deleted != len(rows):
                self.logger.warning(
                    "Source delete count differs from page size",
                    table=table_name,
                    page=page_number,
                    page_rows=len(rows),
                    deleted=deleted,
                )

            moved += len(rows)
            last_cursor = layout.cursor(rows[-1])
            self.logger.debug(
                "Page moved",
                table=table_name,
                page=page_number,
                rows=len(rows),
                total=moved,
            )

            if len(rows) < self.page_size:
                break

        self.logger.info("Records archived", table=table_name, count=moved, pages=page_number)
        return moved
